"""System package installation through apt-get or Homebrew."""

from __future__ import annotations

import logging
import shutil
import subprocess
from typing import List

from .report import RunReport

logger = logging.getLogger(__name__)


class PackageInstaller:
    """Installs the system packages listed for the current OS."""

    def __init__(self, os_name: str, report: RunReport):
        self.os_name = os_name
        self.report = report

    def _run(self, args: List[str]) -> bool:
        logger.debug("Running %s", " ".join(args))
        try:
            subprocess.run(args, check=True)
        except (OSError, subprocess.CalledProcessError) as e:
            logger.debug("%s failed: %s", args[0], e)
            return False
        return True

    def install(self, packages: List[str]) -> bool:
        """Install ``packages``. Returns False when something went wrong."""
        if self.os_name not in ("linux", "macos"):
            self.report.warn("Skipping package install on unknown OS")
            return True

        if not packages:
            self.report.warn("No packages defined for this OS")
            return True

        self.report.info(f"Installing system packages: {' '.join(packages)}")
        if self.os_name == "linux":
            if shutil.which("sudo") is None:
                self.report.error(
                    "sudo not available. Install packages manually: "
                    f"apt-get install {' '.join(packages)}"
                )
                return False
            ok = self._run(["sudo", "apt-get", "update", "-qq"]) and self._run(
                ["sudo", "apt-get", "install", "-y", "-qq", *packages]
            )
            if not ok:
                self.report.error("Some packages failed to install")
            return ok

        if shutil.which("brew") is None:
            self.report.error("Homebrew not found. Install it from https://brew.sh")
            return False
        if not self._run(["brew", "install", *packages]):
            self.report.warn("Some brew packages may have already been installed")
        return True
