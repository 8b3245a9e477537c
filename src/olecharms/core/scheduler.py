"""Timestamp-gated maintenance tasks and the crontab shim.

Maintenance scripts run either from the hook dispatcher sourced by the shell
at startup, or from cron. The hook path calls :func:`maybe_run` for each task;
a task runs again only after its interval has passed since the last launch.

Two shells opened in the same second can both pass the gate before either
writes its timestamp. The gated scripts only delete stale files, so running
them twice is harmless and no locking is attempted.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
import time
from pathlib import Path
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)


class TaskStore:
    """One file per task holding the epoch seconds of its last launch."""

    def __init__(self, directory: Path):
        self.directory = Path(directory)

    def path_for(self, task_name: str) -> Path:
        return self.directory / f"{task_name}.lastrun"

    def last_run(self, task_name: str) -> int:
        """Return the last launch time, 0 if the task never ran."""
        path = self.path_for(task_name)
        try:
            return int(path.read_text().strip())
        except FileNotFoundError:
            return 0
        except ValueError:
            logger.debug("Unreadable timestamp in %s, treating task as never run", path)
            return 0

    def mark_run(self, task_name: str, now: Optional[float] = None) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        stamp = int(now if now is not None else time.time())
        self.path_for(task_name).write_text(f"{stamp}\n")


def launch_detached(script: Path) -> None:
    """Start ``script`` in its own session and return without waiting."""
    subprocess.Popen(
        [str(script)],
        stdin=subprocess.DEVNULL,
        stdout=subprocess.DEVNULL,
        stderr=subprocess.DEVNULL,
        start_new_session=True,
    )


def maybe_run(
    script: Path,
    task_name: str,
    interval_seconds: int,
    store: TaskStore,
    now: Optional[float] = None,
    launcher: Callable[[Path], None] = launch_detached,
) -> bool:
    """Launch ``script`` if ``interval_seconds`` passed since its last launch.

    The timestamp is written before the launch, so a script that fails is
    not retried until the next interval.

    Returns:
        True if the script was launched.
    """
    now = time.time() if now is None else now
    elapsed = now - store.last_run(task_name)
    if elapsed < interval_seconds:
        logger.debug("Task %s ran %ds ago, not due yet", task_name, elapsed)
        return False

    store.mark_run(task_name, now)
    try:
        launcher(script)
    except OSError as e:
        logger.warning("Could not launch %s: %s", script, e)
        return False
    logger.debug("Launched task %s (%s)", task_name, script)
    return True


class Crontab:
    """The current user's crontab, edited one tagged line at a time.

    Each managed line ends with a ``# <marker>`` comment which is how the
    line is found again for updates and removal.
    """

    def __init__(self, binary: str = "crontab"):
        self.binary = binary

    def available(self) -> bool:
        return shutil.which(self.binary) is not None

    def entries(self) -> List[str]:
        """Return the current crontab lines (empty when there is none).

        Raises:
            RuntimeError: If the crontab exists but cannot be read.
        """
        if not self.available():
            return []
        result = subprocess.run([self.binary, "-l"], capture_output=True, text=True)
        if result.returncode != 0:
            if "no crontab for" in result.stderr.lower():
                return []
            raise RuntimeError(f"crontab -l failed: {result.stderr.strip()}")
        return result.stdout.splitlines()

    def _install(self, lines: List[str]) -> None:
        content = "\n".join(lines) + "\n" if lines else ""
        try:
            subprocess.run(
                [self.binary, "-"], input=content, text=True, capture_output=True, check=True
            )
        except subprocess.CalledProcessError as e:
            raise RuntimeError(f"crontab update failed: {(e.stderr or '').strip()}")

    @staticmethod
    def _tag(marker: str) -> str:
        return f"# {marker}"

    def has_entry(self, marker: str) -> bool:
        tag = self._tag(marker)
        return any(line.rstrip().endswith(tag) for line in self.entries())

    def ensure_entry(self, marker: str, line: str) -> bool:
        """Install ``line`` tagged with ``marker``, replacing an older version.

        Returns:
            True if the crontab changed.

        Raises:
            RuntimeError: If crontab is missing or refuses the update.
        """
        if not self.available():
            raise RuntimeError("crontab is not available on this system")

        tag = self._tag(marker)
        wanted = f"{line} {tag}"
        current = self.entries()
        kept = [entry for entry in current if not entry.rstrip().endswith(tag)]
        if wanted in current and len(kept) == len(current) - 1:
            return False
        self._install(kept + [wanted])
        return True

    def remove_entry(self, marker: str) -> bool:
        """Remove the line tagged with ``marker``. Returns True if it was there."""
        if not self.available():
            return False
        tag = self._tag(marker)
        current = self.entries()
        kept = [entry for entry in current if not entry.rstrip().endswith(tag)]
        if len(kept) == len(current):
            return False
        self._install(kept)
        return True
