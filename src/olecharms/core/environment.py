"""Detected platform and the paths olecharms manages."""

from __future__ import annotations

import os
import platform
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

import appdirs

from .. import PROJECT_NAME

REPO_ENV = "OLECHARMS_REPO"
DEFINITIONS_FILE = "packages.yaml"

VIM_SUBDIRS = ["autoload", "bundle", "bundle_disabled", "undodir", "swapfiles"]


def detect_os(system: Optional[str] = None) -> str:
    """Map ``platform.system()`` onto ``linux``, ``macos`` or ``unknown``."""
    system = system if system is not None else platform.system()
    if system.startswith("Linux"):
        return "linux"
    if system.startswith("Darwin"):
        return "macos"
    return "unknown"


def _default_repo_dir() -> Path:
    env_repo = os.environ.get(REPO_ENV)
    if env_repo:
        return Path(env_repo).expanduser()

    # Editable installs run straight from the checkout: src/olecharms/core
    checkout = Path(__file__).resolve().parents[3]
    if (checkout / DEFINITIONS_FILE).exists():
        return checkout
    return Path.cwd()


@dataclass
class Environment:
    """Everything a run needs to know about the machine it runs on.

    Attributes:
        home: Home directory of the user being set up.
        repo_dir: The olecharms checkout holding ``packages.yaml``, the bundled
            vim files and the shell command files.
        os_name: ``linux``, ``macos`` or ``unknown``.
        config_dir: Per-user configuration directory.
        data_dir: Per-user data directory (task timestamps).
    """

    home: Path
    repo_dir: Path
    os_name: str
    config_dir: Path
    data_dir: Path
    shell_rc_names: List[str] = field(default_factory=lambda: [".bashrc", ".zshrc"])

    @classmethod
    def detect(
        cls,
        home: Optional[Path] = None,
        repo_dir: Optional[Path] = None,
        system: Optional[str] = None,
    ) -> "Environment":
        """Build an environment for the current user.

        Passing ``home`` explicitly keeps every path under it, which is what
        tests and alternate-user runs want.
        """
        if home is None:
            home = Path.home()
            config_dir = Path(appdirs.user_config_dir(PROJECT_NAME))
            data_dir = Path(appdirs.user_data_dir(PROJECT_NAME))
        else:
            home = Path(home)
            config_dir = home / ".config" / PROJECT_NAME
            data_dir = home / ".local" / "share" / PROJECT_NAME

        return cls(
            home=home,
            repo_dir=Path(repo_dir) if repo_dir is not None else _default_repo_dir(),
            os_name=detect_os(system),
            config_dir=config_dir,
            data_dir=data_dir,
        )

    @property
    def package_manager(self) -> Optional[str]:
        return {"linux": "apt-get", "macos": "brew"}.get(self.os_name)

    @property
    def font_dir(self) -> Path:
        if self.os_name == "linux":
            return self.home / ".local" / "share" / "fonts"
        if self.os_name == "macos":
            return self.home / "Library" / "Fonts"
        return self.home / ".fonts"

    @property
    def vim_dir(self) -> Path:
        return self.home / ".vim"

    @property
    def vimrc(self) -> Path:
        return self.home / ".vimrc"

    @property
    def vim_dirs(self) -> List[Path]:
        return [self.vim_dir] + [self.vim_dir / name for name in VIM_SUBDIRS]

    @property
    def bundle_dir(self) -> Path:
        return self.vim_dir / "bundle"

    @property
    def disabled_bundle_dir(self) -> Path:
        return self.vim_dir / "bundle_disabled"

    @property
    def pathogen_staging(self) -> Path:
        return self.vim_dir / ".pathogen-repo"

    @property
    def fonts_staging(self) -> Path:
        return self.vim_dir / ".fonts-repo"

    @property
    def bundled_dir(self) -> Path:
        return self.repo_dir / "vimthings"

    @property
    def managed_vimrc(self) -> Path:
        return self.bundled_dir / "olevimrc.vim"

    @property
    def source_dir(self) -> Path:
        return self.repo_dir / "src" / PROJECT_NAME

    @property
    def definitions_file(self) -> Path:
        return self.repo_dir / DEFINITIONS_FILE

    @property
    def shell_dir(self) -> Path:
        return self.repo_dir / "shell"

    @property
    def generated_dir(self) -> Path:
        return self.config_dir / "generated"

    @property
    def task_dir(self) -> Path:
        return self.data_dir / "tasks"

    @property
    def settings_file(self) -> Path:
        return self.config_dir / "config"

    @property
    def shell_rc_files(self) -> List[Path]:
        return [self.home / name for name in self.shell_rc_names]

    @property
    def default_shell_rc(self) -> Path:
        return self.home / (".zshrc" if self.os_name == "macos" else ".bashrc")
