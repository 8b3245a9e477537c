"""Test configuration."""

from __future__ import annotations

import io
import subprocess
from pathlib import Path
from typing import Callable, Dict, List

import pytest
from rich.console import Console

from olecharms.core.environment import Environment
from olecharms.core.report import RunReport
from olecharms.core.settings import ConfigStore


def git(cwd: Path, *args: str) -> str:
    """Run git in ``cwd`` and return its output."""
    result = subprocess.run(
        ["git", *args], cwd=cwd, check=True, capture_output=True, text=True
    )
    return result.stdout.strip()


def init_repo(path: Path, files: Dict[str, str]) -> Path:
    """Create a git repository at ``path`` with one commit holding ``files``."""
    path.mkdir(parents=True, exist_ok=True)
    git(path, "init")
    git(path, "config", "user.name", "Test User")
    git(path, "config", "user.email", "test@example.com")
    for name, content in files.items():
        file_path = path / name
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_text(content)
    git(path, "add", ".")
    git(path, "commit", "-m", "Initial commit")
    return path


def commit_file(repo: Path, name: str, content: str, message: str = "Update") -> None:
    (repo / name).parent.mkdir(parents=True, exist_ok=True)
    (repo / name).write_text(content)
    git(repo, "add", name)
    git(repo, "commit", "-m", message)


class FakeCrontab:
    """In-memory stand-in for the user's crontab."""

    def __init__(self, available: bool = True) -> None:
        self.lines: List[str] = []
        self._available = available

    def available(self) -> bool:
        return self._available

    def entries(self) -> List[str]:
        return list(self.lines)

    def has_entry(self, marker: str) -> bool:
        return any(line.endswith(f"# {marker}") for line in self.lines)

    def ensure_entry(self, marker: str, line: str) -> bool:
        if not self._available:
            raise RuntimeError("crontab is not available on this system")
        wanted = f"{line} # {marker}"
        if wanted in self.lines:
            return False
        self.lines = [entry for entry in self.lines if not entry.endswith(f"# {marker}")]
        self.lines.append(wanted)
        return True

    def remove_entry(self, marker: str) -> bool:
        kept = [entry for entry in self.lines if not entry.endswith(f"# {marker}")]
        changed = len(kept) != len(self.lines)
        self.lines = kept
        return changed


@pytest.fixture
def home(tmp_path: Path) -> Path:
    """An empty home directory."""
    home_dir = tmp_path / "home"
    home_dir.mkdir()
    return home_dir


@pytest.fixture
def repo_dir(tmp_path: Path) -> Path:
    """An olecharms checkout with bundled vim files and no definitions yet."""
    checkout = tmp_path / "olecharms"
    (checkout / "vimthings" / "autoload").mkdir(parents=True)
    (checkout / "vimthings" / "olevimrc.vim").write_text('" managed vimrc\n')
    (checkout / "vimthings" / "autoload" / "pathogen.vim").write_text('" bundled pathogen\n')
    (checkout / "shell").mkdir()
    return checkout


@pytest.fixture
def env(home: Path, repo_dir: Path) -> Environment:
    """A Linux environment rooted in the temporary home directory."""
    return Environment.detect(home=home, repo_dir=repo_dir, system="Linux")


@pytest.fixture
def report() -> RunReport:
    """A run report printing into a buffer."""
    return RunReport(console=Console(file=io.StringIO(), width=200))


@pytest.fixture
def crontab() -> FakeCrontab:
    return FakeCrontab()


@pytest.fixture
def store(env: Environment) -> ConfigStore:
    """A settings store loaded from a fresh bootstrap."""
    config_store = ConfigStore(env.settings_file)
    config_store.load(env)
    return config_store


@pytest.fixture
def make_remote(tmp_path: Path) -> Callable[..., str]:
    """Create an upstream repository and return its file:// URL."""

    def factory(name: str, files: Dict[str, str] = None) -> str:
        path = init_repo(tmp_path / "remotes" / name, files or {"README.md": f"# {name}\n"})
        return path.as_uri()

    return factory


def output(report: RunReport) -> str:
    return report.console.file.getvalue()
