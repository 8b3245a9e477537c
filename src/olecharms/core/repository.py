"""Git checkout handling for olecharms."""

from __future__ import annotations

import os
import subprocess
from pathlib import Path
from typing import Optional, Tuple


class GitRepository:
    """A git checkout on disk that olecharms clones and keeps updated.

    The checkout may not exist yet: :meth:`clone` creates it. Every git
    failure surfaces as a :class:`RuntimeError` carrying git's own message,
    and git is never allowed to stop and prompt for credentials.

    Attributes:
        path (Path): Path to the checkout.
        name (str): Directory name of the checkout.
    """

    def __init__(self, path: Path):
        """Initialize repository."""
        self.path = Path(path)
        self.name = self.path.name

    def __str__(self) -> str:
        """Return string representation."""
        return f"GitRepository({self.path})"

    def __repr__(self) -> str:
        """Return string representation."""
        return self.__str__()

    def is_checkout(self) -> bool:
        """Check if the path is the top of a git checkout.

        Only the path's own ``.git`` counts, so a plain directory inside some
        other repository (a home directory under version control, say) is
        not mistaken for a checkout.
        """
        return (self.path / ".git").exists()

    def _run_git(self, *args: str, cwd: Optional[Path] = None) -> str:
        """Run a Git command and return its output."""
        env = dict(os.environ, GIT_TERMINAL_PROMPT="0")
        try:
            result = subprocess.run(
                ["git", *args],
                cwd=cwd or self.path,
                capture_output=True,
                text=True,
                check=True,
                env=env,
            )
            return result.stdout.strip()
        except FileNotFoundError as e:
            raise RuntimeError(f"Git command failed: {e}")
        except subprocess.CalledProcessError as e:
            if e.stderr:
                raise RuntimeError(f"Git command failed: {e.stderr.strip()}")
            if e.stdout:
                raise RuntimeError(f"Git command failed: {e.stdout.strip()}")
            raise RuntimeError("Git command failed with no output")

    def clone(self, url: str, depth: int = 1) -> None:
        """Clone ``url`` into this path.

        Raises:
            RuntimeError: If the clone fails. A partially written checkout
                is left for the caller to deal with.
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)
        args = ["clone"]
        if depth:
            args += ["--depth", str(depth)]
        self._run_git(*args, url, str(self.path), cwd=self.path.parent)

    def pull_ff_only(self) -> None:
        """Fast-forward the current branch from its upstream."""
        self._run_git("pull", "--ff-only")

    def fetch(self, remote: str = "origin") -> None:
        """Fetch from a remote."""
        self._run_git("fetch", remote)

    def get_current_branch(self) -> str:
        """Get the current branch name, ``master`` when HEAD is detached."""
        try:
            return self._run_git("symbolic-ref", "--short", "HEAD")
        except RuntimeError:
            return "master"

    def reset_hard(self, ref: str) -> None:
        """Reset the working tree to ``ref``."""
        self._run_git("reset", "--hard", ref)

    def last_commit(self) -> Tuple[str, str]:
        """Return the last commit as ``(oneline, date)``.

        Example:
            ```python
            repo = GitRepository(Path("~/.vim/bundle/nerdtree").expanduser())
            rev, date = repo.last_commit()
            print(rev, date)  # e.g. "1b2c3d4 Fix tree refresh", "2024-05-01"
            ```
        """
        oneline = self._run_git("log", "--oneline", "-1")
        date = self._run_git("log", "-1", "--format=%ci").split(" ")[0]
        return oneline, date
