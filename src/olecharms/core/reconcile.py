"""Converge a managed directory onto a git checkout of its upstream.

Each managed resource (pathogen, a vim plugin, the powerline fonts) lives at
a fixed destination and moves through three states::

    absent -> plain directory -> git checkout

A plain directory shows up when a clone failed and the bundled fallback was
copied in, or when the user put it there by hand. Reconciling such a
directory moves it aside into an archive location and tries the clone again,
so a machine that was set up offline catches up on the next online run.
"""

from __future__ import annotations

import logging
import shutil
from datetime import datetime
from pathlib import Path
from typing import Optional

from .report import Outcome, RunReport
from .repository import GitRepository

logger = logging.getLogger(__name__)


def archive_path(destination: Path, archive_dir: Optional[Path] = None) -> Path:
    """Pick a free ``<name>.backup.<timestamp>`` path for an archived copy."""
    parent = archive_dir or destination.parent
    stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    candidate = parent / f"{destination.name}.backup.{stamp}"
    counter = 1
    while candidate.exists():
        candidate = parent / f"{destination.name}.backup.{stamp}.{counter}"
        counter += 1
    return candidate


class Reconciler:
    """Brings managed directories to their desired state.

    Attributes:
        report (RunReport): Receives progress lines, warnings and errors.
    """

    def __init__(self, report: RunReport):
        self.report = report

    def reconcile(
        self,
        name: str,
        url: str,
        destination: Path,
        fallback: Optional[Path] = None,
        archive_dir: Optional[Path] = None,
    ) -> Outcome:
        """Clone, update or restore ``destination``.

        Args:
            name: Display name of the resource.
            url: Upstream git URL. May be empty, in which case only the
                fallback can populate the destination.
            destination: Where the checkout lives.
            fallback: Bundled local copy used when cloning fails.
            archive_dir: Where a non-checkout directory is moved before
                re-cloning. Defaults to the destination's parent.

        Returns:
            The :class:`Outcome`, also recorded on the report.
        """
        repo = GitRepository(destination)

        if repo.is_checkout():
            return self.report.record(name, self._update(name, repo))

        if destination.exists():
            self.report.warn(f"{name} exists but is not a git repo. Backing up and re-cloning.")
            if not self._archive(name, destination, archive_dir):
                return self.report.record(name, Outcome.FAILED)

        return self.report.record(name, self._clone(name, url, repo, fallback))

    def _update(self, name: str, repo: GitRepository) -> Outcome:
        self.report.info(f"Updating {name}...")
        try:
            repo.pull_ff_only()
            return Outcome.UPDATED
        except RuntimeError as e:
            logger.debug("pull failed for %s: %s", name, e)
            self.report.warn(f"git pull failed for {name}, trying reset")

        try:
            repo.fetch()
            branch = repo.get_current_branch()
            repo.reset_hard(f"origin/{branch}")
            return Outcome.UPDATED
        except RuntimeError as e:
            logger.debug("reset failed for %s: %s", name, e)
            self.report.warn(f"Could not update {name} (may be offline)")
            return Outcome.SKIPPED

    def _archive(self, name: str, destination: Path, archive_dir: Optional[Path]) -> bool:
        target = archive_path(destination, archive_dir)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.move(str(destination), str(target))
        except OSError as e:
            self.report.error(f"Could not move {destination} aside: {e}")
            return False
        self.report.info(f"Backed up {destination} → {target}")
        return True

    def _clone(
        self, name: str, url: str, repo: GitRepository, fallback: Optional[Path]
    ) -> Outcome:
        if url:
            self.report.info(f"Cloning {name}...")
            try:
                repo.clone(url)
                return Outcome.CLONED
            except RuntimeError as e:
                logger.debug("clone failed for %s: %s", name, e)
                # A failed clone can leave an empty directory behind
                if repo.path.exists() and not repo.is_checkout():
                    shutil.rmtree(repo.path, ignore_errors=True)

        if fallback is not None and fallback.is_dir():
            self.report.warn(f"Clone failed for {name}. Using bundled copy from {fallback}")
            try:
                shutil.copytree(fallback, repo.path)
            except (OSError, shutil.Error) as e:
                self.report.error(f"Could not copy bundled {name}: {e}")
                return Outcome.FAILED
            return Outcome.RESTORED_FROM_FALLBACK

        self.report.error(f"Failed to clone {name} and no bundled fallback available")
        return Outcome.FAILED
