"""The install/update pipeline.

``install`` and ``update`` run the same ordered steps. No step aborts the
run: failures are counted on the :class:`RunReport` and summarised at the
end, and everything that could be done is done.
"""

from __future__ import annotations

import filecmp
import hashlib
import logging
import shutil
import subprocess
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from . import rcfile
from .definitions import Definitions, is_valid_name
from .environment import Environment
from .features import FeatureManager
from .packages import PackageInstaller
from .reconcile import Reconciler
from .report import Outcome, RunReport
from .repository import GitRepository
from .scheduler import Crontab
from .settings import ConfigStore, MigrationError

logger = logging.getLogger(__name__)

VIMRC_MARKER = '" olecharms managed config - do not remove this line'
VIMRC_STALE_PATTERN = r"^\s*source\s+\S*/vimthings/olevimrc\.vim\s*$"
FONT_SUFFIXES = (".ttf", ".otf")


def file_digest(path: Path) -> Optional[str]:
    try:
        return hashlib.md5(path.read_bytes()).hexdigest()
    except OSError:
        return None


def tree_digest(root: Path) -> Optional[str]:
    """Digest of every file under ``root``, names included."""
    if not root.is_dir():
        return None
    digest = hashlib.md5()
    for path in sorted(root.rglob("*")):
        if not path.is_file() or "__pycache__" in path.parts:
            continue
        digest.update(str(path.relative_to(root)).encode())
        digest.update(path.read_bytes())
    return digest.hexdigest()


def copy_if_changed(source: Path, destination: Path) -> bool:
    """Copy ``source`` over ``destination`` unless they already match."""
    if destination.is_file() and filecmp.cmp(source, destination, shallow=False):
        return False
    destination.parent.mkdir(parents=True, exist_ok=True)
    shutil.copy2(source, destination)
    return True


class InstallManager:
    """Runs the install and update pipelines.

    Attributes:
        env (Environment): Detected platform and paths.
        definitions (Definitions): What to install.
        report (RunReport): Shared progress and error accounting.
        features (FeatureManager): Applies the optional features at the end
            of each run. Created from the settings file when not given.
        crontab (Crontab): Passed on to the feature manager it creates.
    """

    def __init__(
        self,
        env: Environment,
        definitions: Definitions,
        report: RunReport,
        features: Optional[FeatureManager] = None,
        crontab: Optional[Crontab] = None,
    ):
        self.env = env
        self.definitions = definitions
        self.report = report
        self.reconciler = Reconciler(report)
        self.packages = PackageInstaller(env.os_name, report)
        self.features = features
        self.crontab = crontab

    @property
    def steps(self) -> List[Tuple[str, Callable[[], None]]]:
        return [
            ("packages", self.install_packages),
            ("vim directories", self.create_vim_dirs),
            ("pathogen", self.install_pathogen),
            ("plugins", self.install_plugins),
            ("vimrc", self.install_vimrc),
            ("fonts", self.install_fonts),
            ("post-install commands", self.run_post_commands),
            ("features", self.apply_features),
        ]

    def run_steps(self) -> None:
        for name, step in self.steps:
            logger.debug("Running step: %s", name)
            try:
                step()
            except (OSError, ValueError) as e:
                # ValueError covers undecodable user files
                self.report.error(f"Step {name} failed: {e}")

    def install(self) -> RunReport:
        """Full install: packages, vim tree, plugins, vimrc, fonts, features."""
        self.report.heading("olecharms install")
        if self.env.os_name == "unknown":
            self.report.warn("Unknown OS. Package installation may not work.")
        self.run_steps()
        self.report.summary("Install")
        return self.report

    def update(self) -> RunReport:
        """Self-update the olecharms checkout, then run the pipeline."""
        self.report.heading("olecharms update")
        if self.self_update():
            self.report.warn(
                "olecharms or packages.yaml was updated. Please re-run: olecharms update"
            )
            return self.report
        self.run_steps()
        self.report.summary("Update")
        return self.report

    def self_update(self) -> bool:
        """Pull the olecharms checkout.

        Returns:
            True when the pull changed the definitions file or the olecharms
            sources, in which case the rest of the run would work from stale
            definitions or code.
        """
        repo = GitRepository(self.env.repo_dir)
        if not repo.is_checkout():
            return False

        self.report.info("Updating olecharms repo...")
        before = self._checkout_digests()
        try:
            repo.pull_ff_only()
        except RuntimeError as e:
            logger.debug("self update failed: %s", e)
            self.report.warn("Could not update olecharms repo (may have local changes)")
            return False
        return self._checkout_digests() != before

    def _checkout_digests(self) -> Tuple[Optional[str], Optional[str]]:
        return file_digest(self.env.definitions_file), tree_digest(self.env.source_dir)

    def install_packages(self) -> None:
        self.packages.install(self.definitions.packages_for(self.env.os_name))

    def create_vim_dirs(self) -> None:
        for directory in self.env.vim_dirs:
            directory.mkdir(parents=True, exist_ok=True)
        self.report.info(f"Vim directories created under {self.env.vim_dir}")

    def install_pathogen(self) -> None:
        staging = self.env.pathogen_staging
        if self.definitions.pathogen_repo:
            self.reconciler.reconcile("vim-pathogen", self.definitions.pathogen_repo, staging)

        target = self.env.vim_dir / "autoload" / "pathogen.vim"
        staged = staging / "autoload" / "pathogen.vim"
        bundled = self.env.bundled_dir / "autoload" / "pathogen.vim"
        if staged.is_file():
            source = staged
        elif bundled.is_file():
            source = bundled
        else:
            self.report.error("Could not find pathogen.vim anywhere")
            return

        if copy_if_changed(source, target):
            origin = "bundled copy" if source == bundled else str(staging)
            self.report.info(f"pathogen.vim installed to {target.parent} from {origin}")
        else:
            self.report.info("pathogen.vim is up to date")

    def install_plugins(self) -> None:
        if not self.definitions.vim_plugins:
            self.report.warn("No plugins defined in packages.yaml")
            return

        for plugin in self.definitions.vim_plugins:
            name = plugin["name"]
            if not is_valid_name(name):
                # An empty or dotted name would resolve to the bundle dir itself
                self.report.error(f"Skipping plugin with invalid name {name!r}")
                continue
            self.reconciler.reconcile(
                name,
                plugin["url"],
                self.env.bundle_dir / name,
                fallback=self.env.bundled_dir / "bundle" / name,
                archive_dir=self.env.disabled_bundle_dir,
            )

    @property
    def vimrc_source_line(self) -> str:
        return f"source {self.env.managed_vimrc}"

    def install_vimrc(self) -> None:
        changed = rcfile.ensure_line(
            VIMRC_MARKER,
            self.vimrc_source_line,
            [self.env.vimrc],
            stale_pattern=VIMRC_STALE_PATTERN,
            backup=True,
        )
        if changed:
            self.report.info(f"Added source line to {self.env.vimrc}")
        else:
            self.report.info(f"vimrc source line already present in {self.env.vimrc}")

    def install_fonts(self) -> None:
        families = self.definitions.font_families
        if not families:
            logger.debug("No font families defined, skipping fonts")
            return

        font_dir = self.env.font_dir
        font_dir.mkdir(parents=True, exist_ok=True)

        bundled = self.env.bundled_dir / "fonts" / "powerline"
        staging = self.env.fonts_staging
        if self.definitions.powerline_fonts_repo:
            self.reconciler.reconcile(
                "powerline-fonts", self.definitions.powerline_fonts_repo, staging, fallback=bundled
            )

        if staging.is_dir():
            font_source = staging
        elif bundled.is_dir():
            font_source = bundled
            self.report.info("Using bundled fonts")
        else:
            self.report.error("No font source available")
            return

        copied_any = False
        for family in families:
            if not is_valid_name(family):
                self.report.error(f"Skipping font family with invalid name {family!r}")
                continue
            family_dir = font_source / family
            if not family_dir.is_dir():
                self.report.warn(f"Font family not found: {family}")
                continue
            copied = [
                font
                for font in sorted(family_dir.iterdir())
                if font.suffix.lower() in FONT_SUFFIXES
                and copy_if_changed(font, font_dir / font.name)
            ]
            copied_any = copied_any or bool(copied)
            self.report.info(f"Installed font family: {family}")

        if copied_any and self.env.os_name == "linux" and shutil.which("fc-cache"):
            try:
                subprocess.run(["fc-cache", "-f", str(font_dir)], check=True, capture_output=True)
                self.report.info("Font cache updated")
            except subprocess.CalledProcessError:
                self.report.warn("fc-cache failed; new fonts appear after the next login")

    def run_post_commands(self) -> None:
        commands = self.definitions.post_install_commands
        if not commands:
            return

        self.report.info("Running post-install commands...")
        for command in commands:
            self.report.info(f"  → {command}")
            # The definitions file is trusted, its commands are shell snippets
            result = subprocess.run(command, shell=True, cwd=self.env.repo_dir)
            if result.returncode != 0:
                self.report.warn(f"Post-install command failed: {command}")

    def apply_features(self) -> None:
        features = self.features
        if features is None:
            store = ConfigStore(self.env.settings_file)
            try:
                store.load(self.env, self.crontab)
            except (MigrationError, OSError, ValueError) as e:
                self.report.error(f"Could not load settings: {e}")
                return
            features = FeatureManager(self.env, store, self.report, self.crontab)
            self.features = features
        features.apply_all()

    def outcome(self, name: str) -> Optional[Outcome]:
        return self.report.outcome(name)
