"""Optional shell features and their on-disk artifacts.

Each feature owns a generated script under the config directory and, for
the shell-facing ones, a managed entry in the shell rc files. Cleaners are
also wired into a schedule: either the hook dispatcher sourced at shell
startup (``shell``) or one crontab line per cleaner (``cron``).
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional

from . import rcfile
from .environment import Environment
from .report import RunReport
from .scheduler import Crontab, TaskStore, launch_detached, maybe_run
from .settings import ConfigRecord, ConfigStore
from .templates import (
    CleanerSpec,
    CleanupRule,
    ThemeSpec,
    render_cleaner,
    render_hook_dispatcher,
    render_shell_loader,
    render_theme,
    write_script,
)

logger = logging.getLogger(__name__)

SCHEDULE_KEY = "CLEANER_SCHEDULE"
SCHEDULES = ("shell", "cron")
CRON_TIME = "0 12 * * *"

HOOK_MARKER = "# olecharms hooks - do not remove this line"
HOOK_SCRIPT = "olecharms-hooks.sh"


class Feature(str, Enum):
    SHELL_COMMANDS = "shell_commands"
    SHELL_THEME = "shell_theme"
    CLEAN_SWAPFILES = "clean_swapfiles"
    CLEAN_ARCHIVES = "clean_archives"

    @property
    def key(self) -> str:
        return self.value.upper()


CLEANERS = (Feature.CLEAN_SWAPFILES, Feature.CLEAN_ARCHIVES)


@dataclass(frozen=True)
class FeatureInfo:
    label: str
    script: str
    marker: Optional[str] = None


FEATURES: Dict[Feature, FeatureInfo] = {
    Feature.SHELL_COMMANDS: FeatureInfo(
        "Shell commands from the olecharms shell directory",
        "olecharms-shell.sh",
        "# olecharms shell commands - do not remove this line",
    ),
    Feature.SHELL_THEME: FeatureInfo(
        "Prompt theme",
        "olecharms-theme.sh",
        "# olecharms theme - do not remove this line",
    ),
    Feature.CLEAN_SWAPFILES: FeatureInfo(
        "Clean old vim swap and undo files",
        "olecharms-clean-swapfiles.sh",
    ),
    Feature.CLEAN_ARCHIVES: FeatureInfo(
        "Clean old archived plugins and backups",
        "olecharms-clean-archives.sh",
    ),
}


def script_path(env: Environment, feature: Feature) -> Path:
    return env.generated_dir / FEATURES[feature].script


def source_line(path: Path) -> str:
    return f'[ -f "{path}" ] && source "{path}"'


def stale_source_pattern(script_name: str) -> str:
    return r"source .*/" + script_name.replace(".", r"\.")


def cleaner_spec(env: Environment, feature: Feature, days: int) -> CleanerSpec:
    if feature is Feature.CLEAN_SWAPFILES:
        rules = [
            CleanupRule(env.vim_dir / "swapfiles"),
            CleanupRule(env.vim_dir / "undodir"),
        ]
    else:
        rules = [
            CleanupRule(env.disabled_bundle_dir),
            CleanupRule(env.vim_dir, pattern="*.backup.*"),
            CleanupRule(env.home, pattern=".vimrc.backup.*"),
        ]
    return CleanerSpec(
        name=feature.value.replace("clean_", ""),
        description=FEATURES[feature].label,
        days=days,
        rules=rules,
    )


def observe_features(env: Environment, crontab: Optional[Crontab] = None) -> Dict[str, object]:
    """Derive feature flags from what is installed right now."""
    observed: Dict[str, object] = {}
    for feature, info in FEATURES.items():
        if info.marker is not None:
            enabled = any(rcfile.has_marker(info.marker, rc) for rc in env.shell_rc_files)
        else:
            enabled = script_path(env, feature).is_file()
        observed[feature.key] = enabled

    schedule = "shell"
    if crontab is not None and crontab.available():
        try:
            if any(crontab.has_entry(cron_marker(feature)) for feature in CLEANERS):
                schedule = "cron"
        except RuntimeError as e:
            logger.warning("Could not read crontab, assuming shell schedule: %s", e)
    observed[SCHEDULE_KEY] = schedule
    return observed


def cron_marker(feature: Feature) -> str:
    return f"olecharms:{feature.value}"


class FeatureManager:
    """Turns features on and off and keeps their artifacts in sync.

    Attributes:
        env (Environment): Paths to work with.
        store (ConfigStore): Loaded settings; every toggle is persisted.
        report (RunReport): Progress and error output.
        crontab (Crontab): Used when cleaners are scheduled through cron.
    """

    def __init__(
        self,
        env: Environment,
        store: ConfigStore,
        report: RunReport,
        crontab: Optional[Crontab] = None,
    ):
        self.env = env
        self.store = store
        self.report = report
        self.crontab = crontab or Crontab()

    @property
    def record(self) -> ConfigRecord:
        return self.store.record

    def is_enabled(self, feature: Feature) -> bool:
        return self.record.get_bool(feature.key)

    @property
    def schedule(self) -> str:
        value = self.record.get(SCHEDULE_KEY, "shell")
        return value if value in SCHEDULES else "shell"

    def enable(self, feature: Feature) -> bool:
        """Install a feature and remember it."""
        if not self._install(feature):
            return False
        self.record.set(feature.key, True)
        self.store.write()
        self.sync_schedule()
        self.report.info(f"Enabled {FEATURES[feature].label}")
        return True

    def disable(self, feature: Feature) -> bool:
        """Remove a feature's artifacts and remember it is off."""
        self._uninstall(feature)
        self.record.set(feature.key, False)
        self.store.write()
        self.sync_schedule()
        self.report.info(f"Disabled {FEATURES[feature].label}")
        return True

    def set_schedule(self, schedule: str) -> bool:
        if schedule not in SCHEDULES:
            choices = ", ".join(SCHEDULES)
            self.report.error(f"Unknown schedule {schedule!r}; choose one of {choices}")
            return False
        self.record.set(SCHEDULE_KEY, schedule)
        self.store.write()
        self.sync_schedule()
        self.report.info(f"Cleaners now run from {schedule}")
        return True

    def apply_all(self) -> None:
        """Converge every feature's artifacts onto the stored flags."""
        for feature in Feature:
            if self.is_enabled(feature):
                self._install(feature)
            else:
                self._uninstall(feature)
        self.sync_schedule()

    def _render(self, feature: Feature) -> str:
        if feature is Feature.SHELL_COMMANDS:
            return render_shell_loader(self.env.shell_dir)
        if feature is Feature.SHELL_THEME:
            return render_theme(ThemeSpec(color=self.record.get("THEME_COLOR", "blue")))
        days = self.record.get_int("CLEAN_MAX_AGE_DAYS", 30)
        return render_cleaner(cleaner_spec(self.env, feature, days))

    def _install(self, feature: Feature) -> bool:
        info = FEATURES[feature]
        path = script_path(self.env, feature)
        try:
            content = self._render(feature)
        except ValueError as e:
            self.report.error(f"Could not render {info.script}: {e}")
            return False

        try:
            if write_script(path, content):
                self.report.info(f"Wrote {path}")
            if info.marker is not None:
                changed = rcfile.ensure_line(
                    info.marker,
                    source_line(path),
                    self.env.shell_rc_files,
                    default=self.env.default_shell_rc,
                    stale_pattern=stale_source_pattern(info.script),
                )
                for rc in changed:
                    self.report.info(f"Added {info.script} to {rc}")
        except OSError as e:
            self.report.error(f"Could not install {info.label}: {e}")
            return False
        return True

    def _uninstall(self, feature: Feature) -> None:
        info = FEATURES[feature]
        path = script_path(self.env, feature)
        try:
            if info.marker is not None:
                for rc in rcfile.remove_line(info.marker, self.env.shell_rc_files):
                    self.report.info(f"Removed {info.script} from {rc}")
            if path.exists():
                path.unlink()
                self.report.info(f"Removed {path}")
        except OSError as e:
            self.report.error(f"Could not remove {info.label}: {e}")

    def enabled_cleaners(self) -> List[Feature]:
        return [feature for feature in CLEANERS if self.is_enabled(feature)]

    def sync_schedule(self) -> None:
        """Wire enabled cleaners into the hook dispatcher or crontab."""
        cleaners = self.enabled_cleaners()
        hook_path = self.env.generated_dir / HOOK_SCRIPT

        try:
            if cleaners and self.schedule == "shell":
                if write_script(hook_path, render_hook_dispatcher()):
                    self.report.info(f"Wrote {hook_path}")
                rcfile.ensure_line(
                    HOOK_MARKER,
                    source_line(hook_path),
                    self.env.shell_rc_files,
                    default=self.env.default_shell_rc,
                    stale_pattern=stale_source_pattern(HOOK_SCRIPT),
                )
            else:
                rcfile.remove_line(HOOK_MARKER, self.env.shell_rc_files)
                if hook_path.exists():
                    hook_path.unlink()
        except OSError as e:
            self.report.error(f"Could not update shell hook: {e}")

        use_cron = self.schedule == "cron"
        if use_cron and cleaners and not self.crontab.available():
            self.report.error("crontab not found; cleaners cannot be scheduled through cron")
            return

        for feature in CLEANERS:
            marker = cron_marker(feature)
            try:
                if use_cron and feature in cleaners:
                    line = f"{CRON_TIME} {script_path(self.env, feature)}"
                    if self.crontab.ensure_entry(marker, line):
                        self.report.info(f"Scheduled {feature.value} in crontab")
                elif self.crontab.remove_entry(marker):
                    self.report.info(f"Removed {feature.value} from crontab")
            except RuntimeError as e:
                if use_cron:
                    self.report.error(str(e))
                else:
                    self.report.warn(f"Could not check crontab for {feature.value}: {e}")


def run_due_tasks(
    env: Environment,
    record: ConfigRecord,
    store: Optional[TaskStore] = None,
    now: Optional[float] = None,
    launcher: Callable[[Path], None] = launch_detached,
) -> List[Feature]:
    """Launch the shell-scheduled cleaners whose interval has passed.

    Returns:
        The cleaners that were launched.
    """
    if record.get(SCHEDULE_KEY, "shell") != "shell":
        return []

    store = store or TaskStore(env.task_dir)
    interval = record.get_int("CLEAN_INTERVAL_HOURS", 24) * 3600
    now = time.time() if now is None else now

    launched = []
    for feature in CLEANERS:
        if not record.get_bool(feature.key):
            continue
        script = script_path(env, feature)
        if not script.is_file():
            logger.debug("Cleaner script %s is missing, skipping", script)
            continue
        if maybe_run(script, feature.value, interval, store, now=now, launcher=launcher):
            launched.append(feature)
    return launched
