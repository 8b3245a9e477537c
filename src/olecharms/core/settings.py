"""Versioned key/value settings for optional features.

The settings file is a list of ``KEY=value`` lines::

    # olecharms configuration
    CONFIG_VERSION=3
    SHELL_COMMANDS=true
    CLEANER_SCHEDULE=shell

The file is parsed line by line and never sourced or evaluated, since
anything else running as the user can write to it. Lines that do not look
like ``IDENTIFIER=value`` are ignored.

Older files are brought up to :data:`TARGET_VERSION` one step at a time by
the functions in :data:`MIGRATIONS`. Each step only adds keys with their
defaults, so values the user already set survive every migration.
"""

from __future__ import annotations

import logging
import os
import re
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Dict, Optional

if TYPE_CHECKING:
    from .environment import Environment
    from .scheduler import Crontab

logger = logging.getLogger(__name__)

VERSION_KEY = "CONFIG_VERSION"
TARGET_VERSION = 3

LINE_RE = re.compile(r"^([A-Za-z0-9_]+)=(.*)$")

TRUE_VALUES = ("1", "true", "yes", "on")


class MigrationError(Exception):
    """Raised when a settings file cannot be migrated to the target version."""


@dataclass
class ConfigRecord:
    """Flat settings map plus its schema version."""

    values: Dict[str, str] = field(default_factory=dict)

    @property
    def version(self) -> int:
        try:
            return int(self.values.get(VERSION_KEY, "0"))
        except ValueError:
            return 0

    @version.setter
    def version(self, value: int) -> None:
        self.values[VERSION_KEY] = str(value)

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self.values.get(key, default)

    def get_bool(self, key: str, default: bool = False) -> bool:
        value = self.values.get(key)
        if value is None:
            return default
        return value.strip().lower() in TRUE_VALUES

    def get_int(self, key: str, default: int = 0) -> int:
        try:
            return int(self.values.get(key, default))
        except (TypeError, ValueError):
            return default

    def set(self, key: str, value: object) -> None:
        if not LINE_RE.match(f"{key}="):
            raise ValueError(f"Invalid settings key: {key!r}")
        if isinstance(value, bool):
            value = "true" if value else "false"
        text = str(value)
        if "\n" in text:
            raise ValueError(f"Settings value for {key} must be a single line")
        self.values[key] = text

    def setdefault(self, key: str, value: object) -> None:
        if key not in self.values:
            self.set(key, value)


def parse(text: str) -> ConfigRecord:
    """Parse settings text without evaluating any of it."""
    record = ConfigRecord()
    for number, raw in enumerate(text.splitlines(), 1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        match = LINE_RE.match(line)
        if not match:
            logger.debug("Ignoring settings line %d: %r", number, raw)
            continue
        key, value = match.groups()
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
            value = value[1:-1]
        record.values[key] = value
    return record


def dump(record: ConfigRecord) -> str:
    lines = ["# olecharms configuration", f"{VERSION_KEY}={record.version}"]
    for key in sorted(record.values):
        if key != VERSION_KEY:
            lines.append(f"{key}={record.values[key]}")
    return "\n".join(lines) + "\n"


def _migrate_0_to_1(record: ConfigRecord) -> None:
    record.setdefault("SHELL_COMMANDS", False)


def _migrate_1_to_2(record: ConfigRecord) -> None:
    record.setdefault("SHELL_THEME", False)
    record.setdefault("THEME_COLOR", "blue")


def _migrate_2_to_3(record: ConfigRecord) -> None:
    record.setdefault("CLEAN_SWAPFILES", False)
    record.setdefault("CLEAN_ARCHIVES", False)
    record.setdefault("CLEANER_SCHEDULE", "shell")
    record.setdefault("CLEAN_MAX_AGE_DAYS", 30)
    record.setdefault("CLEAN_INTERVAL_HOURS", 24)


# Maps the version a step starts from to the step itself.
MIGRATIONS: Dict[int, Callable[[ConfigRecord], None]] = {
    0: _migrate_0_to_1,
    1: _migrate_1_to_2,
    2: _migrate_2_to_3,
}


def migrate(
    record: ConfigRecord,
    migrations: Optional[Dict[int, Callable[[ConfigRecord], None]]] = None,
    target: int = TARGET_VERSION,
) -> bool:
    """Advance ``record`` to ``target`` one version at a time.

    Returns:
        True if the record changed.

    Raises:
        MigrationError: If the record is newer than the target, or a step
            between its version and the target has no migration function.
    """
    migrations = MIGRATIONS if migrations is None else migrations
    version = record.version
    if version > target:
        raise MigrationError(
            f"Settings version {version} is newer than this olecharms supports ({target})"
        )

    start = version
    while version < target:
        step = migrations.get(version)
        if step is None:
            raise MigrationError(f"No settings migration from version {version} to {version + 1}")
        logger.debug("Migrating settings from version %d to %d", version, version + 1)
        step(record)
        version += 1
        record.version = version
    return version != start


class ConfigStore:
    """Reads, migrates and writes the settings file.

    Attributes:
        path (Path): Location of the settings file.
        record (ConfigRecord): The loaded settings.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self.record = ConfigRecord()
        self.migrated = False

    def exists(self) -> bool:
        return self.path.is_file()

    def bootstrap(self, env: "Environment", crontab: Optional["Crontab"] = None) -> ConfigRecord:
        """Create a first record from what is already installed.

        A machine that was set up by an older olecharms (or by hand) may
        already carry the rc entries or generated scripts of some features.
        Those features start out enabled instead of being switched off and
        left half-installed.
        """
        from .features import observe_features

        record = ConfigRecord()
        migrate(record)
        for key, value in observe_features(env, crontab).items():
            record.set(key, value)
        self.record = record
        return record

    def read_and_migrate(self) -> ConfigRecord:
        """Read the settings file and bring it up to the target version."""
        record = parse(self.path.read_text(errors="replace"))
        self.migrated = migrate(record)
        self.record = record
        return record

    def write(self, record: Optional[ConfigRecord] = None) -> None:
        """Write the record atomically."""
        if record is not None:
            self.record = record
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=".config.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w") as f:
                f.write(dump(self.record))
            os.replace(tmp_name, self.path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    def load(self, env: "Environment", crontab: Optional["Crontab"] = None) -> ConfigRecord:
        """Bootstrap or read+migrate, persisting the result when it changed."""
        if not self.exists():
            record = self.bootstrap(env, crontab)
            self.write(record)
            logger.debug("Created settings file %s", self.path)
            return record

        record = self.read_and_migrate()
        if self.migrated:
            self.write(record)
        return record

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self.record.get(key, default)

    def set(self, key: str, value: object) -> None:
        self.record.set(key, value)
