"""Tests for timestamp-gated tasks and the crontab shim."""

import os
import stat
from pathlib import Path
from typing import List

import pytest

from olecharms.core.scheduler import Crontab, TaskStore, maybe_run

INTERVAL = 3600
NOW = 1_700_000_000


@pytest.fixture
def task_store(tmp_path: Path) -> TaskStore:
    return TaskStore(tmp_path / "tasks")


def recorder(calls: List[Path]):
    def launch(script: Path) -> None:
        calls.append(script)

    return launch


def test_never_run_task_is_due(tmp_path: Path, task_store: TaskStore) -> None:
    """Test that a task without a timestamp runs and records the time."""
    calls: List[Path] = []
    script = tmp_path / "clean.sh"

    assert maybe_run(script, "clean", INTERVAL, task_store, now=NOW, launcher=recorder(calls))
    assert calls == [script]
    assert task_store.last_run("clean") == NOW


def test_task_is_gated_by_interval(tmp_path: Path, task_store: TaskStore) -> None:
    """Test that a task runs only once its interval has fully passed."""
    calls: List[Path] = []
    launch = recorder(calls)
    script = tmp_path / "clean.sh"

    task_store.mark_run("clean", NOW - INTERVAL + 1)
    assert not maybe_run(script, "clean", INTERVAL, task_store, now=NOW, launcher=launch)
    assert calls == []

    task_store.mark_run("clean", NOW - INTERVAL)
    assert maybe_run(script, "clean", INTERVAL, task_store, now=NOW, launcher=launch)
    assert calls == [script]


def test_corrupt_timestamp_counts_as_never_run(task_store: TaskStore) -> None:
    """Test that an unreadable timestamp file does not block the task."""
    task_store.directory.mkdir(parents=True)
    task_store.path_for("clean").write_text("yesterday\n")

    assert task_store.last_run("clean") == 0


def test_launch_failure_is_not_fatal(tmp_path: Path, task_store: TaskStore) -> None:
    """Test that a script that cannot start is reported as not launched."""

    def broken(script: Path) -> None:
        raise OSError("exec format error")

    assert not maybe_run(tmp_path / "x.sh", "x", INTERVAL, task_store, now=NOW, launcher=broken)
    assert task_store.last_run("x") == NOW


@pytest.fixture
def fake_crontab_binary(tmp_path: Path) -> Path:
    """A crontab stand-in that keeps its table in a file."""
    table = tmp_path / "crontab.txt"
    script = tmp_path / "bin" / "fake-crontab"
    script.parent.mkdir()
    script.write_text(
        "#!/bin/sh\n"
        f'TABLE="{table}"\n'
        'if [ "$1" = "-l" ]; then\n'
        '    [ -f "$TABLE" ] || { echo "no crontab for user" >&2; exit 1; }\n'
        '    cat "$TABLE"\n'
        'elif [ "$1" = "-" ]; then\n'
        '    cat > "$TABLE"\n'
        "fi\n"
    )
    script.chmod(script.stat().st_mode | stat.S_IEXEC)
    return script


def test_crontab_entries_round_trip(fake_crontab_binary: Path) -> None:
    """Test adding, replacing and removing a tagged crontab line."""
    crontab = Crontab(str(fake_crontab_binary))

    assert crontab.available()
    assert crontab.entries() == []

    assert crontab.ensure_entry("olecharms:clean_swapfiles", "0 12 * * * /a.sh")
    assert crontab.has_entry("olecharms:clean_swapfiles")
    assert not crontab.ensure_entry("olecharms:clean_swapfiles", "0 12 * * * /a.sh")

    assert crontab.ensure_entry("olecharms:clean_swapfiles", "0 12 * * * /b.sh")
    assert crontab.entries() == ["0 12 * * * /b.sh # olecharms:clean_swapfiles"]

    assert crontab.remove_entry("olecharms:clean_swapfiles")
    assert not crontab.has_entry("olecharms:clean_swapfiles")
    assert not crontab.remove_entry("olecharms:clean_swapfiles")


def test_crontab_keeps_unrelated_lines(
    fake_crontab_binary: Path, tmp_path: Path
) -> None:
    """Test that lines not owned by olecharms are preserved."""
    (tmp_path / "crontab.txt").write_text("*/5 * * * * /usr/bin/backup\n")
    crontab = Crontab(str(fake_crontab_binary))

    crontab.ensure_entry("olecharms:clean_archives", "0 12 * * * /c.sh")
    crontab.remove_entry("olecharms:clean_archives")

    assert crontab.entries() == ["*/5 * * * * /usr/bin/backup"]


def test_missing_crontab_binary(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Test that a system without crontab reports it instead of crashing."""
    monkeypatch.setenv("PATH", str(tmp_path))
    crontab = Crontab()

    assert not crontab.available()
    assert crontab.entries() == []
    assert not crontab.remove_entry("olecharms:clean_archives")
    with pytest.raises(RuntimeError):
        crontab.ensure_entry("olecharms:clean_archives", "0 12 * * * /c.sh")


def test_mark_run_creates_directory(tmp_path: Path) -> None:
    store = TaskStore(tmp_path / "a" / "b")
    store.mark_run("clean", NOW)
    assert os.path.isfile(store.path_for("clean"))


@pytest.fixture
def unreadable_crontab_binary(tmp_path: Path) -> Path:
    """A crontab stand-in whose table exists but cannot be listed."""
    table = tmp_path / "crontab.txt"
    table.write_text("*/5 * * * * /usr/bin/backup\n")
    script = tmp_path / "bin" / "denied-crontab"
    script.parent.mkdir()
    script.write_text(
        "#!/bin/sh\n"
        'if [ "$1" = "-l" ]; then\n'
        '    echo "crontab: cannot open your crontab: Permission denied" >&2\n'
        "    exit 1\n"
        "fi\n"
        f'cat > "{table}"\n'
    )
    script.chmod(script.stat().st_mode | stat.S_IEXEC)
    return script


def test_unreadable_crontab_is_never_overwritten(
    unreadable_crontab_binary: Path, tmp_path: Path
) -> None:
    """Test that a failed listing raises instead of replacing the user's table."""
    crontab = Crontab(str(unreadable_crontab_binary))

    with pytest.raises(RuntimeError, match="Permission denied"):
        crontab.entries()
    with pytest.raises(RuntimeError):
        crontab.ensure_entry("olecharms:clean_archives", "0 12 * * * /c.sh")
    with pytest.raises(RuntimeError):
        crontab.remove_entry("olecharms:clean_archives")

    assert (tmp_path / "crontab.txt").read_text() == "*/5 * * * * /usr/bin/backup\n"


def test_crontab_found_on_path(
    fake_crontab_binary: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Test the default binary name resolved through PATH."""
    link = fake_crontab_binary.parent / "crontab"
    link.symlink_to(fake_crontab_binary)
    monkeypatch.setenv("PATH", f"{link.parent}{os.pathsep}{os.environ['PATH']}")

    crontab = Crontab()
    crontab.ensure_entry("olecharms:clean_swapfiles", "0 12 * * * /a.sh")

    assert crontab.entries() == ["0 12 * * * /a.sh # olecharms:clean_swapfiles"]
