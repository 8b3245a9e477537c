"""Tests for managed rc file entries."""

from pathlib import Path

from olecharms.core import rcfile

MARKER = "# olecharms shell commands - do not remove this line"
PAYLOAD = '[ -f "/cfg/olecharms-shell.sh" ] && source "/cfg/olecharms-shell.sh"'


def test_creates_default_file_when_none_exist(tmp_path: Path) -> None:
    """Test that the default rc file is created when no candidate exists."""
    bashrc = tmp_path / ".bashrc"
    zshrc = tmp_path / ".zshrc"

    changed = rcfile.ensure_line(MARKER, PAYLOAD, [bashrc, zshrc], default=zshrc)

    assert changed == [zshrc]
    assert not bashrc.exists()
    assert zshrc.read_text() == f"\n{MARKER}\n{PAYLOAD}\n"


def test_ensure_line_is_idempotent(tmp_path: Path) -> None:
    """Test that a second call leaves the file unchanged."""
    bashrc = tmp_path / ".bashrc"
    bashrc.write_text("export EDITOR=vim\n")

    rcfile.ensure_line(MARKER, PAYLOAD, [bashrc])
    content = bashrc.read_text()
    changed = rcfile.ensure_line(MARKER, PAYLOAD, [bashrc])

    assert changed == []
    assert bashrc.read_text() == content
    assert rcfile.count_marker(MARKER, bashrc) == 1


def test_only_existing_candidates_are_touched(tmp_path: Path) -> None:
    """Test that existing rc files are updated and missing ones are not created."""
    bashrc = tmp_path / ".bashrc"
    zshrc = tmp_path / ".zshrc"
    bashrc.write_text("alias ll='ls -l'\n")

    changed = rcfile.ensure_line(MARKER, PAYLOAD, [bashrc, zshrc])

    assert changed == [bashrc]
    assert not zshrc.exists()
    assert rcfile.has_line(PAYLOAD, bashrc)


def test_older_marker_counts_as_present(tmp_path: Path) -> None:
    """Test that an alternate marker spelling prevents a duplicate entry."""
    bashrc = tmp_path / ".bashrc"
    bashrc.write_text("# old marker\nsource /somewhere/else.sh\n")

    changed = rcfile.ensure_line([MARKER, "# old marker"], PAYLOAD, [bashrc])

    assert changed == []
    assert not rcfile.has_marker(MARKER, bashrc)


def test_stale_payload_is_rewritten(tmp_path: Path) -> None:
    """Test that a payload pointing at an old location is rewritten in place."""
    vimrc = tmp_path / ".vimrc"
    marker = '" olecharms managed config - do not remove this line'
    vimrc.write_text(f"set number\n{marker}\nsource /old/checkout/vimthings/olevimrc.vim\n")
    payload = "source /new/checkout/vimthings/olevimrc.vim"

    changed = rcfile.ensure_line(
        marker,
        payload,
        [vimrc],
        stale_pattern=r"^\s*source\s+\S*/vimthings/olevimrc\.vim\s*$",
    )

    assert changed == [vimrc]
    assert vimrc.read_text() == f"set number\n{marker}\n{payload}\n"


def test_missing_trailing_newline_is_preserved_as_separate_line(tmp_path: Path) -> None:
    """Test that appending to a file without a final newline keeps its last line intact."""
    bashrc = tmp_path / ".bashrc"
    bashrc.write_text("export PATH=$HOME/bin:$PATH")

    rcfile.ensure_line(MARKER, PAYLOAD, [bashrc])

    lines = bashrc.read_text().splitlines()
    assert lines[0] == "export PATH=$HOME/bin:$PATH"
    assert MARKER in lines
    assert lines[-1] == PAYLOAD


def test_backup_is_taken_before_append(tmp_path: Path) -> None:
    """Test that backup=True copies the file aside before changing it."""
    vimrc = tmp_path / ".vimrc"
    vimrc.write_text("set nocompatible\n")

    rcfile.ensure_line(MARKER, PAYLOAD, [vimrc], backup=True)

    backups = list(tmp_path.glob(".vimrc.backup.*"))
    assert len(backups) == 1
    assert backups[0].read_text() == "set nocompatible\n"


def test_remove_line_restores_original(tmp_path: Path) -> None:
    """Test that removing an entry leaves the file as it was before adding it."""
    zshrc = tmp_path / ".zshrc"
    original = "export EDITOR=vim\nalias g=git\n"
    zshrc.write_text(original)

    rcfile.ensure_line(MARKER, PAYLOAD, [zshrc])
    changed = rcfile.remove_line(MARKER, [zshrc])

    assert changed == [zshrc]
    assert zshrc.read_text() == original


def test_remove_line_drops_extra_payloads(tmp_path: Path) -> None:
    """Test that loose copies of the payload are removed too."""
    bashrc = tmp_path / ".bashrc"
    bashrc.write_text(f"{PAYLOAD}\nexport A=1\n\n{MARKER}\n{PAYLOAD}\n")

    rcfile.remove_line(MARKER, [bashrc], payloads=[PAYLOAD])

    assert bashrc.read_text() == "export A=1\n"


def test_remove_line_ignores_files_without_entry(tmp_path: Path) -> None:
    """Test that files without the marker are not rewritten."""
    bashrc = tmp_path / ".bashrc"
    bashrc.write_text("export A=1\n")

    assert rcfile.remove_line(MARKER, [bashrc, tmp_path / ".zshrc"]) == []
    assert bashrc.read_text() == "export A=1\n"


def test_undecodable_bytes_round_trip(tmp_path: Path) -> None:
    """Test that Latin-1 content survives adding and removing an entry."""
    bashrc = tmp_path / ".bashrc"
    original = b"# caf\xe9\nexport LESSCHARSET=latin1\n"
    bashrc.write_bytes(original)

    rcfile.ensure_line(MARKER, PAYLOAD, [bashrc])
    assert rcfile.count_marker(MARKER, bashrc) == 1
    assert bashrc.read_bytes().startswith(original)

    rcfile.remove_line(MARKER, [bashrc])
    assert bashrc.read_bytes() == original
