"""Managed lines in shell and vim startup files.

An entry is a marker line followed by a payload line::

    # olecharms shell commands - do not remove this line
    source /home/me/.config/olecharms/generated/olecharms-shell.sh

The marker is what makes the entry idempotent: once it is in a file the
entry is considered present and the payload is left alone. The one exception
is a stale payload (see ``stale_pattern`` on :func:`ensure_line`), which is
rewritten in place when the managed file moved to a different path.
"""

from __future__ import annotations

import logging
import os
import re
import shutil
import tempfile
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Pattern, Sequence, Union

logger = logging.getLogger(__name__)


# Undecodable bytes in user files round-trip through surrogate escapes.
ENCODING_ERRORS = "surrogateescape"


def _read_lines(path: Path) -> List[str]:
    return path.read_text(errors=ENCODING_ERRORS).splitlines()


def _write_atomic(path: Path, lines: List[str]) -> None:
    """Write ``lines`` to ``path`` through a temp file and a rename."""
    content = "\n".join(lines) + "\n" if lines else ""
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", errors=ENCODING_ERRORS) as f:
            f.write(content)
        if path.exists():
            shutil.copymode(path, tmp_name)
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


def backup_file(path: Path) -> Optional[Path]:
    """Copy ``path`` to ``<path>.backup.<timestamp>`` if it exists."""
    if not path.exists():
        return None
    backup = path.with_name(f"{path.name}.backup.{datetime.now().strftime('%Y%m%d_%H%M%S')}")
    shutil.copy2(path, backup)
    logger.debug("Backed up %s to %s", path, backup)
    return backup


def count_marker(marker: str, path: Path) -> int:
    """Count lines in ``path`` equal to ``marker``."""
    if not path.is_file():
        return 0
    return sum(1 for line in _read_lines(path) if line.strip() == marker)


def has_marker(marker: str, path: Path) -> bool:
    return count_marker(marker, path) > 0


def has_line(line: str, path: Path) -> bool:
    """Check whether ``path`` contains ``line`` (ignoring surrounding space)."""
    if not path.is_file():
        return False
    return any(existing.strip() == line for existing in _read_lines(path))


def _rewrite_stale(path: Path, payload: str, stale_pattern: Pattern[str]) -> bool:
    lines = _read_lines(path)
    changed = False
    for index, line in enumerate(lines):
        if line.strip() != payload and stale_pattern.search(line):
            logger.debug("Rewriting stale line in %s: %s", path, line)
            lines[index] = payload
            changed = True
    if changed:
        _write_atomic(path, lines)
    return changed


def _append_entry(path: Path, marker: str, payload: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    needs_newline = (
        path.is_file() and path.stat().st_size > 0 and not path.read_bytes().endswith(b"\n")
    )
    with open(path, "a", errors=ENCODING_ERRORS) as f:
        if needs_newline:
            f.write("\n")
        f.write(f"\n{marker}\n{payload}\n")


def ensure_line(
    markers: Union[str, Sequence[str]],
    payload: str,
    rc_files: Sequence[Path],
    default: Optional[Path] = None,
    stale_pattern: Optional[Union[str, Pattern[str]]] = None,
    backup: bool = False,
) -> List[Path]:
    """Make sure every existing rc file carries the marker and payload.

    Args:
        markers: The marker line to write, or a sequence whose first item is
            written and whose other items are older spellings that also count
            as present.
        payload: The line that goes right after the marker.
        rc_files: Candidate files. Only the ones that exist are touched.
        default: File to create when none of the candidates exist
            (defaults to the first candidate).
        stale_pattern: Regex matching older payloads that point at the same
            thing through a different path; matching lines are rewritten to
            ``payload`` in place.
        backup: Copy a file aside before appending to it.

    Returns:
        The files that were modified or created.
    """
    if isinstance(markers, str):
        markers = [markers]
    marker = markers[0]
    if isinstance(stale_pattern, str):
        stale_pattern = re.compile(stale_pattern)

    targets = [path for path in rc_files if path.is_file()]
    if not targets:
        fallback = default or (rc_files[0] if rc_files else None)
        if fallback is None:
            return []
        targets = [fallback]

    changed: List[Path] = []
    for path in targets:
        if path.is_file() and stale_pattern is not None:
            if _rewrite_stale(path, payload, stale_pattern):
                changed.append(path)

        if any(has_marker(m, path) for m in markers):
            continue

        if backup:
            backup_file(path)
        _append_entry(path, marker, payload)
        if path not in changed:
            changed.append(path)
    return changed


def remove_line(
    marker: str,
    rc_files: Sequence[Path],
    payloads: Sequence[str] = (),
) -> List[Path]:
    """Remove a managed entry from every rc file that has it.

    The marker line, the payload line right after it, any line equal to one
    of ``payloads`` and the blank separator line in front of the marker are
    dropped. Each file is replaced atomically.

    Returns:
        The files that were modified.
    """
    extra = {p.strip() for p in payloads}
    changed: List[Path] = []
    for path in rc_files:
        if not path.is_file():
            continue

        lines = _read_lines(path)
        kept: List[str] = []
        skip_next = False
        modified = False
        for line in lines:
            stripped = line.strip()
            if skip_next:
                skip_next = False
                modified = True
                continue
            if stripped == marker:
                if kept and kept[-1].strip() == "":
                    kept.pop()
                skip_next = True
                modified = True
                continue
            if stripped in extra:
                modified = True
                continue
            kept.append(line)

        if modified:
            _write_atomic(path, kept)
            changed.append(path)
    return changed
