"""Rendering of the small shell scripts olecharms generates.

Every script is a jinja2 template rendered against plain data, so the
generated content can be checked without touching the filesystem. Writing
is a separate step (:func:`write_script`).
"""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from jinja2 import Environment, PackageLoader, StrictUndefined

ANSI_COLORS: Dict[str, str] = {
    "red": "0;31",
    "green": "0;32",
    "yellow": "0;33",
    "blue": "0;34",
    "magenta": "0;35",
    "cyan": "0;36",
}

_env = Environment(
    loader=PackageLoader("olecharms", "templates"),
    undefined=StrictUndefined,  # Raise error on undefined variables
    trim_blocks=True,
    lstrip_blocks=True,
    keep_trailing_newline=True,
)


@dataclass
class CleanupRule:
    """Delete entries under ``directory`` older than the cleaner's age."""

    directory: Path
    pattern: Optional[str] = None
    max_depth: int = 1


@dataclass
class CleanerSpec:
    name: str
    description: str
    days: int
    rules: List[CleanupRule] = field(default_factory=list)


@dataclass
class ThemeSpec:
    color: str = "blue"
    path_color: str = "cyan"

    @property
    def zsh_color(self) -> str:
        return self.color

    @property
    def ansi_color(self) -> str:
        return ANSI_COLORS[self.color]

    @property
    def ansi_path_color(self) -> str:
        return ANSI_COLORS[self.path_color]


def render(template_name: str, **context: object) -> str:
    return _env.get_template(template_name).render(**context)


def render_shell_loader(shell_dir: Path) -> str:
    return render("shell_loader.sh.j2", shell_dir=shell_dir)


def render_hook_dispatcher(python: Optional[str] = None, module: str = "olecharms") -> str:
    return render("hook_dispatcher.sh.j2", python=python or sys.executable, module=module)


def render_cleaner(cleaner: CleanerSpec) -> str:
    return render("cleaner.sh.j2", cleaner=cleaner)


def render_theme(theme: ThemeSpec) -> str:
    if theme.color not in ANSI_COLORS or theme.path_color not in ANSI_COLORS:
        raise ValueError(f"Unknown theme color; choose from {', '.join(ANSI_COLORS)}")
    return render("theme.sh.j2", theme=theme)


def write_script(path: Path, content: str) -> bool:
    """Write an executable script, leaving it alone when nothing changed.

    Returns:
        True if the file was written.
    """
    if path.is_file() and path.read_text(errors="replace") == content:
        return False
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    path.chmod(0o755)
    return True
