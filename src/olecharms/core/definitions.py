"""Package, plugin and font definitions for olecharms."""

from __future__ import annotations

import copy
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from rich.console import Console

console = Console()

DEFAULT_DEFINITIONS: Dict[str, Any] = {
    "apt_packages": [],
    "brew_packages": [],
    "pathogen_repo": "",
    "powerline_fonts_repo": "",
    "vim_plugins": [],
    "font_families": [],
    "post_install_commands": [],
    "check_commands": ["git", "vim", "curl", "fc-cache", "ag", "autojump"],
}

LIST_KEYS = [
    "apt_packages",
    "brew_packages",
    "font_families",
    "post_install_commands",
    "check_commands",
]
URL_KEYS = ["pathogen_repo", "powerline_fonts_repo"]


def is_valid_name(name: str) -> bool:
    """Check that ``name`` can be used as a single directory name."""
    return bool(name) and "/" not in name and not name.startswith(".")


class Definitions:
    """What olecharms should install, read from ``packages.yaml``."""

    def __init__(self) -> None:
        """Initialize definitions with the built-in defaults."""
        self.data: Dict[str, Any] = {}
        self.apt_packages: List[str] = []
        self.brew_packages: List[str] = []
        self.pathogen_repo: str = ""
        self.powerline_fonts_repo: str = ""
        self.vim_plugins: List[Dict[str, str]] = []
        self.font_families: List[str] = []
        self.post_install_commands: List[str] = []
        self.check_commands: List[str] = []
        self._merge(copy.deepcopy(DEFAULT_DEFINITIONS))

    def load(self, path: Path) -> bool:
        """Load definitions from a YAML file.

        Returns:
            False when the file is missing or cannot be parsed.
        """
        if not path.is_file():
            console.print(f"[red][-][/red] Definitions file not found: {path}")
            return False

        try:
            with open(path, "r") as f:
                data = yaml.safe_load(f)
            if data:
                self._merge(data)
        except (OSError, yaml.YAMLError, ValueError) as e:
            console.print(f"[red][-][/red] Error loading definitions file {path}: {e}")
            return False
        return True

    def load_from_dict(self, data: Dict[str, Any]) -> None:
        """Merge definitions from a dictionary."""
        self._merge(data)

    def _merge(self, data: Dict[str, Any]) -> None:
        if not isinstance(data, dict):
            raise ValueError("Definitions must be a dictionary")

        self.data.update(data)

        for key in LIST_KEYS:
            if key in data:
                value = data[key] or []
                if not isinstance(value, list):
                    raise ValueError(f"{key} must be a list")
                setattr(self, key, [str(item) for item in value])

        for key in URL_KEYS:
            if key in data:
                value = data[key] or ""
                if not isinstance(value, str):
                    raise ValueError(f"{key} must be a string")
                setattr(self, key, value)

        if "vim_plugins" in data:
            plugins = data["vim_plugins"] or []
            if not isinstance(plugins, list):
                raise ValueError("vim_plugins must be a list")
            self.vim_plugins = [self._parse_plugin(entry) for entry in plugins]

    @staticmethod
    def _parse_plugin(entry: Any) -> Dict[str, str]:
        # Legacy format: "name|url"
        if isinstance(entry, str):
            if "|" not in entry:
                raise ValueError(f"Plugin entry {entry!r} must look like 'name|url'")
            name, url = entry.split("|", 1)
            return {"name": name.strip(), "url": url.strip()}

        if not isinstance(entry, dict):
            raise ValueError("Plugin entries must be mappings or 'name|url' strings")
        if "name" not in entry:
            raise ValueError(f"Plugin entry {entry} must have a name")
        return {"name": str(entry["name"]), "url": str(entry.get("url") or "")}

    def validate(self) -> List[str]:
        """Validate the definitions and return a list of problems."""
        errors = []

        names = set()
        for plugin in self.vim_plugins:
            name = plugin["name"]
            if not is_valid_name(name):
                errors.append(f"plugin name {name!r} is not a valid directory name")
            if name in names:
                errors.append(f"plugin {name} is listed more than once")
            names.add(name)
            if not plugin["url"]:
                errors.append(f"plugin {name} has no url")

        for family in self.font_families:
            if "/" in family:
                errors.append(f"font family {family!r} must not contain '/'")

        if self.font_families and not self.powerline_fonts_repo:
            errors.append("font_families are listed but powerline_fonts_repo is empty")

        return errors

    def packages_for(self, os_name: str) -> List[str]:
        """Return the system packages for the given OS."""
        if os_name == "linux":
            return self.apt_packages
        if os_name == "macos":
            return self.brew_packages
        return []

    def get_plugin(self, name: str) -> Optional[Dict[str, str]]:
        """Get a plugin definition by name."""
        return next((p for p in self.vim_plugins if p["name"] == name), None)

    def get(self, key: str, default: Any = None) -> Any:
        """Get a raw definitions value."""
        return self.data.get(key, default)
