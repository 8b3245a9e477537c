"""Tests for package and plugin definitions."""

from pathlib import Path
from typing import Dict

import pytest
import yaml

from olecharms.core.definitions import Definitions


def test_default_definitions() -> None:
    """Test the built-in defaults."""
    definitions = Definitions()
    assert definitions.vim_plugins == []
    assert "git" in definitions.check_commands
    assert not definitions.validate()


def write_definitions(tmp_path: Path, data: Dict) -> Path:
    path = tmp_path / "packages.yaml"
    path.write_text(yaml.safe_dump(data))
    return path


def test_load_definitions_file(tmp_path: Path) -> None:
    """Test loading definitions from file."""
    path = write_definitions(
        tmp_path,
        {
            "apt_packages": ["vim", "silversearcher-ag"],
            "brew_packages": ["vim", "the_silver_searcher"],
            "vim_plugins": [
                {"name": "nerdtree", "url": "https://github.com/preservim/nerdtree.git"},
                "vim-sensible|https://github.com/tpope/vim-sensible.git",
            ],
        },
    )

    definitions = Definitions()
    assert definitions.load(path)
    assert definitions.packages_for("linux") == ["vim", "silversearcher-ag"]
    assert definitions.packages_for("macos") == ["vim", "the_silver_searcher"]
    assert definitions.packages_for("unknown") == []
    assert [p["name"] for p in definitions.vim_plugins] == ["nerdtree", "vim-sensible"]
    assert definitions.get_plugin("vim-sensible")["url"].endswith("vim-sensible.git")
    assert "git" in definitions.check_commands


def test_load_missing_file(tmp_path: Path) -> None:
    assert not Definitions().load(tmp_path / "packages.yaml")


def test_load_invalid_yaml(tmp_path: Path) -> None:
    path = tmp_path / "packages.yaml"
    path.write_text("vim_plugins: [unclosed\n")
    assert not Definitions().load(path)


def test_wrong_types_are_rejected() -> None:
    """Test that a scalar where a list belongs is refused."""
    with pytest.raises(ValueError):
        Definitions().load_from_dict({"apt_packages": "vim"})
    with pytest.raises(ValueError):
        Definitions().load_from_dict({"vim_plugins": ["no-url-separator"]})


def test_validation_problems() -> None:
    """Test definitions validation."""
    definitions = Definitions()
    definitions.load_from_dict(
        {
            "vim_plugins": [
                {"name": "dup", "url": "u"},
                {"name": "dup", "url": "u"},
                {"name": "../bad", "url": "u"},
            ],
            "font_families": ["DejaVuSansMono"],
        }
    )

    problems = definitions.validate()
    assert "plugin dup is listed more than once" in problems
    assert any("../bad" in problem for problem in problems)
    assert "font_families are listed but powerline_fonts_repo is empty" in problems


def test_shipped_definitions_are_valid() -> None:
    """Test that the packages.yaml in the repository loads cleanly."""
    path = Path(__file__).resolve().parents[1] / "packages.yaml"
    definitions = Definitions()
    assert definitions.load(path)
    assert definitions.validate() == []
