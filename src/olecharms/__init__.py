"""Environment bootstrapping for vim, fonts and shell helpers."""

__version__ = "0.3.0"

PROJECT_NAME = "olecharms"
