"""Core functionality for olecharms."""

from .definitions import Definitions
from .environment import Environment
from .install import InstallManager
from .reconcile import Reconciler
from .report import Outcome, RunReport
from .settings import ConfigStore

__all__ = [
    "ConfigStore",
    "Definitions",
    "Environment",
    "InstallManager",
    "Outcome",
    "Reconciler",
    "RunReport",
]
