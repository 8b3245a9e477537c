"""Per-run progress output and error accounting."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional

from rich.console import Console
from rich.markup import escape

logger = logging.getLogger(__name__)


class Outcome(str, Enum):
    """What reconciling a single resource did."""

    SKIPPED = "skipped"
    UPDATED = "updated"
    CLONED = "cloned"
    RESTORED_FROM_FALLBACK = "restored_from_fallback"
    FAILED = "failed"


@dataclass
class RunReport:
    """Collects what happened during one install/update/config run.

    Every step reports through the same object instead of bumping a global
    counter. Errors never stop the run; the count is shown by
    :meth:`summary` at the end.
    """

    console: Console = field(default_factory=Console)
    errors: int = 0
    warnings: int = 0
    outcomes: Dict[str, Outcome] = field(default_factory=dict)

    def info(self, message: str) -> None:
        self.console.print(f"[green][+][/green] {escape(message)}")
        logger.debug(message)

    def warn(self, message: str) -> None:
        self.warnings += 1
        self.console.print(f"[yellow][!][/yellow] {escape(message)}")
        logger.debug("warning: %s", message)

    def error(self, message: str) -> None:
        self.errors += 1
        self.console.print(f"[red][-][/red] {escape(message)}")
        logger.debug("error: %s", message)

    def heading(self, title: str) -> None:
        self.console.print(f"[bold]{escape(title)}[/bold]")
        self.console.print()

    def record(self, name: str, outcome: Outcome) -> Outcome:
        """Remember the outcome for a resource and hand it back."""
        self.outcomes[name] = outcome
        return outcome

    def outcome(self, name: str) -> Optional[Outcome]:
        return self.outcomes.get(name)

    @property
    def ok(self) -> bool:
        return self.errors == 0

    def summary(self, operation: str) -> None:
        """Print the closing line for an operation (e.g. ``"Install"``)."""
        self.console.print()
        if self.errors == 0:
            self.info(f"{operation} complete! No errors.")
        else:
            self.console.print(
                f"[yellow][!][/yellow] {escape(operation)} complete with {self.errors} "
                "error(s). Review output above."
            )
