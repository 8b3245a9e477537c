"""Logging setup for olecharms.

Progress lines a user is meant to read go through
:class:`olecharms.core.report.RunReport`. The :mod:`logging` tree gets the
same lines at debug level along with the git, crontab and subprocess details
the modules log on their own. By default only warnings reach the terminal;
``OLECHARMS_DEBUG=1`` shows everything and ``OLECHARMS_LOG_FILE`` keeps a
plain-text copy of a run.
"""

import logging
import os
import sys
from pathlib import Path
from types import TracebackType
from typing import Optional, Type

from rich.console import Console
from rich.logging import RichHandler

console = Console(stderr=True)

DEBUG_ENV = "OLECHARMS_DEBUG"
LOG_FILE_ENV = "OLECHARMS_LOG_FILE"
FILE_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def _log_uncaught(
    exc_type: Type[BaseException],
    exc_value: BaseException,
    exc_traceback: Optional[TracebackType],
) -> None:
    if issubclass(exc_type, KeyboardInterrupt):
        sys.__excepthook__(exc_type, exc_value, exc_traceback)
        return
    logging.getLogger("olecharms").critical(
        "olecharms stopped on an unexpected error",
        exc_info=(exc_type, exc_value, exc_traceback),
    )


def setup_logging(debug: bool = False, log_file: Optional[str] = None) -> None:
    """Route olecharms logging to the terminal and optionally a file.

    Args:
        debug: Show debug records on the terminal, with source paths.
        log_file: Path of a log file receiving every record. ``~`` is
            expanded and missing parent directories are created.
    """
    root = logging.getLogger()
    root.setLevel(logging.DEBUG if debug or log_file else logging.INFO)
    root.handlers.clear()

    terminal = RichHandler(
        console=console,
        show_path=debug,
        markup=False,
        rich_tracebacks=True,
        tracebacks_show_locals=debug,
    )
    terminal.setLevel(logging.DEBUG if debug else logging.WARNING)
    root.addHandler(terminal)

    if log_file:
        path = Path(log_file).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        root.addHandler(file_handler)

    sys.excepthook = _log_uncaught
    logging.getLogger(__name__).debug("Logging ready (debug=%s, file=%s)", debug, log_file)


def setup_logging_from_env() -> None:
    """Configure logging from ``OLECHARMS_DEBUG`` and ``OLECHARMS_LOG_FILE``."""
    debug = os.environ.get(DEBUG_ENV, "").lower() in ("1", "true", "yes", "on")
    setup_logging(debug=debug, log_file=os.environ.get(LOG_FILE_ENV) or None)
