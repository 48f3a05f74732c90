"""Logging setup for hotforge.

Every module logs through ``logging.getLogger(__name__)``; this module only
decides where those records go: a Rich handler on stderr, plus an optional
plain-text log file for sharing when something goes wrong.
"""

from __future__ import annotations

import logging
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

LOG_FORMAT = "%(asctime)s %(levelname)-5s [%(name)s] %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_installed: list[logging.Handler] = []


def configure_logging(level: str = "WARNING", log_file: Path | None = None) -> logging.Logger:
    """Install hotforge's handlers on the ``hotforge`` logger.

    Calling it again replaces the handlers installed by the previous call.
    Returns the package logger.
    """
    logger = logging.getLogger("hotforge")
    for handler in _installed:
        logger.removeHandler(handler)
        handler.close()
    _installed.clear()

    logger.setLevel(level.upper())
    logger.propagate = False

    rich_handler = RichHandler(
        console=Console(stderr=True),
        show_path=False,
        markup=False,
        rich_tracebacks=True,
    )
    rich_handler.setFormatter(logging.Formatter("%(message)s"))
    _installed.append(rich_handler)

    if log_file is not None:
        log_file = Path(log_file).expanduser()
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT, LOG_DATE_FORMAT))
        _installed.append(file_handler)

    for handler in _installed:
        logger.addHandler(handler)
    return logger
