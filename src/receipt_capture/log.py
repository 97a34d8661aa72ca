"""Logging setup for the command line."""

import logging
import os
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

_LEVELS = {
    "CRITICAL": logging.CRITICAL,
    "ERROR": logging.ERROR,
    "WARN": logging.WARNING,
    "WARNING": logging.WARNING,
    "INFO": logging.INFO,
    "DEBUG": logging.DEBUG,
}

_handler: Optional[RichHandler] = None


def resolve_level(verbose: bool = False) -> int:
    if verbose:
        return logging.DEBUG
    return _LEVELS.get(os.environ.get("LOG_LEVEL", "").upper().strip(), logging.WARNING)


def configure_logging(verbose: bool = False, console: Optional[Console] = None) -> RichHandler:
    """Route library log records through a single rich handler on stderr.

    Safe to call repeatedly; the previously installed handler is replaced.
    """
    global _handler
    root = logging.getLogger()
    if _handler is not None:
        root.removeHandler(_handler)

    _handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
    )
    root.addHandler(_handler)
    root.setLevel(resolve_level(verbose))
    return _handler
