"""Logging setup for the rangexp CLI.

Verbosity levels:
- 0 (default): the configured level (WARNING unless config says otherwise)
- 1 (-v):      INFO - link outcomes
- 2+ (-vv):    DEBUG - streak merge decisions, storage commits
"""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

err_console = Console(stderr=True)


def level_for_verbosity(verbosity: int, default: str = "WARNING") -> int:
    """Map a -v count to a logging level, falling back to the named default."""
    if verbosity >= 2:
        return logging.DEBUG
    if verbosity == 1:
        return logging.INFO
    level = logging.getLevelName(default)
    return level if isinstance(level, int) else logging.WARNING


def setup_logging(verbosity: int = 0, default: str = "WARNING") -> logging.Logger:
    """Configure the rangexp logger tree with a Rich handler. Safe to call twice."""
    logger = logging.getLogger("rangexp")
    logger.setLevel(level_for_verbosity(verbosity, default))
    if not any(isinstance(h, RichHandler) for h in logger.handlers):
        handler = RichHandler(console=err_console, show_path=False, markup=False)
        handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
        logger.addHandler(handler)
    return logger
