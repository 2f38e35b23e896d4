"""Logging setup for profilekit.

Modules log through ``logging.getLogger(__name__)``; this installs a single
Rich handler on the package logger according to the debug level.
"""

import logging

from rich.console import Console
from rich.logging import RichHandler


LOGGER_NAME = "profilekit"

LEVELS = {
    0: logging.WARNING,
    1: logging.INFO,
    2: logging.DEBUG,
    3: logging.DEBUG,
}


def setup_logging(debug_level: int = 0) -> logging.Logger:
    """Configure the package logger.

    Args:
        debug_level: 0 warnings only, 1 info, 2 debug, 3 debug with source paths

    Returns:
        The configured package logger
    """
    level = LEVELS.get(max(0, min(debug_level, 3)), logging.WARNING)
    logger = logging.getLogger(LOGGER_NAME)

    # Re-running setup replaces the handler instead of stacking another one
    for handler in list(logger.handlers):
        if getattr(handler, "_profilekit", False):
            logger.removeHandler(handler)

    handler = RichHandler(
        console=Console(stderr=True),
        show_path=debug_level >= 3,
        show_time=debug_level >= 2,
        rich_tracebacks=debug_level >= 2,
    )
    handler._profilekit = True
    handler.setLevel(level)
    logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False
    return logger
