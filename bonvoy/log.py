"""Logger construction.

Components never reach for a global logger: the driver builds one here and
hands it down through the stage contexts.
"""

from __future__ import annotations

import logging
import sys

LOGGER_NAME = "bonvoy"

LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "silent": logging.CRITICAL + 10,
}


def get_logger(level: str = "info", name: str = LOGGER_NAME) -> logging.Logger:
    """Return a logger that writes bare messages to stderr at ``level``.

    Calling this again with the same name reconfigures the level but does not
    stack handlers.
    """
    logger = logging.getLogger(name)
    logger.setLevel(LEVELS.get(level, logging.INFO))
    logger.propagate = False
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)
    return logger


def silent_logger() -> logging.Logger:
    """A logger that drops everything, for analysis-only runs."""
    logger = logging.getLogger(f"{LOGGER_NAME}.silent")
    logger.setLevel(LEVELS["silent"])
    logger.propagate = False
    if not logger.handlers:
        logger.addHandler(logging.NullHandler())
    return logger


def resolve_log_level(
    *, verbose: bool = False, quiet: bool = False, silent: bool = False
) -> str:
    """Map CLI verbosity flags to a level name. Silent wins over quiet over verbose."""
    if silent:
        return "silent"
    if quiet:
        return "warning"
    if verbose:
        return "debug"
    return "info"


def step(logger: logging.Logger, msg: str) -> None:
    """Log a visually distinct step header.

    Used to separate major phases of the release pipeline in terminal output.
    """
    logger.info(f"\n{'─' * 60}\n{msg}\n{'─' * 60}")
