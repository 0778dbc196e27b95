"""Logging for prodsched with dashboard-style verbosity levels.

The scheduling dashboard kept a running log panel where ingestion warnings,
data loads and job progress were interleaved. The same stream is produced
here through the standard logging module:

- warnings/errors are always shown (prefixed ``Warning:``/``Error:``)
- ``changes()`` reports data that was loaded, replaced or rejected
- ``checks()`` reports per-poll job status and per-row decisions
- ``debug()`` reports drag transitions and scale math
"""

from __future__ import annotations

import logging
import sys
from typing import Any, TextIO

CHANGES_LEVEL = 25  # Between INFO (20) and WARNING (30)
CHECKS_LEVEL = 15  # Between DEBUG (10) and INFO (20)

logging.addLevelName(CHANGES_LEVEL, "CHANGES")
logging.addLevelName(CHECKS_LEVEL, "CHECKS")

LOGGER_NAME = "prodsched"

_LEVELS_BY_VERBOSITY = {
    0: logging.WARNING,
    1: CHANGES_LEVEL,
    2: CHECKS_LEVEL,
    3: logging.DEBUG,
}


class ProdschedLogger(logging.Logger):
    """Logger with the two extra dashboard levels."""

    def changes(self, msg: str, *args: Any, **kwargs: Any) -> None:
        """Log a data change (verbosity 1)."""
        if self.isEnabledFor(CHANGES_LEVEL):
            self._log(CHANGES_LEVEL, msg, args, **kwargs)

    def checks(self, msg: str, *args: Any, **kwargs: Any) -> None:
        """Log a routine check (verbosity 2)."""
        if self.isEnabledFor(CHECKS_LEVEL):
            self._log(CHECKS_LEVEL, msg, args, **kwargs)


class _PanelFormatter(logging.Formatter):
    """Plain messages, with a severity prefix only for problems."""

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        if record.levelno >= logging.ERROR:
            return f"Error: {message}"
        if record.levelno >= logging.WARNING:
            return f"Warning: {message}"
        return message


def get_logger() -> ProdschedLogger:
    """Return the shared prodsched logger."""
    logging.setLoggerClass(ProdschedLogger)
    logger = logging.getLogger(LOGGER_NAME)
    assert isinstance(logger, ProdschedLogger)
    return logger


def setup_logger(verbosity: int, stream: TextIO | None = None) -> None:
    """Configure the prodsched logger.

    Safe to call repeatedly; existing handlers are replaced.

    Args:
        verbosity: 0=warnings only, 1=changes, 2=checks, 3=debug
        stream: Output stream (defaults to sys.stderr)
    """
    logger = get_logger()
    logger.handlers.clear()
    logger.setLevel(_LEVELS_BY_VERBOSITY.get(min(verbosity, 3), logging.WARNING))

    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setFormatter(_PanelFormatter("%(message)s"))
    logger.addHandler(handler)
    logger.propagate = False


def reset_logger() -> None:
    """Drop handlers and return to the quiet default (used by tests)."""
    logger = get_logger()
    logger.handlers.clear()
    logger.setLevel(logging.WARNING)
    logger.propagate = True
