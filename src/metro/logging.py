"""Logging setup for metro.

The console shows progress lines (INFO) as bare messages, the way a
benchmark run reports itself, and prefixes anything more severe with
its level so dirty-file warnings and errors stand out.  ``-v`` adds
DEBUG detail (git invocations, captured stderr), ``-q`` keeps only
warnings and errors.  An optional log file always records everything,
timestamped, so a long multi-revision run leaves a complete trace.
"""

from __future__ import annotations

import logging
from pathlib import Path

_LOGGER_NAME = "metro"
_FILE_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
_PROGRESS_FORMAT = "%(message)s"
_ALERT_FORMAT = "%(levelname)s: %(message)s"
_DEBUG_FORMAT = "debug: %(name)s: %(message)s"


class ConsoleFormatter(logging.Formatter):
    """Bare INFO lines, level-prefixed everything else."""

    def __init__(self) -> None:
        super().__init__(_PROGRESS_FORMAT)
        self._alert = logging.Formatter(_ALERT_FORMAT)
        self._debug = logging.Formatter(_DEBUG_FORMAT)

    def format(self, record: logging.LogRecord) -> str:
        if record.levelno >= logging.WARNING:
            return self._alert.format(record)
        if record.levelno < logging.INFO:
            return self._debug.format(record)
        return super().format(record)


def _console_level(verbose: bool, quiet: bool) -> int:
    if verbose:
        return logging.DEBUG
    if quiet:
        return logging.WARNING
    return logging.INFO


def setup_logging(
    *,
    verbose: bool = False,
    quiet: bool = False,
    log_file: Path | None = None,
) -> logging.Logger:
    """Configure and return the ``metro`` logger.

    Safe to call more than once; earlier handlers are replaced.

    Args:
        verbose: Console shows DEBUG messages.
        quiet: Console shows warnings and errors only. Ignored with *verbose*.
        log_file: Also write every message, at DEBUG, to this file.
    """
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(logging.DEBUG)
    logger.handlers.clear()

    console = logging.StreamHandler()
    console.setLevel(_console_level(verbose, quiet))
    console.setFormatter(ConsoleFormatter())
    logger.addHandler(console)

    if log_file is not None:
        fh = logging.FileHandler(log_file, encoding="utf-8")
        fh.setLevel(logging.DEBUG)
        fh.setFormatter(logging.Formatter(_FILE_FORMAT))
        logger.addHandler(fh)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a named child logger under the ``metro.`` namespace."""
    return logging.getLogger(f"{_LOGGER_NAME}.{name}")
