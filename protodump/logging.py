"""Logger hierarchy and console setup for protodump runs."""

from __future__ import annotations

import logging
from pathlib import Path

_ROOT = "protodump"
_CONSOLE_FORMAT = "[protodump] %(levelname)s %(message)s"
# Emitters run on worker threads; verbose output names the worker.
_VERBOSE_FORMAT = "[protodump %(threadName)s] %(levelname)s %(name)s: %(message)s"
_FILE_FORMAT = "%(asctime)s %(levelname)s %(threadName)s %(name)s: %(message)s"


def get_logger(name: str | None = None) -> logging.Logger:
    """Return ``protodump.<name>``, or the package logger when *name* is empty."""
    return logging.getLogger(f"{_ROOT}.{name}" if name else _ROOT)


def level_for(*, verbose: bool = False, quiet: bool = False) -> int:
    if verbose:
        return logging.DEBUG
    if quiet:
        return logging.WARNING
    return logging.INFO


def configure_logging(
    *, verbose: bool = False, quiet: bool = False, log_file: Path | None = None
) -> logging.Logger:
    """Attach a console handler (and optionally a file handler) to the package logger.

    Handlers installed by an earlier call are replaced, so repeated ``main()``
    invocations in one process log each record once. The file sink always
    records DEBUG detail regardless of the console level.
    """
    console_level = level_for(verbose=verbose, quiet=quiet)
    logger = logging.getLogger(_ROOT)
    logger.propagate = False
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler()
    console.setLevel(console_level)
    console.setFormatter(logging.Formatter(_VERBOSE_FORMAT if verbose else _CONSOLE_FORMAT))
    logger.addHandler(console)

    logger_level = console_level
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        sink = logging.FileHandler(log_file, encoding="utf-8")
        sink.setLevel(logging.DEBUG)
        sink.setFormatter(logging.Formatter(_FILE_FORMAT))
        logger.addHandler(sink)
        logger_level = logging.DEBUG

    logger.setLevel(logger_level)
    return logger


__all__ = ["configure_logging", "get_logger", "level_for"]
