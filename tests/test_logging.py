"""Tests for protodump.logging."""

from __future__ import annotations

import logging
from pathlib import Path

from protodump.logging import configure_logging, get_logger, level_for


def test_get_logger_nests_under_package() -> None:
    assert get_logger("writer").name == "protodump.writer"
    assert get_logger().name == "protodump"


def test_level_for_prefers_verbose_over_quiet() -> None:
    assert level_for() == logging.INFO
    assert level_for(quiet=True) == logging.WARNING
    assert level_for(verbose=True, quiet=True) == logging.DEBUG


def test_configure_logging_replaces_handlers() -> None:
    configure_logging()
    logger = configure_logging(quiet=True)

    assert len(logger.handlers) == 1
    assert logger.handlers[0].level == logging.WARNING
    assert logger.propagate is False


def test_configure_logging_file_sink_records_debug(tmp_path: Path) -> None:
    log_file = tmp_path / "logs" / "run.log"
    logger = configure_logging(quiet=True, log_file=log_file)

    get_logger("orchestrator").debug("planned %d files", 3)
    for handler in logger.handlers:
        handler.flush()

    assert "protodump.orchestrator: planned 3 files" in log_file.read_text(encoding="utf-8")
    configure_logging()
