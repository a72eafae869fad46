"""Tests for mnemo logging setup."""

from __future__ import annotations

import logging

import pytest

from mnemo.logging_config import configure_logging, quiet_libraries
from mnemo.paths import log_path


@pytest.fixture
def mnemo_logger():
    logger = logging.getLogger("mnemo")
    handlers, level = list(logger.handlers), logger.level
    yield logger
    for handler in list(logger.handlers):
        if handler not in handlers:
            handler.close()
            logger.removeHandler(handler)
    logger.setLevel(level)


def test_daily_log_file(mnemo_logger, monkeypatch):
    monkeypatch.delenv("MNEMO_NO_LOG_FILE")
    configure_logging(logging.INFO)
    logging.getLogger("mnemo.test").info("indexed 3 files")
    for handler in mnemo_logger.handlers:
        handler.flush()
    assert "indexed 3 files" in log_path().read_text(encoding="utf-8")


def test_file_handler_added_once(mnemo_logger, monkeypatch):
    monkeypatch.delenv("MNEMO_NO_LOG_FILE")
    configure_logging()
    configure_logging()
    file_handlers = [h for h in mnemo_logger.handlers if isinstance(h, logging.FileHandler)]
    assert len(file_handlers) == 1


def test_no_log_file_env(mnemo_logger):
    configure_logging(logging.DEBUG)
    assert not any(isinstance(h, logging.FileHandler) for h in mnemo_logger.handlers)
    assert mnemo_logger.level == logging.DEBUG


def test_quiet_libraries(monkeypatch):
    monkeypatch.delenv("MNEMO_VERBOSE", raising=False)
    logging.getLogger("httpx").setLevel(logging.DEBUG)
    quiet_libraries()
    assert logging.getLogger("httpx").level == logging.WARNING


def test_verbose_env_keeps_library_levels(monkeypatch):
    monkeypatch.setenv("MNEMO_VERBOSE", "1")
    logging.getLogger("watchfiles").setLevel(logging.DEBUG)
    quiet_libraries()
    assert logging.getLogger("watchfiles").level == logging.DEBUG
