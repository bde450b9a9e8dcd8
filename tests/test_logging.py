"""Tests for logging setup."""

import logging
from datetime import datetime

import pytest

from ai_futures_trader.config import LoggingConfig
from ai_futures_trader.logging import PACKAGE_LOGGER, daily_log_file, setup_logging


@pytest.fixture
def package_logger():
    logger = logging.getLogger(PACKAGE_LOGGER)
    saved = (logger.handlers[:], logger.level, logger.propagate)
    logger.handlers.clear()
    yield logger
    for handler in logger.handlers:
        handler.close()
    logger.handlers[:], logger.level, logger.propagate = saved


class TestSetupLogging:
    """Test setup_logging."""

    def test_console_and_file(self, package_logger, tmp_path):
        logger = setup_logging(LoggingConfig(level="DEBUG", log_dir=tmp_path))

        assert logger is package_logger
        assert logger.level == logging.DEBUG
        assert logger.propagate is False
        assert len(logger.handlers) == 2

        logging.getLogger(f"{PACKAGE_LOGGER}.engine").info("cycle done")
        for handler in logger.handlers:
            handler.flush()
        assert "cycle done" in daily_log_file(tmp_path).read_text(encoding="utf-8")

    def test_idempotent(self, package_logger, tmp_path):
        config = LoggingConfig(log_dir=tmp_path, log_to_file=False)
        setup_logging(config)
        setup_logging(config)

        assert len(package_logger.handlers) == 1

    def test_unknown_level_falls_back_to_info(self, package_logger):
        logger = setup_logging(LoggingConfig(level="LOUD", log_to_file=False))
        assert logger.level == logging.INFO


def test_daily_log_file(tmp_path):
    path = daily_log_file(tmp_path, datetime(2026, 3, 9, 23, 59))
    assert path == tmp_path / "trading_20260309.log"
