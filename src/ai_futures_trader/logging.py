"""Logging setup for AI Futures Trader.

Everything logs under the ``ai_futures_trader`` logger tree. The package
logger does not propagate, so third-party output stays on the root logger,
which is kept at WARNING.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path

from ai_futures_trader.config import LoggingConfig

PACKAGE_LOGGER = "ai_futures_trader"
LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Libraries that log request-level detail at INFO
NOISY_LOGGERS = ("ccxt", "httpx", "httpcore", "anthropic", "urllib3")


def daily_log_file(log_dir: Path, now: datetime | None = None) -> Path:
    return log_dir / f"trading_{(now or datetime.now()):%Y%m%d}.log"


def setup_logging(config: LoggingConfig | None = None) -> logging.Logger:
    """Attach console and daily-file handlers to the package logger.

    Calling it again is a no-op once handlers are attached.

    Args:
        config: Level and file settings (default: INFO, ./logs)

    Returns:
        Package logger
    """
    config = config or LoggingConfig()
    level = logging.getLevelName(config.level)
    if not isinstance(level, int):
        level = logging.INFO

    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(level)
    logger.propagate = False
    if logger.handlers:
        return logger

    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if config.log_to_file:
        config.log_dir.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(daily_log_file(config.log_dir), encoding="utf-8"))

    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    root = logging.getLogger()
    if not root.handlers:
        root.setLevel(logging.WARNING)

    return logger
