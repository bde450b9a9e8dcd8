"""Tests for environment configuration."""

from pathlib import Path

import pytest

from ai_futures_trader.config import DEFAULT_SYMBOLS, Config

ENV_KEYS = [
    "TRADING_SYMBOLS",
    "MAX_LEVERAGE",
    "DRY_RUN",
    "BYBIT_DEMO",
    "PRICE_DECIMALS_OVERRIDES",
    "DECISION_INTERVAL_SECONDS",
    "HISTORY_SCAN_DEPTH",
    "DATABASE_PATH",
    "SKIP_WHEN_POSITIONS_OPEN",
    "LOG_LEVEL",
    "LOG_TO_FILE",
    "SHUTDOWN_GRACE_SECONDS",
]


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """Isolate from the developer's shell and .env file."""
    for key in ENV_KEYS:
        # setenv first so values loaded from .env files are undone on teardown
        monkeypatch.setenv(key, "")
        monkeypatch.delenv(key)
    monkeypatch.chdir(tmp_path)
    return monkeypatch


class TestConfigFromEnv:
    """Test Config.from_env."""

    def test_defaults(self, clean_env, tmp_path):
        config = Config.from_env(tmp_path / "missing.env")

        assert config.trading.symbols == DEFAULT_SYMBOLS
        assert config.trading.max_leverage == 20
        assert config.trading.decision_interval_seconds == 180
        assert config.trading.reconcile_interval_seconds == 60
        assert config.trading.dry_run is False
        assert config.trading.skip_when_positions_open is True
        assert config.api.bybit_demo is True
        assert config.reconcile.scan_depth == 2
        assert config.storage.database_path == Path("data/trading.db")
        assert config.logging.level == "INFO"
        assert config.logging.log_to_file is True
        assert config.trading.shutdown_grace_seconds == 90.0

    def test_overrides(self, clean_env, tmp_path):
        clean_env.setenv("TRADING_SYMBOLS", "btc, eth ,")
        clean_env.setenv("DRY_RUN", "yes")
        clean_env.setenv("BYBIT_DEMO", "false")
        clean_env.setenv("PRICE_DECIMALS_OVERRIDES", "doge:5,bad,XRP:x")
        clean_env.setenv("DECISION_INTERVAL_SECONDS", "300")
        clean_env.setenv("SKIP_WHEN_POSITIONS_OPEN", "0")
        clean_env.setenv("LOG_LEVEL", "debug")
        clean_env.setenv("LOG_TO_FILE", "false")

        config = Config.from_env(tmp_path / "missing.env")

        assert config.trading.symbols == ["BTC", "ETH"]
        assert config.trading.dry_run is True
        assert config.api.bybit_demo is False
        assert config.trading.price_decimals_overrides == {"DOGE": 5}
        assert config.trading.decision_interval_seconds == 300
        assert config.trading.skip_when_positions_open is False
        assert config.logging.level == "DEBUG"
        assert config.logging.log_to_file is False

    @pytest.mark.parametrize(("raw", "expected"), [("50", 20), ("0", 1), ("5", 5)])
    def test_leverage_clamped(self, clean_env, tmp_path, raw, expected):
        clean_env.setenv("MAX_LEVERAGE", raw)
        assert Config.from_env(tmp_path / "missing.env").trading.max_leverage == expected

    def test_env_file(self, clean_env, tmp_path):
        """Values are read from a .env file."""
        env_file = tmp_path / "trader.env"
        env_file.write_text("TRADING_SYMBOLS=SOL\nHISTORY_SCAN_DEPTH=4\n")

        config = Config.from_env(env_file)

        assert config.trading.symbols == ["SOL"]
        assert config.reconcile.scan_depth == 4
