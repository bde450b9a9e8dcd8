"""Tests for application wiring in dry-run mode."""

import pytest

from ai_futures_trader.app import TradingEngine
from ai_futures_trader.config import Config
from ai_futures_trader.core.types import CycleStatus, OrderSide, OrderType, TriggerDirection
from ai_futures_trader.exchange.paper import PaperExchange
from ai_futures_trader.storage.store import SqliteRecordStore

from .test_decision_cycle import FakeOracle
from .test_snapshot import make_candles


class FakeMarket:
    """Market data venue stub with connection tracking."""

    name = "MARKET"

    def __init__(self):
        self.connected = False

    async def connect(self):
        self.connected = True

    async def disconnect(self):
        self.connected = False

    async def fetch_ohlcv(self, symbol, timeframe, limit=100):
        return make_candles(limit)

    async def fetch_funding_rate(self, symbol):
        return 0.0001

    async def fetch_open_interest(self, symbol):
        return 52000.0


@pytest.fixture
def dry_run_config(tmp_path):
    config = Config()
    config.trading.symbols = ["BTC"]
    config.trading.dry_run = True
    config.trading.settle_delay_seconds = 0
    config.storage.database_path = tmp_path / "trading.db"
    config.storage.audit_dir = tmp_path / "audit"
    return config


class TestTradingEngine:
    """Test TradingEngine."""

    def test_dry_run_uses_paper_venue(self, dry_run_config):
        engine = TradingEngine(dry_run_config, market=FakeMarket(), oracle=FakeOracle())
        assert engine.is_paper

    @pytest.mark.asyncio
    async def test_run_once_opens_paper_position(self, dry_run_config, buy_payload):
        """One pass reconciles, decides and trades on the paper venue."""
        market = FakeMarket()
        engine = TradingEngine(dry_run_config, market=market, oracle=FakeOracle(buy_payload))

        await engine.run_once()

        assert market.connected is False
        store = SqliteRecordStore(dry_run_config.storage.database_path)
        try:
            (cycle,) = store.recent_cycles()
            assert cycle.status is CycleStatus.EXECUTED
            (record,) = store.list_open_positions()
            assert record.symbol == "BTC"
            assert record.is_protected
            assert record.entry_price == pytest.approx(make_candles()[-1][4])
        finally:
            store.close()

    @pytest.mark.asyncio
    async def test_reconcile_refreshes_paper_prices(self, dry_run_config):
        """Resting paper stops fire on the price fed before reconciling."""
        paper = PaperExchange()
        engine = TradingEngine(
            dry_run_config, exchange=paper, market=FakeMarket(), oracle=FakeOracle()
        )
        paper.set_mark_price("BTC", 200000.0)
        await paper.create_order("BTC", OrderType.MARKET, OrderSide.BUY, 0.01)
        await paper.create_order(
            "BTC",
            OrderType.STOP,
            OrderSide.SELL,
            0.01,
            reduce_only=True,
            trigger_price=150000.0,
            trigger_direction=TriggerDirection.FALL,
        )

        await engine.reconcile_once()

        assert await paper.fetch_positions() == []
        await engine.shutdown()
