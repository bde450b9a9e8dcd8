"""Tests for the paper venue."""

from datetime import UTC, datetime, timedelta

import pytest

from ai_futures_trader.agent.schemas import PositionPlan
from ai_futures_trader.core.errors import ExchangeRejectedError
from ai_futures_trader.core.types import (
    ExitReason,
    OrderSide,
    OrderType,
    PositionOutcome,
    Side,
    TriggerDirection,
)
from ai_futures_trader.exchange.paper import PaperExchange
from ai_futures_trader.execution.executor import OrderExecutor
from ai_futures_trader.reconcile.reconciler import PositionReconciler

from .conftest import make_record

SINCE = datetime.now(UTC) - timedelta(days=1)


async def open_btc_long(exchange):
    exchange.set_mark_price("BTC", 100000.0)
    await exchange.create_order("BTC", OrderType.MARKET, OrderSide.BUY, 0.01)


class TestPaperOrders:
    """Order handling."""

    @pytest.mark.asyncio
    async def test_market_entry_fills_at_last_price(self):
        exchange = PaperExchange()
        await open_btc_long(exchange)

        position = await exchange.fetch_position("BTC")
        assert position.side is Side.LONG
        assert position.contracts == 0.01
        assert position.entry_price == 100000.0

    @pytest.mark.asyncio
    async def test_entry_without_price_rejected(self):
        with pytest.raises(ExchangeRejectedError):
            await PaperExchange().create_order("BTC", OrderType.MARKET, OrderSide.BUY, 0.01)

    @pytest.mark.asyncio
    async def test_reduce_only_needs_position(self):
        exchange = PaperExchange()
        with pytest.raises(ExchangeRejectedError):
            await exchange.create_order(
                "BTC", OrderType.LIMIT, OrderSide.SELL, 0.01, 103000.0, reduce_only=True
            )

    @pytest.mark.asyncio
    async def test_set_leverage_reports_unchanged(self):
        exchange = PaperExchange()
        assert await exchange.set_leverage("BTC", 3) is True
        assert await exchange.set_leverage("BTC", 3) is False


class TestPaperProtection:
    """Resting stop and limit orders close positions."""

    @pytest.mark.asyncio
    async def test_stop_loss_fills(self):
        """Price falling through the stop closes the long at a loss."""
        exchange = PaperExchange(initial_balance=1000.0)
        await open_btc_long(exchange)
        await exchange.create_order(
            "BTC",
            OrderType.STOP,
            OrderSide.SELL,
            0.01,
            reduce_only=True,
            trigger_price=99000.0,
            trigger_direction=TriggerDirection.FALL,
        )

        exchange.set_mark_price("BTC", 99500.0)
        assert await exchange.fetch_position("BTC") is not None

        exchange.set_mark_price("BTC", 98900.0)
        assert await exchange.fetch_position("BTC") is None

        (entry,) = await exchange.fetch_positions_history("BTC", SINCE)
        assert entry.closed_pnl == pytest.approx(-11.0)
        assert entry.exec_type == "Trade"
        assert entry.order_type == "Market"
        assert exchange.open_orders == []
        assert exchange.get_stats()["current_balance"] == pytest.approx(989.0)

    @pytest.mark.asyncio
    async def test_take_profit_limit_fills_at_limit(self):
        exchange = PaperExchange()
        await open_btc_long(exchange)
        await exchange.create_order(
            "BTC", OrderType.LIMIT, OrderSide.SELL, 0.01, 103000.0, reduce_only=True
        )

        exchange.set_mark_price("BTC", 103500.0)

        (entry,) = await exchange.fetch_positions_history("BTC", SINCE)
        assert entry.avg_exit_price == 103000.0
        assert entry.closed_pnl == pytest.approx(30.0)
        assert entry.order_type == "Limit"

    @pytest.mark.asyncio
    async def test_manual_close(self):
        exchange = PaperExchange()
        await open_btc_long(exchange)
        exchange.set_mark_price("BTC", 100000.0)

        entry = await exchange.close_position("BTC")

        assert entry.closed_pnl == 0.0
        assert await exchange.fetch_positions() == []

    @pytest.mark.asyncio
    async def test_pnl_and_balance_exact(self):
        """Money math is decimal: no binary float drift in PnL or balance."""
        exchange = PaperExchange(initial_balance=100.0)
        for _ in range(3):
            exchange.set_mark_price("DOGE", 0.3)
            await exchange.create_order("DOGE", OrderType.MARKET, OrderSide.BUY, 0.1)
            exchange.set_mark_price("DOGE", 0.6)
            entry = await exchange.close_position("DOGE")
            assert entry.closed_pnl == 0.03

        assert exchange.get_stats()["current_balance"] == 100.09
        balance = await exchange.fetch_balance()
        assert balance.total == 100.09


class TestPaperRoundTrip:
    """Executor and reconciler against the paper venue."""

    @pytest.mark.asyncio
    async def test_stopped_out_trade_reconciles(self, store):
        """A stop-loss fill resolves to loss / stop_loss."""
        exchange = PaperExchange()
        exchange.set_mark_price("BTC", 100000.0)
        executor = OrderExecutor(exchange, settle_delay_seconds=0)
        plan = PositionPlan(100000.0, 1000.0, 3, 99000.0, 103000.0)

        result = await executor.execute("BTC", Side.LONG, plan)
        assert result.stop_loss_placed and result.take_profit_placed
        record = store.create_position(
            make_record(created_at=datetime.now(UTC), contracts=result.contracts)
        )

        exchange.set_mark_price("BTC", 98000.0)
        report = await PositionReconciler(exchange, store).reconcile()

        assert report.closed == [record.id]
        closed = store.get_position(record.id)
        assert closed.outcome is PositionOutcome.LOSS
        assert closed.exit_reason is ExitReason.STOP_LOSS
        assert closed.exit_price == 98000.0
