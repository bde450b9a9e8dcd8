"""Tests for the position reconciler."""

import pytest

from ai_futures_trader.core.errors import TransientExchangeError
from ai_futures_trader.core.types import ExitReason, PositionOutcome, Side
from ai_futures_trader.exchange.models import ExchangePosition
from ai_futures_trader.reconcile.reconciler import PositionReconciler

from .conftest import FakeExchange, make_history, make_record


class TestReconcile:
    """Closed positions move to win or loss."""

    @pytest.mark.asyncio
    async def test_stop_loss_close(self, store):
        """A stopped-out long becomes a loss with exit price and reason."""
        record = store.create_position(make_record())
        exchange = FakeExchange(history={"BTC": [make_history()]})

        report = await PositionReconciler(exchange, store).reconcile()

        assert report.closed == [record.id]
        closed = store.get_position(record.id)
        assert closed.outcome is PositionOutcome.LOSS
        assert closed.exit_reason is ExitReason.STOP_LOSS
        assert closed.exit_price == 97000.0
        assert closed.realized_pnl == -30.0
        assert closed.history_ref == "hist-1"
        assert closed.closed_at is not None

    @pytest.mark.asyncio
    async def test_take_profit_close(self, store):
        """A positive close is a win by take profit."""
        record = store.create_position(make_record())
        history = [make_history(closed_pnl=30.0, avg_exit_price=103000.0, order_type="Limit")]
        exchange = FakeExchange(history={"BTC": history})

        await PositionReconciler(exchange, store).reconcile()

        closed = store.get_position(record.id)
        assert closed.outcome is PositionOutcome.WIN
        assert closed.exit_reason is ExitReason.TAKE_PROFIT

    @pytest.mark.asyncio
    async def test_live_position_untouched(self, store):
        """Records whose position is still live stay open."""
        record = store.create_position(make_record())
        live = ExchangePosition(symbol="BTC", side=Side.LONG, contracts=0.01, entry_price=1e5)
        exchange = FakeExchange(positions=[live], history={"BTC": [make_history()]})

        report = await PositionReconciler(exchange, store).reconcile()

        assert report.still_open == 1
        assert store.get_position(record.id).is_open
        assert not any(c[0] == "fetch_positions_history" for c in exchange.calls)

    @pytest.mark.asyncio
    async def test_miss_stays_open(self, store):
        """Without a matching history entry the record is retried later."""
        record = store.create_position(make_record())
        exchange = FakeExchange(history={"BTC": [make_history(qty=0.5)]})

        report = await PositionReconciler(exchange, store).reconcile()

        assert report.misses == [record.id]
        assert store.get_position(record.id).is_open

    @pytest.mark.asyncio
    async def test_idempotent(self, store):
        """A second pass changes nothing."""
        record = store.create_position(make_record())
        exchange = FakeExchange(history={"BTC": [make_history()]})
        reconciler = PositionReconciler(exchange, store)

        await reconciler.reconcile()
        first = store.get_position(record.id)
        report = await reconciler.reconcile()
        second = store.get_position(record.id)

        assert report.checked == 0
        assert first == second

    @pytest.mark.asyncio
    async def test_one_history_entry_closes_one_record(self, store):
        """Two identical records cannot both claim the same entry."""
        first = store.create_position(make_record())
        second = store.create_position(make_record())
        exchange = FakeExchange(history={"BTC": [make_history()]})

        report = await PositionReconciler(exchange, store).reconcile()

        assert report.closed == [first.id]
        assert report.misses == [second.id]
        assert store.get_position(second.id).is_open

    @pytest.mark.asyncio
    async def test_claimed_ref_not_reused_across_passes(self, store):
        """An entry recorded on a closed record is not matched again later."""
        store.create_position(make_record())
        exchange = FakeExchange(history={"BTC": [make_history()]})
        reconciler = PositionReconciler(exchange, store)
        await reconciler.reconcile()

        late = store.create_position(make_record())
        report = await reconciler.reconcile()

        assert report.misses == [late.id]

    @pytest.mark.asyncio
    async def test_history_error_isolated_per_symbol(self, store):
        """A failing history call skips only that symbol."""
        btc = store.create_position(make_record())
        eth = store.create_position(
            make_record(
                symbol="ETH",
                entry_price=3000.0,
                requested_entry_price=3000.0,
                amount_usd=300.0,
                contracts=0.1,
            )
        )

        class PartialHistoryExchange(FakeExchange):
            async def fetch_positions_history(self, symbol, since, limit=10):
                if symbol == "BTC":
                    raise TransientExchangeError("timeout")
                return await super().fetch_positions_history(symbol, since, limit)

        eth_entry = make_history(
            symbol="ETH", qty=0.1, avg_entry_price=3000.0, avg_exit_price=3100.0,
            closed_pnl=10.0, order_id="eth-1",
        )
        exchange = PartialHistoryExchange(history={"ETH": [eth_entry]})

        report = await PositionReconciler(exchange, store).reconcile()

        assert "BTC" in report.errors
        assert store.get_position(btc.id).is_open
        assert report.closed == [eth.id]
        assert store.get_position(eth.id).outcome is PositionOutcome.WIN

    @pytest.mark.asyncio
    async def test_positions_read_failure_propagates(self, store):
        """Nothing is touched if live positions cannot be read."""
        record = store.create_position(make_record())
        exchange = FakeExchange(history={"BTC": [make_history()]})
        exchange.errors["fetch_positions"] = TransientExchangeError("timeout")

        with pytest.raises(TransientExchangeError):
            await PositionReconciler(exchange, store).reconcile()
        assert store.get_position(record.id).is_open

    @pytest.mark.asyncio
    async def test_no_open_records(self, store):
        """No venue calls when nothing is open."""
        exchange = FakeExchange()
        report = await PositionReconciler(exchange, store).reconcile()

        assert report.checked == 0
        assert exchange.calls == []
