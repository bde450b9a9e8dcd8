"""Tests for the sqlite record store."""

import asyncio
from datetime import UTC, datetime, timedelta

import pytest

from ai_futures_trader.core.types import CycleStatus, ExitReason, Operation, PositionOutcome
from ai_futures_trader.storage.models import CycleRecord
from ai_futures_trader.storage.store import SqliteRecordStore

from .conftest import make_record

CLOSED_AT = datetime(2026, 1, 1, 14, 0, tzinfo=UTC)


def close_loss(store, record_id, ref="hist-1"):
    return store.close_position(
        record_id,
        outcome=PositionOutcome.LOSS,
        exit_price=97000.0,
        exit_reason=ExitReason.STOP_LOSS,
        realized_pnl=-30.0,
        closed_at=CLOSED_AT,
        history_ref=ref,
    )


class TestPositions:
    """Position record lifecycle."""

    def test_create_and_get(self, store):
        """A stored record reads back unchanged."""
        record = make_record(indicators_at_open={"rsi": 55.2, "atr_14": 420.0})
        stored = store.create_position(record)

        assert stored.id is not None
        loaded = store.get_position(stored.id)
        assert loaded.symbol == "BTC"
        assert loaded.operation is Operation.BUY
        assert loaded.contracts == 0.01
        assert loaded.indicators_at_open == {"rsi": 55.2, "atr_14": 420.0}
        assert loaded.created_at == record.created_at
        assert loaded.is_open

    def test_get_missing(self, store):
        assert store.get_position(999) is None

    def test_list_open_oldest_first(self, store):
        """Open records come back oldest first and closed ones are excluded."""
        newer = store.create_position(make_record(created_at=CLOSED_AT + timedelta(hours=1)))
        older = store.create_position(make_record())
        closed = store.create_position(make_record())
        close_loss(store, closed.id)

        assert [r.id for r in store.list_open_positions()] == [older.id, newer.id]
        assert store.list_open_positions("ETH") == []

    def test_close_is_guarded(self, store):
        """Only the first close of a record takes effect."""
        record = store.create_position(make_record())

        assert close_loss(store, record.id) is True
        assert (
            store.close_position(
                record.id,
                outcome=PositionOutcome.WIN,
                exit_price=103000.0,
                exit_reason=ExitReason.TAKE_PROFIT,
                realized_pnl=30.0,
                closed_at=CLOSED_AT,
            )
            is False
        )
        loaded = store.get_position(record.id)
        assert loaded.outcome is PositionOutcome.LOSS
        assert loaded.exit_reason is ExitReason.STOP_LOSS
        assert loaded.closed_at == CLOSED_AT

    def test_close_requires_terminal_outcome(self, store):
        record = store.create_position(make_record())
        with pytest.raises(ValueError):
            store.close_position(
                record.id,
                outcome=PositionOutcome.OPEN,
                exit_price=None,
                exit_reason=ExitReason.UNKNOWN,
                realized_pnl=None,
                closed_at=CLOSED_AT,
            )

    def test_update_protection(self, store):
        """Protection flags change only on open records."""
        record = store.create_position(make_record(take_profit_placed=False))
        store.update_protection(record.id, True, True)
        assert store.get_position(record.id).is_protected

        close_loss(store, record.id)
        store.update_protection(record.id, False, False)
        assert store.get_position(record.id).is_protected

    def test_history_refs(self, store):
        first = store.create_position(make_record())
        store.create_position(make_record())
        close_loss(store, first.id, ref="abc")

        assert store.history_refs("BTC") == {"abc"}
        assert store.history_refs("ETH") == set()

    def test_persists_across_connections(self, tmp_path):
        """Records survive a restart."""
        path = tmp_path / "nested" / "trading.db"
        first = SqliteRecordStore(path)
        record = first.create_position(make_record())
        first.close()

        second = SqliteRecordStore(path)
        try:
            assert second.get_position(record.id).symbol == "BTC"
        finally:
            second.close()


class TestWorkerThreads:
    """Async callers use the store through asyncio.to_thread."""

    @pytest.mark.asyncio
    async def test_concurrent_closes_from_threads(self, store):
        """Racing closes of one record from worker threads: exactly one wins."""
        record = await asyncio.to_thread(store.create_position, make_record())

        results = await asyncio.gather(
            *(asyncio.to_thread(close_loss, store, record.id, f"hist-{i}") for i in range(5))
        )

        assert sorted(results) == [False, False, False, False, True]
        assert store.list_open_positions() == []
        assert len(store.history_refs("BTC")) == 1


class TestCycles:
    """Cycle audit rows."""

    def test_record_and_list(self, store):
        store.record_cycle(CycleRecord(status=CycleStatus.HOLD, symbol="BTC", rationale="wait"))
        store.record_cycle(
            CycleRecord(status=CycleStatus.FAILED, error="SchemaViolation: position: missing")
        )

        cycles = store.recent_cycles()
        assert [c.status for c in cycles] == [CycleStatus.FAILED, CycleStatus.HOLD]
        assert cycles[0].operation is Operation.HOLD
        assert cycles[0].error.startswith("SchemaViolation")


class TestAggregations:
    """Closed-trade statistics."""

    def test_performance_stats(self, store):
        win = store.create_position(make_record(created_at=datetime.now(UTC)))
        loss = store.create_position(make_record(leverage=10, created_at=datetime.now(UTC)))
        store.create_position(make_record(created_at=datetime.now(UTC)))
        store.close_position(
            win.id, PositionOutcome.WIN, 103000.0, ExitReason.TAKE_PROFIT, 30.0, CLOSED_AT, "w"
        )
        close_loss(store, loss.id, ref="l")

        stats = store.performance_stats("BTC", since=datetime.now(UTC) - timedelta(days=1))

        assert stats["total_trades"] == 2
        assert stats["win_rate"] == 50.0
        assert stats["avg_win_pnl"] == 30.0
        assert stats["avg_loss_pnl"] == -30.0
        assert stats["high_leverage_trades"] == 1
        assert stats["avg_tp_percent"] == 3.0
        assert stats["avg_sl_percent"] == -1.0

    def test_losing_setups_worst_first(self, store):
        small = store.create_position(make_record(leverage=2))
        big = store.create_position(make_record(leverage=10))
        store.close_position(
            small.id, PositionOutcome.LOSS, 99500.0, ExitReason.STOP_LOSS, -5.0, CLOSED_AT, "s"
        )
        store.close_position(
            big.id, PositionOutcome.LOSS, 97000.0, ExitReason.STOP_LOSS, -50.0, CLOSED_AT, "b"
        )

        setups = store.losing_setups("BTC")

        assert [s["leverage"] for s in setups] == [10, 2]
        assert setups[0]["sl_percent"] == -1.0
        assert setups[0]["tp_percent"] == 3.0
        assert setups[0]["losses"] == 1

    def test_recent_closed_newest_first(self, store):
        first = store.create_position(make_record())
        second = store.create_position(make_record())
        close_loss(store, first.id, ref="1")
        store.close_position(
            second.id,
            PositionOutcome.WIN,
            103000.0,
            ExitReason.TAKE_PROFIT,
            30.0,
            CLOSED_AT + timedelta(hours=1),
            "2",
        )

        assert [r.id for r in store.recent_closed("BTC")] == [second.id, first.id]
