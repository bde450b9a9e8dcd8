"""Pytest configuration and shared fixtures."""

from datetime import UTC, datetime

import pytest

from ai_futures_trader.core.types import Operation, OrderSide, OrderType, Side
from ai_futures_trader.exchange.base import Exchange
from ai_futures_trader.exchange.models import Balance, ExchangePosition, HistoryEntry, OrderAck
from ai_futures_trader.storage.models import PositionRecord
from ai_futures_trader.storage.store import SqliteRecordStore


class FakeExchange(Exchange):
    """In-memory exchange that records every call.

    Market entry orders fill immediately into a live position unless
    ``fill_entries`` is False. Errors can be injected per method in
    ``errors`` and per order type in ``order_errors``; a list value is
    consumed one exception per call.
    """

    def __init__(self, positions=None, history=None, fill_prices=None):
        self.positions = list(positions or [])
        self.history = dict(history or {})
        self.fill_prices = dict(fill_prices or {})
        self.fill_entries = True
        self.leverage = {}
        self.errors = {}
        self.order_errors = {}
        self.calls = []
        self.orders = []
        self.balance = Balance(total=10000.0, available=10000.0)

    @property
    def name(self):
        return "FAKE"

    def _maybe_raise(self, table, key):
        error = table.get(key)
        if isinstance(error, list):
            if error:
                raise error.pop(0)
            return
        if error is not None:
            raise error

    async def connect(self):
        self.calls.append(("connect",))

    async def disconnect(self):
        self.calls.append(("disconnect",))

    async def fetch_positions(self, symbols=None):
        self.calls.append(("fetch_positions", symbols))
        self._maybe_raise(self.errors, "fetch_positions")
        return [p for p in self.positions if not symbols or p.symbol in symbols]

    async def fetch_balance(self):
        self.calls.append(("fetch_balance",))
        self._maybe_raise(self.errors, "fetch_balance")
        return self.balance

    async def set_leverage(self, symbol, leverage):
        self.calls.append(("set_leverage", symbol, leverage))
        self._maybe_raise(self.errors, "set_leverage")
        if self.leverage.get(symbol) == leverage:
            return False
        self.leverage[symbol] = leverage
        return True

    async def create_order(
        self,
        symbol,
        order_type,
        side,
        quantity,
        price=None,
        *,
        reduce_only=False,
        trigger_price=None,
        trigger_direction=None,
        leverage=None,
    ):
        self.calls.append(("create_order", symbol, order_type, side, quantity))
        self._maybe_raise(self.order_errors, order_type)
        ack = OrderAck(
            order_id=f"fake-{len(self.orders) + 1}",
            symbol=symbol,
            side=side,
            order_type=order_type,
            quantity=quantity,
            price=price,
            trigger_price=trigger_price,
            reduce_only=reduce_only,
        )
        ack.raw = {"trigger_direction": trigger_direction, "leverage": leverage}
        self.orders.append(ack)

        if order_type is OrderType.MARKET and not reduce_only and self.fill_entries:
            self.positions.append(
                ExchangePosition(
                    symbol=symbol,
                    side=Side.LONG if side is OrderSide.BUY else Side.SHORT,
                    contracts=quantity,
                    entry_price=self.fill_prices.get(symbol, price or 0.0),
                    mark_price=self.fill_prices.get(symbol, price or 0.0),
                )
            )
        return ack

    async def fetch_positions_history(self, symbol, since, limit=10):
        self.calls.append(("fetch_positions_history", symbol))
        self._maybe_raise(self.errors, "fetch_positions_history")
        return list(self.history.get(symbol, []))[:limit]

    def orders_of(self, order_type):
        return [o for o in self.orders if o.order_type is order_type]


@pytest.fixture
def fake_exchange():
    """Exchange with no positions; BTC entries fill at 100000."""
    return FakeExchange(fill_prices={"BTC": 100000.0})


@pytest.fixture
def store(tmp_path):
    """Sqlite record store in a temp directory."""
    record_store = SqliteRecordStore(tmp_path / "trading.db")
    yield record_store
    record_store.close()


@pytest.fixture
def buy_payload():
    """The canonical BTC long decision."""
    return {
        "operation": "Buy",
        "symbol": "BTC",
        "position": {
            "entryPrice": 100000,
            "amountUsd": 1000,
            "leverage": 3,
            "stopLoss": 99000,
            "takeProfit": 103000,
        },
        "rationale": "EMA20 above EMA50 on 1h, RSI 58, MACD turning up.",
    }


def make_record(**overrides):
    """Open BTC long record matching the canonical decision."""
    fields = {
        "symbol": "BTC",
        "operation": "Buy",
        "side": Side.LONG,
        "entry_price": 100000.0,
        "requested_entry_price": 100000.0,
        "amount_usd": 1000.0,
        "contracts": 0.01,
        "leverage": 3,
        "stop_loss": 99000.0,
        "take_profit": 103000.0,
        "stop_loss_placed": True,
        "take_profit_placed": True,
        "created_at": datetime(2026, 1, 1, 12, 0, tzinfo=UTC),
    }
    fields.update(overrides)
    fields["operation"] = Operation(fields["operation"])
    return PositionRecord(**fields)


def make_history(**overrides):
    """Closed-PnL entry matching ``make_record`` with a 30 USDT loss."""
    fields = {
        "symbol": "BTC",
        "qty": 0.01,
        "closed_pnl": -30.0,
        "avg_entry_price": 100000.0,
        "avg_exit_price": 97000.0,
        "exec_type": "Trade",
        "order_type": "Market",
        "updated_time": datetime(2026, 1, 1, 14, 0, tzinfo=UTC),
        "order_id": "hist-1",
    }
    fields.update(overrides)
    return HistoryEntry(**fields)
