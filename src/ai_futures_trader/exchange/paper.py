"""Paper exchange - simulates a futures venue without real execution."""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

from ai_futures_trader.core.errors import ExchangeRejectedError
from ai_futures_trader.core.types import OrderSide, OrderType, Side, TriggerDirection
from ai_futures_trader.exchange.base import Exchange
from ai_futures_trader.exchange.models import Balance, ExchangePosition, HistoryEntry, OrderAck

logger = logging.getLogger(__name__)


def _dec(value: float | int | Decimal) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


@dataclass
class SimulatedPosition:
    """Internal position tracking for simulation."""

    symbol: str
    side: Side
    size: Decimal
    entry_price: Decimal
    leverage: int = 1
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def margin(self) -> Decimal:
        return self.size * self.entry_price / Decimal(self.leverage)

    def pnl_at(self, price: Decimal) -> Decimal:
        if self.side is Side.LONG:
            return (price - self.entry_price) * self.size
        return (self.entry_price - price) * self.size


@dataclass
class RestingOrder:
    """Reduce-only protective order waiting for its price."""

    ack: OrderAck
    trigger_direction: TriggerDirection | None = None

    def is_triggered(self, price: float) -> bool:
        if self.ack.order_type is OrderType.STOP:
            trigger = self.ack.trigger_price or 0.0
            if self.trigger_direction is TriggerDirection.RISE:
                return price >= trigger
            return price <= trigger
        limit = self.ack.price or 0.0
        # A sell limit closes a long once price trades up to it, a buy limit the reverse
        if self.ack.side is OrderSide.SELL:
            return price >= limit
        return price <= limit


class PaperExchange(Exchange):
    """Paper venue that simulates trading.

    Maintains a virtual balance, leverage settings, positions and resting
    reduce-only orders. Market orders fill at the last price pushed with
    ``set_mark_price``; resting stops and limits fill when that price
    crosses them. Every close appends a Bybit-shaped history entry.
    """

    def __init__(self, initial_balance: float = 10000.0, default_leverage: int = 1) -> None:
        """Initialize paper exchange.

        Args:
            initial_balance: Starting virtual balance in USDT
            default_leverage: Leverage for symbols never configured
        """
        self._initial_balance = _dec(initial_balance)
        self._default_leverage = default_leverage
        self._balance = self._initial_balance
        self._positions: dict[str, SimulatedPosition] = {}
        self._orders: dict[str, RestingOrder] = {}
        self._leverage_settings: dict[str, int] = {}
        self._history: dict[str, list[HistoryEntry]] = {}
        self._prices: dict[str, Decimal] = {}
        self._connected = False

        logger.info(f"[PAPER] Initialized with balance: {initial_balance} USDT")

    @property
    def name(self) -> str:
        return "PAPER"

    @property
    def is_connected(self) -> bool:
        return self._connected

    @property
    def open_orders(self) -> list[OrderAck]:
        return [order.ack for order in self._orders.values()]

    async def connect(self) -> None:
        self._connected = True
        logger.info("[PAPER] Connected (simulated)")

    async def disconnect(self) -> None:
        self._connected = False
        logger.info("[PAPER] Disconnected (simulated)")

    def set_mark_price(self, symbol: str, price: float) -> None:
        """Update the market price for a symbol and fill any triggered orders.

        Args:
            symbol: Base symbol, e.g. ``BTC``
            price: Current market price
        """
        self._prices[symbol] = _dec(price)
        if symbol not in self._positions:
            return
        for order_id, resting in list(self._orders.items()):
            if resting.ack.symbol != symbol or not resting.is_triggered(price):
                continue
            fill_price = resting.ack.price if resting.ack.order_type is OrderType.LIMIT else price
            venue_type = "Limit" if resting.ack.order_type is OrderType.LIMIT else "Market"
            logger.info(f"[PAPER] {resting.ack.order_type.value} order {order_id} triggered @ {price}")
            self._close(symbol, _dec(fill_price or price), venue_type, order_id)
            break

    async def close_position(self, symbol: str) -> HistoryEntry | None:
        """Close a position at the current price, as a manual market close."""
        if symbol not in self._positions:
            logger.warning(f"[PAPER] No position to close for {symbol}")
            return None
        price = self._prices.get(symbol, self._positions[symbol].entry_price)
        return self._close(symbol, price, "Market", f"paper_close_{uuid.uuid4().hex[:8]}")

    def _close(
        self, symbol: str, price: Decimal, venue_order_type: str, order_id: str
    ) -> HistoryEntry:
        pos = self._positions.pop(symbol)
        pnl = pos.pnl_at(price)
        self._balance += pnl
        for other_id in [oid for oid, o in self._orders.items() if o.ack.symbol == symbol]:
            del self._orders[other_id]

        entry = HistoryEntry(
            symbol=symbol,
            qty=float(pos.size),
            closed_pnl=float(pnl),
            avg_entry_price=float(pos.entry_price),
            avg_exit_price=float(price),
            exec_type="Trade",
            order_type=venue_order_type,
            updated_time=datetime.now(UTC),
            order_id=order_id,
        )
        self._history.setdefault(symbol, []).insert(0, entry)
        logger.info(f"[PAPER] Closed {pos.side.value} {symbol} @ {price}, PnL: {pnl:+.4f} USDT")
        return entry

    # Account & Position

    async def fetch_positions(self, symbols: list[str] | None = None) -> list[ExchangePosition]:
        positions = []
        for symbol, pos in self._positions.items():
            if symbols and symbol not in symbols:
                continue
            mark = self._prices.get(symbol, pos.entry_price)
            positions.append(
                ExchangePosition(
                    symbol=symbol,
                    side=pos.side,
                    contracts=float(pos.size),
                    entry_price=float(pos.entry_price),
                    mark_price=float(mark),
                    unrealized_pnl=float(pos.pnl_at(mark)),
                    leverage=pos.leverage,
                )
            )
        return positions

    async def fetch_balance(self) -> Balance:
        unrealized = sum(
            (
                pos.pnl_at(self._prices.get(symbol, pos.entry_price))
                for symbol, pos in self._positions.items()
            ),
            Decimal("0"),
        )
        used_margin = sum((pos.margin for pos in self._positions.values()), Decimal("0"))
        return Balance(
            total=float(self._balance + unrealized),
            available=float(self._balance - used_margin),
        )

    async def set_leverage(self, symbol: str, leverage: int) -> bool:
        if self._leverage_settings.get(symbol) == leverage:
            return False
        self._leverage_settings[symbol] = leverage
        logger.info(f"[PAPER] Set leverage to {leverage}x for {symbol}")
        return True

    # Order management

    async def create_order(
        self,
        symbol: str,
        order_type: OrderType,
        side: OrderSide,
        quantity: float,
        price: float | None = None,
        *,
        reduce_only: bool = False,
        trigger_price: float | None = None,
        trigger_direction: TriggerDirection | None = None,
        leverage: int | None = None,
    ) -> OrderAck:
        if quantity <= 0:
            raise ExchangeRejectedError(f"Invalid quantity {quantity}")

        ack = OrderAck(
            order_id=f"paper_{uuid.uuid4().hex[:12]}",
            symbol=symbol,
            side=side,
            order_type=order_type,
            quantity=quantity,
            price=price,
            trigger_price=trigger_price,
            reduce_only=reduce_only,
        )

        if reduce_only:
            pos = self._positions.get(symbol)
            if pos is None or pos.side.close_order_side is not side:
                raise ExchangeRejectedError(f"Reduce-only order has no {symbol} position to reduce")
            if order_type is OrderType.MARKET:
                self._close(symbol, self._prices.get(symbol, pos.entry_price), "Market", ack.order_id)
                ack.status = "filled"
                return ack
            if order_type is OrderType.STOP and (trigger_price is None or trigger_direction is None):
                raise ExchangeRejectedError("Stop orders need a trigger price and direction")
            self._orders[ack.order_id] = RestingOrder(ack=ack, trigger_direction=trigger_direction)
            logger.info(
                f"[PAPER] Resting {order_type.value} {side.value} {quantity} {symbol} "
                f"@ {trigger_price or price}"
            )
            return ack

        if order_type is not OrderType.MARKET:
            raise ExchangeRejectedError("Paper venue only opens positions with market orders")
        if symbol in self._positions:
            raise ExchangeRejectedError(f"Paper venue already holds a {symbol} position")

        fill_price = self._prices.get(symbol) or (_dec(price) if price else None)
        if not fill_price:
            raise ExchangeRejectedError(f"No price known for {symbol}")
        if leverage is not None:
            self._leverage_settings.setdefault(symbol, leverage)
        self._positions[symbol] = SimulatedPosition(
            symbol=symbol,
            side=Side.LONG if side is OrderSide.BUY else Side.SHORT,
            size=_dec(quantity),
            entry_price=fill_price,
            leverage=self._leverage_settings.get(symbol, self._default_leverage),
        )
        ack.status = "filled"
        ack.price = float(fill_price)
        logger.info(f"[PAPER] Opened {side.value} {quantity} {symbol} @ {fill_price}")
        return ack

    # History

    async def fetch_positions_history(
        self,
        symbol: str,
        since: datetime,
        limit: int = 10,
    ) -> list[HistoryEntry]:
        entries = [
            e
            for e in self._history.get(symbol, [])
            if e.updated_time is None or e.updated_time >= since
        ]
        return entries[:limit]

    def get_stats(self) -> dict[str, Any]:
        """Get simulation statistics."""
        return {
            "initial_balance": float(self._initial_balance),
            "current_balance": float(self._balance),
            "open_positions": len(self._positions),
            "resting_orders": len(self._orders),
            "pnl_percent": float(
                (self._balance - self._initial_balance) / self._initial_balance * 100
            ),
        }
