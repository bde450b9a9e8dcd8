"""Exchange data models."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from ai_futures_trader.core.types import OrderSide, OrderType, Side


@dataclass
class ExchangePosition:
    """Live position as reported by the venue."""

    symbol: str
    side: Side
    contracts: float
    entry_price: float
    mark_price: float | None = None
    unrealized_pnl: float = 0.0
    leverage: int | None = None

    @property
    def is_active(self) -> bool:
        return abs(self.contracts) > 0

    @property
    def notional(self) -> float:
        price = self.mark_price or self.entry_price
        return abs(self.contracts) * price

    def to_dict(self) -> dict[str, Any]:
        return {
            "symbol": self.symbol,
            "side": self.side.value,
            "contracts": self.contracts,
            "entry_price": self.entry_price,
            "mark_price": self.mark_price,
            "unrealized_pnl": self.unrealized_pnl,
            "leverage": self.leverage,
        }


@dataclass
class HistoryEntry:
    """Closed-position history entry (Bybit closed-PnL shape)."""

    symbol: str
    qty: float
    closed_pnl: float | None
    avg_entry_price: float
    avg_exit_price: float | None
    exec_type: str = ""
    order_type: str = ""
    updated_time: datetime | None = None
    order_id: str = ""
    raw: dict[str, Any] = field(default_factory=dict, repr=False)

    @property
    def ref(self) -> str:
        """Stable identity used to stop one entry closing two records."""
        if self.order_id:
            return self.order_id
        stamp = self.updated_time.isoformat() if self.updated_time else ""
        return f"{self.symbol}:{self.qty}:{self.avg_entry_price}:{stamp}"


@dataclass
class OrderAck:
    """Venue acknowledgement of an accepted order."""

    order_id: str
    symbol: str
    side: OrderSide
    order_type: OrderType
    quantity: float
    price: float | None = None
    trigger_price: float | None = None
    reduce_only: bool = False
    status: str = "new"
    raw: dict[str, Any] = field(default_factory=dict, repr=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "order_id": self.order_id,
            "symbol": self.symbol,
            "side": self.side.value,
            "order_type": self.order_type.value,
            "quantity": self.quantity,
            "price": self.price,
            "trigger_price": self.trigger_price,
            "reduce_only": self.reduce_only,
            "status": self.status,
        }


@dataclass
class Balance:
    """Account balance in the settlement currency (USDT)."""

    total: float
    available: float
    currency: str = "USDT"
