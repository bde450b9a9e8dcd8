"""Execution result models."""

from dataclasses import dataclass
from typing import Any

from ai_futures_trader.core.types import Side
from ai_futures_trader.exchange.models import OrderAck


@dataclass
class ProtectionResult:
    """Outcome of placing the stop-loss and take-profit legs."""

    stop_loss_placed: bool = False
    take_profit_placed: bool = False
    stop_loss_order: OrderAck | None = None
    take_profit_order: OrderAck | None = None

    @property
    def complete(self) -> bool:
        return self.stop_loss_placed and self.take_profit_placed


@dataclass
class ExecutionResult:
    """Outcome of an executed trade decision."""

    order_id: str
    symbol: str
    side: Side
    requested_contracts: float
    contracts: float | None  # live, None if the position read failed
    entry_price: float | None
    mark_price: float | None
    leverage_set: bool
    entry_order: OrderAck
    protection: ProtectionResult

    @property
    def stop_loss_placed(self) -> bool:
        return self.protection.stop_loss_placed

    @property
    def take_profit_placed(self) -> bool:
        return self.protection.take_profit_placed

    @property
    def needs_protection_retry(self) -> bool:
        return not self.protection.complete

    @property
    def orders(self) -> list[OrderAck]:
        orders = [self.entry_order]
        for ack in (self.protection.stop_loss_order, self.protection.take_profit_order):
            if ack is not None:
                orders.append(ack)
        return orders

    def to_dict(self) -> dict[str, Any]:
        return {
            "order_id": self.order_id,
            "symbol": self.symbol,
            "side": self.side.value,
            "requested_contracts": self.requested_contracts,
            "contracts": self.contracts,
            "entry_price": self.entry_price,
            "mark_price": self.mark_price,
            "leverage_set": self.leverage_set,
            "stop_loss_placed": self.stop_loss_placed,
            "take_profit_placed": self.take_profit_placed,
        }
