"""Global type definitions."""

from enum import Enum


class Operation(str, Enum):
    """Decision operation returned by the oracle."""

    BUY = "Buy"
    SELL = "Sell"
    HOLD = "Hold"


class Side(str, Enum):
    """Position side."""

    LONG = "long"
    SHORT = "short"

    @property
    def entry_order_side(self) -> "OrderSide":
        return OrderSide.BUY if self is Side.LONG else OrderSide.SELL

    @property
    def close_order_side(self) -> "OrderSide":
        """Order side of reduce-only orders that close this position."""
        return OrderSide.SELL if self is Side.LONG else OrderSide.BUY

    @classmethod
    def from_operation(cls, operation: Operation) -> "Side":
        if operation is Operation.BUY:
            return cls.LONG
        if operation is Operation.SELL:
            return cls.SHORT
        raise ValueError(f"Operation {operation.value} has no position side")


class OrderSide(str, Enum):
    """Order side as sent to the venue."""

    BUY = "buy"
    SELL = "sell"


class OrderType(str, Enum):
    """Order type."""

    MARKET = "market"
    LIMIT = "limit"
    STOP = "stop"  # stop-triggered market order


class TriggerDirection(str, Enum):
    """Direction the mark price must cross to fire a stop order."""

    RISE = "rise"
    FALL = "fall"


class PositionOutcome(str, Enum):
    """Lifecycle state of a position record."""

    OPEN = "open"
    WIN = "win"
    LOSS = "loss"


class ExitReason(str, Enum):
    """How a position was closed."""

    STOP_LOSS = "stop_loss"
    TAKE_PROFIT = "take_profit"
    MANUAL_CLOSE = "manual_close"
    LIMIT_ORDER = "limit_order"
    UNKNOWN = "unknown"


class CycleStatus(str, Enum):
    """Result of a single decision cycle."""

    EXECUTED = "executed"
    HOLD = "hold"
    SKIPPED = "skipped"
    FAILED = "failed"


class ProtectionLeg(str, Enum):
    """Protective order leg."""

    STOP_LOSS = "stop_loss"
    TAKE_PROFIT = "take_profit"
