"""Core module - shared types, error taxonomy and scheduling."""

from ai_futures_trader.core.errors import (
    EntryOrderFailure,
    ExchangeCallError,
    ExchangeRejectedError,
    ExecutionError,
    GuardSkip,
    OracleError,
    ProtectiveOrderFailure,
    ReconciliationMiss,
    SchemaViolation,
    TradingError,
    TransientExchangeError,
)
from ai_futures_trader.core.scheduler import IntervalJob
from ai_futures_trader.core.types import (
    CycleStatus,
    ExitReason,
    Operation,
    OrderSide,
    OrderType,
    PositionOutcome,
    ProtectionLeg,
    Side,
    TriggerDirection,
)

__all__ = [
    "CycleStatus",
    "EntryOrderFailure",
    "ExchangeCallError",
    "ExchangeRejectedError",
    "ExecutionError",
    "ExitReason",
    "GuardSkip",
    "IntervalJob",
    "Operation",
    "OracleError",
    "OrderSide",
    "OrderType",
    "PositionOutcome",
    "ProtectionLeg",
    "ProtectiveOrderFailure",
    "ReconciliationMiss",
    "SchemaViolation",
    "Side",
    "TradingError",
    "TransientExchangeError",
    "TriggerDirection",
]
