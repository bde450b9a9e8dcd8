"""Execution module - guarded, risk-managed order placement."""

from ai_futures_trader.execution.executor import OrderExecutor
from ai_futures_trader.execution.guard import PositionGuard
from ai_futures_trader.execution.models import ExecutionResult, ProtectionResult

__all__ = [
    "ExecutionResult",
    "OrderExecutor",
    "PositionGuard",
    "ProtectionResult",
]
