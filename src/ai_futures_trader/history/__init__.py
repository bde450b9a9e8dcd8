"""History module - performance statistics over closed trades."""

from ai_futures_trader.history.performance import (
    AntiPattern,
    PerformanceHistory,
    PerformanceSummary,
    TradingHistory,
    format_history,
)

__all__ = [
    "AntiPattern",
    "PerformanceHistory",
    "PerformanceSummary",
    "TradingHistory",
    "format_history",
]
