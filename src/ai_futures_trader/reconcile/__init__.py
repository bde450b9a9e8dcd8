"""Reconcile module - resolves closed positions into outcomes."""

from ai_futures_trader.reconcile.matching import (
    ContentHistoryMatcher,
    HistoryMatcher,
    classify_exit_reason,
    classify_outcome,
)
from ai_futures_trader.reconcile.reconciler import PositionReconciler, ReconcileReport

__all__ = [
    "ContentHistoryMatcher",
    "HistoryMatcher",
    "PositionReconciler",
    "ReconcileReport",
    "classify_exit_reason",
    "classify_outcome",
]
