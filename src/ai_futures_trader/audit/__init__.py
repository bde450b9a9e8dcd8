"""Audit module - append-only decision and order trail."""

from ai_futures_trader.audit.models import DecisionLog, OrderLog
from ai_futures_trader.audit.writer import LocalLogWriter

__all__ = ["DecisionLog", "LocalLogWriter", "OrderLog"]
