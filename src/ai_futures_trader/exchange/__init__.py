"""Exchange module - venue contract and adapters."""

from ai_futures_trader.exchange.base import Exchange
from ai_futures_trader.exchange.bybit import BybitExchange
from ai_futures_trader.exchange.models import Balance, ExchangePosition, HistoryEntry, OrderAck
from ai_futures_trader.exchange.paper import PaperExchange

__all__ = [
    "Balance",
    "BybitExchange",
    "Exchange",
    "ExchangePosition",
    "HistoryEntry",
    "OrderAck",
    "PaperExchange",
]
