"""Position existence guard."""

import logging

from ai_futures_trader.core.errors import GuardSkip
from ai_futures_trader.exchange.base import Exchange
from ai_futures_trader.exchange.models import ExchangePosition

logger = logging.getLogger(__name__)


class PositionGuard:
    """Prevents opening a second position on a symbol.

    Reads live venue positions on every call instead of the durable record,
    so positions closed by hand on the venue are seen immediately. This is a
    best-effort check, not a lock: outside trading activity can still race
    it. A failed read propagates; the guard never reports "no position"
    when it could not look.
    """

    def __init__(self, exchange: Exchange) -> None:
        self._exchange = exchange

    async def open_positions(self, symbols: list[str] | None = None) -> list[ExchangePosition]:
        positions = await self._exchange.fetch_positions(symbols)
        return [p for p in positions if p.is_active]

    async def has_open_position(self, symbol: str) -> bool:
        positions = await self.open_positions([symbol])
        return any(p.symbol == symbol for p in positions)

    async def ensure_no_open_position(self, symbol: str) -> None:
        """Raise ``GuardSkip`` if the venue already holds a position for symbol."""
        if await self.has_open_position(symbol):
            logger.info(f"Skipping {symbol}: position already open")
            raise GuardSkip(symbol)
