"""Abstract exchange interface."""

from abc import ABC, abstractmethod
from datetime import datetime

from ai_futures_trader.core.types import OrderSide, OrderType, TriggerDirection
from ai_futures_trader.exchange.models import Balance, ExchangePosition, HistoryEntry, OrderAck


class Exchange(ABC):
    """Abstract exchange interface.

    Defines the contract the trading core depends on. Implementations
    translate venue failures into ``TransientExchangeError`` or
    ``ExchangeRejectedError`` and bound every call with a timeout.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Exchange name."""
        ...

    # Connection management

    @abstractmethod
    async def connect(self) -> None:
        """Establish connection to exchange."""
        ...

    @abstractmethod
    async def disconnect(self) -> None:
        """Close connection to exchange."""
        ...

    # Account & Position

    @abstractmethod
    async def fetch_positions(self, symbols: list[str] | None = None) -> list[ExchangePosition]:
        """Get live positions, optionally restricted to base symbols like ``BTC``."""
        ...

    @abstractmethod
    async def fetch_balance(self) -> Balance:
        """Get account balance."""
        ...

    @abstractmethod
    async def set_leverage(self, symbol: str, leverage: int) -> bool:
        """Set leverage for a symbol.

        Returns:
            True if changed, False if the venue reports it was already set
        """
        ...

    # Order management

    @abstractmethod
    async def create_order(
        self,
        symbol: str,
        order_type: OrderType,
        side: OrderSide,
        quantity: float,
        price: float | None = None,
        *,
        reduce_only: bool = False,
        trigger_price: float | None = None,
        trigger_direction: TriggerDirection | None = None,
        leverage: int | None = None,
    ) -> OrderAck:
        """Submit an order.

        ``OrderType.STOP`` is a stop-triggered market order and requires
        ``trigger_price`` and ``trigger_direction``.
        """
        ...

    # History

    @abstractmethod
    async def fetch_positions_history(
        self,
        symbol: str,
        since: datetime,
        limit: int = 10,
    ) -> list[HistoryEntry]:
        """Get closed positions for a symbol, newest first."""
        ...

    async def fetch_position(self, symbol: str) -> ExchangePosition | None:
        """Get the active position for a symbol, if any."""
        for position in await self.fetch_positions([symbol]):
            if position.symbol == symbol and position.is_active:
                return position
        return None
