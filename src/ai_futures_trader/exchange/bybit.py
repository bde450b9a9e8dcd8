"""Bybit USDT perpetual exchange implementation (ccxt)."""

import asyncio
import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any, TypeVar

import ccxt

from ai_futures_trader.core.errors import ExchangeRejectedError, TransientExchangeError
from ai_futures_trader.core.types import OrderSide, OrderType, Side, TriggerDirection
from ai_futures_trader.exchange.base import Exchange
from ai_futures_trader.exchange.models import Balance, ExchangePosition, HistoryEntry, OrderAck

logger = logging.getLogger(__name__)

T = TypeVar("T")

QUOTE = "USDT"
LEVERAGE_NOT_MODIFIED = "110043"


def to_market_symbol(symbol: str) -> str:
    """``BTC`` -> ``BTC/USDT:USDT``."""
    if "/" in symbol:
        return symbol
    return f"{symbol.upper()}/{QUOTE}:{QUOTE}"


def to_venue_id(symbol: str) -> str:
    """``BTC`` -> ``BTCUSDT`` as used by the raw v5 endpoints."""
    base = from_market_symbol(symbol)
    return f"{base}{QUOTE}"


def from_market_symbol(symbol: str) -> str:
    """``BTC/USDT:USDT`` or ``BTCUSDT`` -> ``BTC``."""
    if "/" in symbol:
        return symbol.split("/", 1)[0]
    if symbol.endswith(QUOTE) and len(symbol) > len(QUOTE):
        return symbol[: -len(QUOTE)]
    return symbol


def _float_or_none(value: Any) -> float | None:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _float_or_zero(value: Any) -> float:
    parsed = _float_or_none(value)
    return parsed if parsed is not None else 0.0


def _ms_to_datetime(value: Any) -> datetime | None:
    ms = _float_or_none(value)
    if ms is None:
        return None
    return datetime.fromtimestamp(ms / 1000, tz=UTC)


def parse_history_item(item: dict[str, Any]) -> HistoryEntry:
    """Parse one raw ``/v5/position/closed-pnl`` list item."""
    return HistoryEntry(
        symbol=from_market_symbol(str(item.get("symbol", ""))),
        qty=_float_or_zero(item.get("qty") or item.get("closedSize")),
        closed_pnl=_float_or_none(item.get("closedPnl")),
        avg_entry_price=_float_or_zero(item.get("avgEntryPrice")),
        avg_exit_price=_float_or_none(item.get("avgExitPrice")),
        exec_type=str(item.get("execType") or ""),
        order_type=str(item.get("orderType") or ""),
        updated_time=_ms_to_datetime(item.get("updatedTime")),
        order_id=str(item.get("orderId") or ""),
        raw=item,
    )


class BybitExchange(Exchange):
    """Bybit linear perpetual futures via ccxt.

    ccxt is synchronous here; every call is pushed to a worker thread and
    bounded by ``timeout_seconds``.
    """

    def __init__(
        self,
        api_key: str = "",
        api_secret: str = "",
        demo: bool = True,
        timeout_seconds: float = 10.0,
        client: Any | None = None,
    ) -> None:
        """Initialize Bybit exchange.

        Args:
            api_key: Bybit API key
            api_secret: Bybit API secret
            demo: Route requests to Bybit demo trading
            timeout_seconds: Upper bound for every call
            client: Preconfigured ccxt client (tests)
        """
        self._api_key = api_key
        self._api_secret = api_secret
        self._demo = demo
        self._timeout = timeout_seconds
        self._client = client
        self._connected = client is not None

    @property
    def name(self) -> str:
        return "BYBIT"

    @property
    def is_connected(self) -> bool:
        return self._connected

    @property
    def client(self) -> Any:
        if self._client is None:
            raise RuntimeError("Not connected to Bybit")
        return self._client

    async def connect(self) -> None:
        """Create the ccxt client and load markets."""
        if self._client is None:
            self._client = ccxt.bybit(
                {
                    "apiKey": self._api_key,
                    "secret": self._api_secret,
                    "enableRateLimit": True,
                    "timeout": int(self._timeout * 1000),
                    "options": {"defaultType": "swap"},
                }
            )
            if self._demo:
                self._client.enable_demo_trading(True)
        await self._call("load_markets", self._client.load_markets)
        self._connected = True
        logger.info(f"Connected to Bybit ({'demo' if self._demo else 'live'})")

    async def disconnect(self) -> None:
        self._connected = False
        logger.info("Disconnected from Bybit")

    async def _call(self, label: str, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Run a blocking ccxt call in a thread, mapping failures to the error taxonomy."""

        def _invoke() -> T:
            return func(*args, **kwargs)

        try:
            return await asyncio.wait_for(asyncio.to_thread(_invoke), timeout=self._timeout)
        except TimeoutError as e:
            raise TransientExchangeError(f"{label} timed out after {self._timeout}s") from e
        except ccxt.NetworkError as e:
            raise TransientExchangeError(f"{label}: {e}") from e
        except ccxt.ExchangeError as e:
            raise ExchangeRejectedError(f"{label}: {e}", code=_error_code(e)) from e

    # Account & Position

    async def fetch_positions(self, symbols: list[str] | None = None) -> list[ExchangePosition]:
        market_symbols = [to_market_symbol(s) for s in symbols] if symbols else None
        raw_positions = await self._call(
            "fetch_positions", self.client.fetch_positions, market_symbols
        )
        positions = []
        for raw in raw_positions or []:
            contracts = _float_or_zero(raw.get("contracts"))
            if contracts == 0:
                continue
            side = Side.SHORT if str(raw.get("side", "")).lower() == "short" else Side.LONG
            leverage = _float_or_none(raw.get("leverage"))
            positions.append(
                ExchangePosition(
                    symbol=from_market_symbol(str(raw.get("symbol", ""))),
                    side=side,
                    contracts=contracts,
                    entry_price=_float_or_zero(raw.get("entryPrice")),
                    mark_price=_float_or_none(raw.get("markPrice")),
                    unrealized_pnl=_float_or_zero(raw.get("unrealizedPnl")),
                    leverage=int(leverage) if leverage else None,
                )
            )
        return positions

    async def fetch_balance(self) -> Balance:
        raw = await self._call("fetch_balance", self.client.fetch_balance)
        usdt = raw.get(QUOTE, {}) if raw else {}
        return Balance(
            total=_float_or_zero(usdt.get("total")),
            available=_float_or_zero(usdt.get("free")),
        )

    async def set_leverage(self, symbol: str, leverage: int) -> bool:
        try:
            await self._call(
                "set_leverage", self.client.set_leverage, leverage, to_market_symbol(symbol)
            )
        except ExchangeRejectedError as e:
            if e.code == LEVERAGE_NOT_MODIFIED or "not modified" in str(e).lower():
                logger.debug(f"Leverage for {symbol} already {leverage}x")
                return False
            raise
        return True

    # Order management

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
        market_symbol = to_market_symbol(symbol)
        try:
            amount = float(self.client.amount_to_precision(market_symbol, quantity))
        except ccxt.BaseError as e:
            raise ExchangeRejectedError(f"amount_to_precision: {e}") from e

        params: dict[str, Any] = {}
        if reduce_only:
            params["reduceOnly"] = True
        if leverage is not None:
            params["leverage"] = leverage

        ccxt_type = order_type.value
        ccxt_price = price
        if order_type is OrderType.STOP:
            if trigger_price is None or trigger_direction is None:
                raise ValueError("Stop orders need trigger_price and trigger_direction")
            ccxt_type = "market"
            ccxt_price = None
            params["triggerPrice"] = trigger_price
            params["triggerDirection"] = (
                "ascending" if trigger_direction is TriggerDirection.RISE else "descending"
            )
        elif order_type is OrderType.LIMIT:
            if price is None:
                raise ValueError("Limit orders need a price")
            params["timeInForce"] = "GTC"

        raw = await self._call(
            "create_order",
            self.client.create_order,
            market_symbol,
            ccxt_type,
            side.value,
            amount,
            ccxt_price,
            params,
        )
        logger.info(
            f"Order accepted: {symbol} {order_type.value} {side.value} {amount}"
            f"{f' @ {price}' if price else ''}"
            f"{f' trigger {trigger_price}' if trigger_price else ''}"
            f"{' reduce-only' if reduce_only else ''}"
        )
        return OrderAck(
            order_id=str(raw.get("id") or ""),
            symbol=symbol,
            side=side,
            order_type=order_type,
            quantity=amount,
            price=price,
            trigger_price=trigger_price,
            reduce_only=reduce_only,
            status=str(raw.get("status") or "new"),
            raw=raw,
        )

    # History

    async def fetch_positions_history(
        self,
        symbol: str,
        since: datetime,
        limit: int = 10,
    ) -> list[HistoryEntry]:
        since_ms = int(since.timestamp() * 1000)
        try:
            raw = await self._call(
                "fetch_positions_history",
                self.client.fetch_positions_history,
                [to_market_symbol(symbol)],
                since_ms,
                limit,
            )
            items = [p.get("info", p) for p in raw or []]
        except (TransientExchangeError, ExchangeRejectedError) as e:
            logger.warning(f"fetch_positions_history failed for {symbol}, using closed-pnl API: {e}")
            response = await self._call(
                "closed_pnl",
                self.client.private_get_v5_position_closed_pnl,
                {
                    "category": "linear",
                    "symbol": to_venue_id(symbol),
                    "startTime": since_ms,
                    "limit": limit,
                },
            )
            items = ((response or {}).get("result") or {}).get("list") or []

        entries = [parse_history_item(item) for item in items]
        entries.sort(
            key=lambda e: e.updated_time or datetime.min.replace(tzinfo=UTC), reverse=True
        )
        return entries

    # Market data

    async def fetch_ohlcv(self, symbol: str, timeframe: str, limit: int = 100) -> list[list[float]]:
        return await self._call(
            "fetch_ohlcv",
            self.client.fetch_ohlcv,
            to_market_symbol(symbol),
            timeframe,
            None,
            limit,
        )

    async def fetch_funding_rate(self, symbol: str) -> float:
        raw = await self._call(
            "fetch_funding_rate", self.client.fetch_funding_rate, to_market_symbol(symbol)
        )
        return _float_or_zero(raw.get("fundingRate"))

    async def fetch_open_interest(self, symbol: str) -> float:
        raw = await self._call(
            "fetch_open_interest", self.client.fetch_open_interest, to_market_symbol(symbol)
        )
        return _float_or_zero(raw.get("openInterestAmount") or raw.get("openInterestValue"))


def _error_code(error: Exception) -> str | None:
    """Pull a Bybit retCode out of a ccxt error message."""
    text = str(error)
    if LEVERAGE_NOT_MODIFIED in text:
        return LEVERAGE_NOT_MODIFIED
    if '"retCode":' in text:
        tail = text.split('"retCode":', 1)[1]
        digits = "".join(ch for ch in tail.lstrip()[:8] if ch.isdigit())
        return digits or None
    return None
