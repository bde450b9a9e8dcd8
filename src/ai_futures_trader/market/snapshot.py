"""Market snapshot provider - indicator feature vectors via talipp."""

import logging
from abc import ABC, abstractmethod
from typing import Any, Protocol

from talipp.indicators import ATR, EMA, MACD, RSI
from talipp.ohlcv import OHLCV

from ai_futures_trader.market.models import FeatureVector

logger = logging.getLogger(__name__)

CANDLE_LIMIT = 100
SERIES_LENGTH = 10


class MarketDataSource(Protocol):
    """Venue market-data calls used to build snapshots."""

    async def fetch_ohlcv(self, symbol: str, timeframe: str, limit: int = 100) -> list[list[float]]: ...

    async def fetch_funding_rate(self, symbol: str) -> float: ...

    async def fetch_open_interest(self, symbol: str) -> float: ...


class SnapshotProvider(ABC):
    """Supplies a feature vector per symbol."""

    @abstractmethod
    async def collect(self, symbol: str) -> FeatureVector:
        ...


def _round_or_none(value: Any, digits: int = 3) -> float | None:
    if value is None:
        return None
    return round(float(value), digits)


def _tail(values: list[Any], length: int = SERIES_LENGTH, digits: int = 3) -> list[float]:
    present = [v for v in values if v is not None]
    return [round(float(v), digits) for v in present[-length:]]


def _macd_line(macd: MACD) -> list[float | None]:
    return [v.macd if v is not None else None for v in macd]


def compute_features(
    symbol: str,
    intraday: list[list[float]],
    hourly: list[list[float]],
    funding_rate: float = 0.0,
    open_interest: float = 0.0,
) -> FeatureVector:
    """Build a feature vector from raw ``[ts, open, high, low, close, volume]`` candles.

    Args:
        symbol: Base symbol
        intraday: 1m candles, oldest first
        hourly: 1h candles, oldest first
        funding_rate: Latest funding rate
        open_interest: Latest open interest

    Returns:
        FeatureVector with the latest values and short series
    """
    if not intraday:
        raise ValueError(f"No intraday candles for {symbol}")

    closes = [float(c[4]) for c in intraday]
    ema20 = EMA(20, closes)
    macd = MACD(12, 26, 9, closes)
    rsi7 = RSI(7, closes)
    rsi14 = RSI(14, closes)
    macd_line = _macd_line(macd)

    long_closes = [float(c[4]) for c in hourly]
    long_bars = [
        OHLCV(float(c[1]), float(c[2]), float(c[3]), float(c[4]), float(c[5])) for c in hourly
    ]
    long_ema20 = EMA(20, long_closes)
    long_ema50 = EMA(50, long_closes)
    atr3 = ATR(3, long_bars)
    atr14 = ATR(14, long_bars)
    long_macd_line = _macd_line(MACD(12, 26, 9, long_closes))
    long_rsi14 = RSI(14, long_closes)

    volumes = [float(c[5]) for c in hourly]
    current_volume = volumes[-1] if volumes else 0.0
    average_volume = sum(volumes) / len(volumes) if volumes else 0.0

    return FeatureVector(
        symbol=symbol,
        price=closes[-1],
        ema20=_round_or_none(ema20[-1] if ema20 else None),
        macd=_round_or_none(macd_line[-1] if macd_line else None),
        rsi7=_round_or_none(rsi7[-1] if rsi7 else None),
        rsi14=_round_or_none(rsi14[-1] if rsi14 else None),
        mid_prices=_tail(closes),
        ema20_series=_tail(list(ema20)),
        macd_series=_tail(macd_line),
        rsi7_series=_tail(list(rsi7)),
        rsi14_series=_tail(list(rsi14)),
        long_ema20=_round_or_none(long_ema20[-1] if long_ema20 else None),
        long_ema50=_round_or_none(long_ema50[-1] if long_ema50 else None),
        atr3=_round_or_none(atr3[-1] if atr3 else None),
        atr14=_round_or_none(atr14[-1] if atr14 else None),
        current_volume=current_volume,
        average_volume=average_volume,
        long_macd_series=_tail(long_macd_line),
        long_rsi14_series=_tail(list(long_rsi14)),
        funding_rate=funding_rate,
        open_interest=open_interest,
    )


class CcxtSnapshotProvider(SnapshotProvider):
    """Builds feature vectors from venue candles, funding and open interest."""

    def __init__(self, source: MarketDataSource, candle_limit: int = CANDLE_LIMIT) -> None:
        self._source = source
        self._limit = candle_limit

    async def collect(self, symbol: str) -> FeatureVector:
        intraday = await self._source.fetch_ohlcv(symbol, "1m", self._limit)
        hourly = await self._source.fetch_ohlcv(symbol, "1h", self._limit)

        # Funding and OI only enrich the prompt
        try:
            funding_rate = await self._source.fetch_funding_rate(symbol)
        except Exception as e:
            logger.warning(f"Funding rate unavailable for {symbol}: {e}")
            funding_rate = 0.0
        try:
            open_interest = await self._source.fetch_open_interest(symbol)
        except Exception as e:
            logger.warning(f"Open interest unavailable for {symbol}: {e}")
            open_interest = 0.0

        return compute_features(symbol, intraday, hourly, funding_rate, open_interest)
