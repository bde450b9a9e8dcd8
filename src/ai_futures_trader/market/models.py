"""Market snapshot models."""

from dataclasses import dataclass, field
from typing import Any


@dataclass
class FeatureVector:
    """Indicator snapshot for one symbol.

    Intraday series are sampled on 1m candles, longer-term ones on 1h
    candles. Every series is ordered oldest to newest.
    """

    symbol: str
    price: float
    ema20: float | None = None
    macd: float | None = None
    rsi7: float | None = None
    rsi14: float | None = None

    # Intraday (1m) series
    mid_prices: list[float] = field(default_factory=list)
    ema20_series: list[float] = field(default_factory=list)
    macd_series: list[float] = field(default_factory=list)
    rsi7_series: list[float] = field(default_factory=list)
    rsi14_series: list[float] = field(default_factory=list)

    # Longer-term (1h) context
    long_ema20: float | None = None
    long_ema50: float | None = None
    atr3: float | None = None
    atr14: float | None = None
    current_volume: float = 0.0
    average_volume: float = 0.0
    long_macd_series: list[float] = field(default_factory=list)
    long_rsi14_series: list[float] = field(default_factory=list)

    funding_rate: float = 0.0
    open_interest: float = 0.0

    def indicators_at_open(self) -> dict[str, Any]:
        """Snapshot copied onto a position record when it opens."""
        return {
            "rsi": self.rsi14,
            "macd": self.macd,
            "ema20": self.ema20,
            "volume": self.current_volume,
            "funding_rate": self.funding_rate,
            "open_interest": self.open_interest,
            "atr_14": self.atr14,
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "symbol": self.symbol,
            "price": self.price,
            "ema20": self.ema20,
            "macd": self.macd,
            "rsi7": self.rsi7,
            "rsi14": self.rsi14,
            "long_ema20": self.long_ema20,
            "long_ema50": self.long_ema50,
            "atr3": self.atr3,
            "atr14": self.atr14,
            "current_volume": self.current_volume,
            "average_volume": self.average_volume,
            "funding_rate": self.funding_rate,
            "open_interest": self.open_interest,
        }


@dataclass
class AccountSummary:
    """Account information and performance for the prompt."""

    total_cash: float
    available_cash: float
    positions_value: float
    total_return: float  # fraction of initial capital
    positions: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_cash": self.total_cash,
            "available_cash": self.available_cash,
            "positions_value": self.positions_value,
            "total_return": self.total_return,
            "positions": self.positions,
        }
