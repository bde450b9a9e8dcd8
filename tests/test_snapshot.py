"""Tests for indicator snapshots."""

import math

import pytest

from ai_futures_trader.core.errors import TransientExchangeError
from ai_futures_trader.market.snapshot import CcxtSnapshotProvider, compute_features


def make_candles(count=100, base=100000.0, step=10.0):
    """Synthetic ``[ts, open, high, low, close, volume]`` candles, oldest first."""
    candles = []
    for i in range(count):
        close = base + step * i + 50.0 * math.sin(i / 3)
        candles.append([i * 60_000, close - 5, close + 20, close - 20, close, 10.0 + i % 7])
    return candles


class FakeMarketData:
    def __init__(self, funding_error=None):
        self.funding_error = funding_error
        self.calls = []

    async def fetch_ohlcv(self, symbol, timeframe, limit=100):
        self.calls.append((symbol, timeframe, limit))
        return make_candles(limit)

    async def fetch_funding_rate(self, symbol):
        if self.funding_error:
            raise self.funding_error
        return 0.0001

    async def fetch_open_interest(self, symbol):
        return 52000.0


class TestComputeFeatures:
    """Test compute_features."""

    def test_latest_values(self):
        intraday = make_candles()
        features = compute_features("BTC", intraday, make_candles(), 0.0001, 52000.0)

        assert features.price == intraday[-1][4]
        assert features.ema20 is not None
        assert features.macd is not None
        assert 0 <= features.rsi7 <= 100
        assert 0 <= features.rsi14 <= 100
        assert features.atr14 > 0
        assert features.long_ema50 is not None
        assert features.funding_rate == 0.0001

    def test_series_are_short_and_ordered(self):
        intraday = make_candles()
        features = compute_features("BTC", intraday, make_candles())

        assert len(features.mid_prices) == 10
        assert features.mid_prices[-1] == round(intraday[-1][4], 3)
        assert len(features.ema20_series) == 10
        assert len(features.rsi14_series) == 10

    def test_short_history_leaves_gaps(self):
        """Too few candles for an indicator yield None, not an error."""
        features = compute_features("BTC", make_candles(5), make_candles(5))

        assert features.price is not None
        assert features.ema20 is None
        assert features.long_ema50 is None

    def test_no_candles(self):
        with pytest.raises(ValueError):
            compute_features("BTC", [], make_candles())

    def test_indicators_at_open(self):
        features = compute_features("BTC", make_candles(), make_candles(), 0.0001, 52000.0)
        snapshot = features.indicators_at_open()

        assert set(snapshot) == {
            "rsi",
            "macd",
            "ema20",
            "volume",
            "funding_rate",
            "open_interest",
            "atr_14",
        }
        assert snapshot["rsi"] == features.rsi14
        assert snapshot["open_interest"] == 52000.0


class TestCcxtSnapshotProvider:
    """Test CcxtSnapshotProvider."""

    @pytest.mark.asyncio
    async def test_collect(self):
        source = FakeMarketData()
        features = await CcxtSnapshotProvider(source).collect("ETH")

        assert features.symbol == "ETH"
        assert [c[1] for c in source.calls] == ["1m", "1h"]
        assert features.open_interest == 52000.0

    @pytest.mark.asyncio
    async def test_funding_failure_degrades(self):
        """Funding is optional context; its failure does not fail the snapshot."""
        source = FakeMarketData(funding_error=TransientExchangeError("timeout"))
        features = await CcxtSnapshotProvider(source).collect("BTC")

        assert features.funding_rate == 0.0
