"""Market module - indicator snapshots and account digest."""

from ai_futures_trader.market.account import format_account, summarize_account
from ai_futures_trader.market.models import AccountSummary, FeatureVector
from ai_futures_trader.market.snapshot import (
    CcxtSnapshotProvider,
    MarketDataSource,
    SnapshotProvider,
    compute_features,
)

__all__ = [
    "AccountSummary",
    "CcxtSnapshotProvider",
    "FeatureVector",
    "MarketDataSource",
    "SnapshotProvider",
    "compute_features",
    "format_account",
    "summarize_account",
]
