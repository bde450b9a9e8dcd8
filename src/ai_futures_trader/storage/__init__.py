"""Storage module - durable position and cycle records."""

from ai_futures_trader.storage.models import CycleRecord, PositionRecord
from ai_futures_trader.storage.store import RecordStore, SqliteRecordStore

__all__ = [
    "CycleRecord",
    "PositionRecord",
    "RecordStore",
    "SqliteRecordStore",
]
