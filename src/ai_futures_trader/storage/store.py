"""Durable record store.

SQLite in WAL mode behind a single connection and lock. Outcome updates are
guarded by ``outcome = 'open'`` so closing a record twice is a no-op. Methods
are blocking; async callers run them through ``asyncio.to_thread``.
"""

import json
import logging
import sqlite3
import threading
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Any

from ai_futures_trader.core.types import ExitReason, PositionOutcome
from ai_futures_trader.storage.models import CycleRecord, PositionRecord, to_db_time

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS positions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    symbol TEXT NOT NULL,
    operation TEXT NOT NULL,
    side TEXT NOT NULL,
    entry_price REAL NOT NULL,
    requested_entry_price REAL NOT NULL,
    amount_usd REAL NOT NULL,
    contracts REAL,
    leverage INTEGER NOT NULL,
    stop_loss REAL NOT NULL,
    take_profit REAL NOT NULL,
    exchange_order_id TEXT,
    indicators_at_open TEXT,
    rationale TEXT,
    stop_loss_placed INTEGER NOT NULL DEFAULT 0,
    take_profit_placed INTEGER NOT NULL DEFAULT 0,
    outcome TEXT NOT NULL DEFAULT 'open',
    exit_price REAL,
    exit_reason TEXT,
    realized_pnl REAL,
    history_ref TEXT,
    closed_at TEXT,
    created_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_positions_outcome ON positions(outcome);
CREATE INDEX IF NOT EXISTS idx_positions_symbol ON positions(symbol, created_at);

CREATE TABLE IF NOT EXISTS cycles (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    status TEXT NOT NULL,
    operation TEXT NOT NULL,
    symbol TEXT,
    rationale TEXT,
    error TEXT,
    position_id INTEGER,
    started_at TEXT NOT NULL,
    finished_at TEXT NOT NULL
);
"""

# Percent distance of SL/TP from the requested entry, as the oracle set them
SL_PCT = "(stop_loss / requested_entry_price - 1) * 100"
TP_PCT = "(take_profit / requested_entry_price - 1) * 100"


class RecordStore(ABC):
    """Persistence contract for position and cycle records."""

    @abstractmethod
    def create_position(self, record: PositionRecord) -> PositionRecord:
        ...

    @abstractmethod
    def get_position(self, record_id: int) -> PositionRecord | None:
        ...

    @abstractmethod
    def list_open_positions(self, symbol: str | None = None) -> list[PositionRecord]:
        ...

    @abstractmethod
    def update_protection(
        self, record_id: int, stop_loss_placed: bool, take_profit_placed: bool
    ) -> None:
        ...

    @abstractmethod
    def close_position(
        self,
        record_id: int,
        outcome: PositionOutcome,
        exit_price: float | None,
        exit_reason: ExitReason,
        realized_pnl: float | None,
        closed_at: datetime,
        history_ref: str | None = None,
    ) -> bool:
        ...

    @abstractmethod
    def history_refs(self, symbol: str) -> set[str]:
        ...

    @abstractmethod
    def record_cycle(self, cycle: CycleRecord) -> CycleRecord:
        ...


class SqliteRecordStore(RecordStore):
    """SQLite implementation of the record store."""

    def __init__(self, db_path: Path | str = ":memory:") -> None:
        """Open (and create) the database.

        Args:
            db_path: Database file, or ``:memory:``
        """
        self._db_path = str(db_path)
        if self._db_path != ":memory:":
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(self._db_path, timeout=30.0, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.executescript(SCHEMA)
        self._conn.commit()
        logger.info(f"Record store ready at {self._db_path}")

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def _query(self, sql: str, params: tuple[Any, ...] = ()) -> list[sqlite3.Row]:
        with self._lock:
            return self._conn.execute(sql, params).fetchall()

    # Positions

    def create_position(self, record: PositionRecord) -> PositionRecord:
        data = record.to_dict()
        data.pop("id")
        data["indicators_at_open"] = json.dumps(record.indicators_at_open, default=str)
        data["stop_loss_placed"] = int(record.stop_loss_placed)
        data["take_profit_placed"] = int(record.take_profit_placed)
        columns = ", ".join(data)
        placeholders = ", ".join("?" for _ in data)
        with self._lock:
            cursor = self._conn.execute(
                f"INSERT INTO positions ({columns}) VALUES ({placeholders})",
                tuple(data.values()),
            )
            self._conn.commit()
        record.id = cursor.lastrowid
        logger.info(
            f"Position #{record.id} recorded: {record.operation.value} {record.symbol} "
            f"{record.contracts} @ {record.entry_price}"
        )
        return record

    def get_position(self, record_id: int) -> PositionRecord | None:
        rows = self._query("SELECT * FROM positions WHERE id = ?", (record_id,))
        return PositionRecord.from_row(rows[0]) if rows else None

    def list_open_positions(self, symbol: str | None = None) -> list[PositionRecord]:
        if symbol:
            rows = self._query(
                "SELECT * FROM positions WHERE outcome = 'open' AND symbol = ? "
                "ORDER BY created_at ASC, id ASC",
                (symbol,),
            )
        else:
            rows = self._query(
                "SELECT * FROM positions WHERE outcome = 'open' ORDER BY created_at ASC, id ASC"
            )
        return [PositionRecord.from_row(r) for r in rows]

    def update_protection(
        self, record_id: int, stop_loss_placed: bool, take_profit_placed: bool
    ) -> None:
        with self._lock:
            self._conn.execute(
                "UPDATE positions SET stop_loss_placed = ?, take_profit_placed = ? "
                "WHERE id = ? AND outcome = 'open'",
                (int(stop_loss_placed), int(take_profit_placed), record_id),
            )
            self._conn.commit()

    def close_position(
        self,
        record_id: int,
        outcome: PositionOutcome,
        exit_price: float | None,
        exit_reason: ExitReason,
        realized_pnl: float | None,
        closed_at: datetime,
        history_ref: str | None = None,
    ) -> bool:
        """Move an open record to its terminal outcome.

        Returns:
            True if the record was open and is now closed
        """
        if outcome is PositionOutcome.OPEN:
            raise ValueError("close_position needs a terminal outcome")
        with self._lock:
            cursor = self._conn.execute(
                "UPDATE positions SET outcome = ?, exit_price = ?, exit_reason = ?, "
                "realized_pnl = ?, closed_at = ?, history_ref = ? "
                "WHERE id = ? AND outcome = 'open'",
                (
                    outcome.value,
                    exit_price,
                    exit_reason.value,
                    realized_pnl,
                    to_db_time(closed_at),
                    history_ref,
                    record_id,
                ),
            )
            self._conn.commit()
        return cursor.rowcount == 1

    def history_refs(self, symbol: str) -> set[str]:
        rows = self._query(
            "SELECT history_ref FROM positions WHERE symbol = ? AND history_ref IS NOT NULL",
            (symbol,),
        )
        return {r["history_ref"] for r in rows}

    # Cycles

    def record_cycle(self, cycle: CycleRecord) -> CycleRecord:
        with self._lock:
            cursor = self._conn.execute(
                "INSERT INTO cycles (status, operation, symbol, rationale, error, position_id, "
                "started_at, finished_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    cycle.status.value,
                    cycle.operation.value,
                    cycle.symbol,
                    cycle.rationale,
                    cycle.error,
                    cycle.position_id,
                    to_db_time(cycle.started_at),
                    to_db_time(cycle.finished_at),
                ),
            )
            self._conn.commit()
        cycle.id = cursor.lastrowid
        return cycle

    def recent_cycles(self, limit: int = 20) -> list[CycleRecord]:
        rows = self._query("SELECT * FROM cycles ORDER BY id DESC LIMIT ?", (limit,))
        return [CycleRecord.from_row(r) for r in rows]

    # Aggregations over closed trades

    def performance_stats(
        self, symbol: str, since: datetime, high_leverage: int = 5
    ) -> dict[str, Any]:
        rows = self._query(
            f"""
            SELECT
                COUNT(*) AS total_trades,
                ROUND(AVG(CASE WHEN outcome = 'win' THEN 1.0 ELSE 0.0 END) * 100.0, 1) AS win_rate,
                ROUND(AVG(CASE WHEN outcome = 'win' THEN realized_pnl END), 3) AS avg_win_pnl,
                ROUND(AVG(CASE WHEN outcome = 'loss' THEN realized_pnl END), 3) AS avg_loss_pnl,
                COUNT(CASE WHEN leverage > ? THEN 1 END) AS high_leverage_trades,
                ROUND(AVG(CASE WHEN outcome = 'win' THEN {TP_PCT} END), 2) AS avg_tp_percent,
                ROUND(AVG(CASE WHEN outcome = 'loss' THEN {SL_PCT} END), 2) AS avg_sl_percent
            FROM positions
            WHERE operation IN ('Buy', 'Sell')
              AND outcome IN ('win', 'loss')
              AND symbol = ?
              AND created_at >= ?
            """,
            (high_leverage, symbol, to_db_time(since)),
        )
        return dict(rows[0]) if rows else {}

    def losing_setups(self, symbol: str, limit: int = 3) -> list[dict[str, Any]]:
        rows = self._query(
            f"""
            SELECT
                leverage,
                ROUND({SL_PCT}, 1) AS sl_percent,
                ROUND({TP_PCT}, 1) AS tp_percent,
                COUNT(*) AS trade_count,
                ROUND(AVG(realized_pnl), 3) AS avg_pnl,
                SUM(CASE WHEN outcome = 'loss' THEN 1 ELSE 0 END) AS losses
            FROM positions
            WHERE operation IN ('Buy', 'Sell')
              AND outcome IN ('win', 'loss')
              AND realized_pnl < 0
              AND symbol = ?
            GROUP BY leverage, ROUND({SL_PCT}, 1), ROUND({TP_PCT}, 1)
            ORDER BY avg_pnl ASC
            LIMIT ?
            """,
            (symbol, limit),
        )
        return [dict(r) for r in rows]

    def recent_closed(self, symbol: str, limit: int = 5) -> list[PositionRecord]:
        rows = self._query(
            "SELECT * FROM positions WHERE outcome IN ('win', 'loss') AND symbol = ? "
            "ORDER BY closed_at IS NULL, closed_at DESC, created_at DESC LIMIT ?",
            (symbol, limit),
        )
        return [PositionRecord.from_row(r) for r in rows]
