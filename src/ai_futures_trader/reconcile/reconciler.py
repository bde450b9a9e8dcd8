"""Position reconciler.

Diffs open durable records against live venue positions. When a record's
position is gone, the closing history entry is matched by content and the
record moves to win or loss. Unmatched records stay open and are retried on
the next pass.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from ai_futures_trader.core.errors import ExchangeCallError, ReconciliationMiss
from ai_futures_trader.exchange.base import Exchange
from ai_futures_trader.exchange.models import HistoryEntry
from ai_futures_trader.reconcile.matching import (
    ContentHistoryMatcher,
    HistoryMatcher,
    classify_exit_reason,
    classify_outcome,
)
from ai_futures_trader.storage.models import PositionRecord, utc_now
from ai_futures_trader.storage.store import RecordStore

logger = logging.getLogger(__name__)


@dataclass
class ReconcileReport:
    """Summary of one reconciliation pass."""

    checked: int = 0
    still_open: int = 0
    closed: list[int] = field(default_factory=list)
    misses: list[int] = field(default_factory=list)
    errors: dict[str, str] = field(default_factory=dict)


class PositionReconciler:
    """Resolves closed positions into outcomes."""

    def __init__(
        self,
        exchange: Exchange,
        store: RecordStore,
        matcher: HistoryMatcher | None = None,
        lookback_days: int = 7,
        history_limit: int = 10,
    ) -> None:
        self._exchange = exchange
        self._store = store
        self._matcher = matcher or ContentHistoryMatcher()
        self._lookback = timedelta(days=lookback_days)
        self._history_limit = history_limit

    async def reconcile(self) -> ReconcileReport:
        """Run one reconciliation pass.

        Raises:
            TransientExchangeError: The live positions read failed; nothing
                is touched for this pass
        """
        report = ReconcileReport()
        records = await asyncio.to_thread(self._store.list_open_positions)
        if not records:
            return report

        live = await self._exchange.fetch_positions()
        active_symbols = {p.symbol for p in live if p.is_active}

        history_cache: dict[str, list[HistoryEntry]] = {}
        claimed: dict[str, set[str]] = {}

        for record in records:
            report.checked += 1
            if record.symbol in active_symbols:
                report.still_open += 1
                continue
            if record.symbol in report.errors:
                continue

            if record.symbol not in history_cache:
                try:
                    history_cache[record.symbol] = await self._exchange.fetch_positions_history(
                        record.symbol,
                        since=utc_now() - self._lookback,
                        limit=self._history_limit,
                    )
                except ExchangeCallError as e:
                    logger.warning(f"History unavailable for {record.symbol}: {e}")
                    report.errors[record.symbol] = str(e)
                    continue
                claimed[record.symbol] = await asyncio.to_thread(
                    self._store.history_refs, record.symbol
                )

            try:
                await self._resolve(record, history_cache[record.symbol], claimed[record.symbol])
                report.closed.append(record.id)
            except ReconciliationMiss as miss:
                logger.info(f"{miss}; retrying next pass")
                report.misses.append(record.id)

        if report.closed or report.misses or report.errors:
            logger.info(
                f"Reconcile: checked {report.checked}, open {report.still_open}, "
                f"closed {len(report.closed)}, misses {len(report.misses)}, "
                f"errors {len(report.errors)}"
            )
        return report

    async def _resolve(
        self, record: PositionRecord, history: list[HistoryEntry], claimed: set[str]
    ) -> None:
        entry = self._matcher.match(record, history, exclude_refs=claimed)
        if entry is None:
            raise ReconciliationMiss(record.id, record.symbol)

        outcome = classify_outcome(entry)
        reason = classify_exit_reason(entry)
        closed_at: datetime = entry.updated_time or utc_now()

        updated = await asyncio.to_thread(
            self._store.close_position,
            record.id,
            outcome=outcome,
            exit_price=entry.avg_exit_price,
            exit_reason=reason,
            realized_pnl=entry.closed_pnl,
            closed_at=closed_at,
            history_ref=entry.ref,
        )
        claimed.add(entry.ref)
        if updated:
            logger.info(
                f"Position #{record.id} {record.symbol} closed: {outcome.value} "
                f"({reason.value}), exit {entry.avg_exit_price}, PnL {entry.closed_pnl}"
            )
