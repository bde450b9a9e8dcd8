"""History matching and exit-reason classification.

Venue history entries carry no reference to the order that opened them, so
a closed position is attributed by content: symbol, quantity and average
entry price within tolerances.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence
from datetime import timedelta

from ai_futures_trader.core.types import ExitReason, PositionOutcome
from ai_futures_trader.exchange.models import HistoryEntry
from ai_futures_trader.storage.models import PositionRecord


def classify_exit_reason(entry: HistoryEntry) -> ExitReason:
    """Infer how a position was closed. First matching rule wins."""
    exec_type = entry.exec_type.lower()
    order_type = entry.order_type.lower()
    pnl = entry.closed_pnl or 0.0

    if exec_type == "trade" and pnl < 0:
        return ExitReason.STOP_LOSS
    if exec_type == "trade" and pnl > 0:
        return ExitReason.TAKE_PROFIT
    if order_type == "market" and exec_type == "trade":
        return ExitReason.MANUAL_CLOSE
    if order_type == "limit" and exec_type == "trade":
        return ExitReason.LIMIT_ORDER
    return ExitReason.UNKNOWN


def classify_outcome(entry: HistoryEntry) -> PositionOutcome:
    return PositionOutcome.WIN if (entry.closed_pnl or 0.0) > 0 else PositionOutcome.LOSS


class HistoryMatcher(ABC):
    """Finds the history entry that closed a position record."""

    @abstractmethod
    def match(
        self,
        record: PositionRecord,
        history: Sequence[HistoryEntry],
        exclude_refs: Iterable[str] = (),
    ) -> HistoryEntry | None:
        ...


class ContentHistoryMatcher(HistoryMatcher):
    """Matches by symbol, quantity and average entry price."""

    def __init__(
        self,
        qty_tolerance: float = 0.001,
        price_tolerance: float = 0.01,
        scan_depth: int = 2,
        open_time_grace: timedelta = timedelta(seconds=60),
    ) -> None:
        """Initialize matcher.

        Args:
            qty_tolerance: Max absolute quantity difference (exclusive)
            price_tolerance: Max absolute entry price difference (exclusive)
            scan_depth: Only the newest N history entries are considered
            open_time_grace: Entries updated this long before the record was
                created are still accepted, to absorb clock skew
        """
        self._qty_tolerance = qty_tolerance
        self._price_tolerance = price_tolerance
        self._scan_depth = scan_depth
        self._grace = open_time_grace

    def is_match(self, record: PositionRecord, entry: HistoryEntry) -> bool:
        if entry.symbol.upper() != record.symbol.upper():
            return False
        if entry.closed_pnl is None:
            return False
        if abs(record.quantity - entry.qty) >= self._qty_tolerance:
            return False
        if abs(record.entry_price - entry.avg_entry_price) >= self._price_tolerance:
            return False
        if entry.updated_time is not None and entry.updated_time < record.created_at - self._grace:
            return False
        return True

    def match(
        self,
        record: PositionRecord,
        history: Sequence[HistoryEntry],
        exclude_refs: Iterable[str] = (),
    ) -> HistoryEntry | None:
        excluded = set(exclude_refs)
        for entry in list(history)[: self._scan_depth]:
            if entry.ref in excluded:
                continue
            if self.is_match(record, entry):
                return entry
        return None
