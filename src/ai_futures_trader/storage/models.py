"""Durable record models."""

import json
import sqlite3
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from ai_futures_trader.core.types import CycleStatus, ExitReason, Operation, PositionOutcome, Side


def utc_now() -> datetime:
    return datetime.now(UTC)


def to_db_time(value: datetime | None) -> str | None:
    """Store every timestamp as UTC ISO-8601 so string comparison orders correctly."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat()


def from_db_time(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(value)


@dataclass
class PositionRecord:
    """One opened trade and its lifecycle.

    Created by the decision cycle when the entry order is accepted; after
    that only the reconciler mutates the outcome fields.
    """

    symbol: str
    operation: Operation
    side: Side
    entry_price: float  # live average fill, falls back to requested
    requested_entry_price: float
    amount_usd: float
    contracts: float | None
    leverage: int
    stop_loss: float
    take_profit: float
    exchange_order_id: str = ""
    indicators_at_open: dict[str, Any] = field(default_factory=dict)
    rationale: str = ""
    stop_loss_placed: bool = False
    take_profit_placed: bool = False
    outcome: PositionOutcome = PositionOutcome.OPEN
    exit_price: float | None = None
    exit_reason: ExitReason | None = None
    realized_pnl: float | None = None
    history_ref: str | None = None
    closed_at: datetime | None = None
    created_at: datetime = field(default_factory=utc_now)
    id: int | None = None

    @property
    def is_open(self) -> bool:
        return self.outcome is PositionOutcome.OPEN

    @property
    def is_protected(self) -> bool:
        return self.stop_loss_placed and self.take_profit_placed

    @property
    def quantity(self) -> float:
        """Contract quantity used for history matching."""
        if self.contracts:
            return self.contracts
        return self.amount_usd / self.entry_price

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "PositionRecord":
        return cls(
            id=row["id"],
            symbol=row["symbol"],
            operation=Operation(row["operation"]),
            side=Side(row["side"]),
            entry_price=row["entry_price"],
            requested_entry_price=row["requested_entry_price"],
            amount_usd=row["amount_usd"],
            contracts=row["contracts"],
            leverage=row["leverage"],
            stop_loss=row["stop_loss"],
            take_profit=row["take_profit"],
            exchange_order_id=row["exchange_order_id"] or "",
            indicators_at_open=json.loads(row["indicators_at_open"] or "{}"),
            rationale=row["rationale"] or "",
            stop_loss_placed=bool(row["stop_loss_placed"]),
            take_profit_placed=bool(row["take_profit_placed"]),
            outcome=PositionOutcome(row["outcome"]),
            exit_price=row["exit_price"],
            exit_reason=ExitReason(row["exit_reason"]) if row["exit_reason"] else None,
            realized_pnl=row["realized_pnl"],
            history_ref=row["history_ref"],
            closed_at=from_db_time(row["closed_at"]),
            created_at=from_db_time(row["created_at"]) or utc_now(),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "symbol": self.symbol,
            "operation": self.operation.value,
            "side": self.side.value,
            "entry_price": self.entry_price,
            "requested_entry_price": self.requested_entry_price,
            "amount_usd": self.amount_usd,
            "contracts": self.contracts,
            "leverage": self.leverage,
            "stop_loss": self.stop_loss,
            "take_profit": self.take_profit,
            "exchange_order_id": self.exchange_order_id,
            "indicators_at_open": self.indicators_at_open,
            "rationale": self.rationale,
            "stop_loss_placed": self.stop_loss_placed,
            "take_profit_placed": self.take_profit_placed,
            "outcome": self.outcome.value,
            "exit_price": self.exit_price,
            "exit_reason": self.exit_reason.value if self.exit_reason else None,
            "realized_pnl": self.realized_pnl,
            "history_ref": self.history_ref,
            "closed_at": to_db_time(self.closed_at),
            "created_at": to_db_time(self.created_at),
        }


@dataclass
class CycleRecord:
    """Audit row for one decision cycle."""

    status: CycleStatus
    operation: Operation = Operation.HOLD
    symbol: str | None = None
    rationale: str = ""
    error: str | None = None
    position_id: int | None = None
    started_at: datetime = field(default_factory=utc_now)
    finished_at: datetime = field(default_factory=utc_now)
    id: int | None = None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "CycleRecord":
        return cls(
            id=row["id"],
            status=CycleStatus(row["status"]),
            operation=Operation(row["operation"]),
            symbol=row["symbol"],
            rationale=row["rationale"] or "",
            error=row["error"],
            position_id=row["position_id"],
            started_at=from_db_time(row["started_at"]) or utc_now(),
            finished_at=from_db_time(row["finished_at"]) or utc_now(),
        )
