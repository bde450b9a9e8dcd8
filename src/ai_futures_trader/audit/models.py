"""Audit log models."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

RATIONALE_LIMIT = 200


@dataclass
class DecisionLog:
    """One entry per decision cycle."""

    # Identification
    log_id: str
    timestamp: datetime = field(default_factory=datetime.now)
    status: str = ""

    # Decision
    operation: str = "Hold"
    symbol: str | None = None
    position: dict[str, Any] | None = None
    rationale: str = ""
    error: str | None = None
    position_id: int | None = None

    # LLM metadata
    model: str = ""
    prompt_tokens: int = 0
    completion_tokens: int = 0
    latency_ms: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "log_id": self.log_id,
            "timestamp": self.timestamp.isoformat(),
            "status": self.status,
            "operation": self.operation,
            "symbol": self.symbol,
            "position": self.position,
            "rationale": self.rationale[:RATIONALE_LIMIT],
            "error": self.error,
            "position_id": self.position_id,
            "model": self.model,
            "prompt_tokens": self.prompt_tokens,
            "completion_tokens": self.completion_tokens,
            "latency_ms": self.latency_ms,
        }


@dataclass
class OrderLog:
    """Order submission log."""

    log_id: str
    timestamp: datetime = field(default_factory=datetime.now)

    # Order details
    order_id: str = ""
    symbol: str = ""
    side: str = ""
    order_type: str = ""
    size: float = 0.0
    price: float | None = None
    trigger_price: float | None = None
    reduce_only: bool = False
    status: str = ""

    # Source
    purpose: str = ""  # "entry", "stop_loss" or "take_profit"
    decision_log_id: str | None = None  # Link to decision entry

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "log_id": self.log_id,
            "timestamp": self.timestamp.isoformat(),
            "order_id": self.order_id,
            "symbol": self.symbol,
            "side": self.side,
            "order_type": self.order_type,
            "size": self.size,
            "price": self.price,
            "trigger_price": self.trigger_price,
            "reduce_only": self.reduce_only,
            "status": self.status,
            "purpose": self.purpose,
            "decision_log_id": self.decision_log_id,
        }
