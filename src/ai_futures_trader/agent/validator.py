"""Decision validation.

Turns an untrusted oracle payload into a ``HoldDecision`` or a
``TradeDecision``. Validation is pure: it never touches the network and it
runs before any exchange call.
"""

import math
from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import ValidationError

from ai_futures_trader.agent.schemas import (
    POSITION_FIELDS,
    Decision,
    DecisionPayload,
    HoldDecision,
    PositionPayload,
    PositionPlan,
    TradeDecision,
)
from ai_futures_trader.core.errors import SchemaViolation
from ai_futures_trader.core.types import Operation

MAX_LEVERAGE = 20
PLACEHOLDER_RATIONALES = {"", "<no chat>", "<no reasoning>", "no reasoning provided"}


def _parse_operation(value: Any) -> Operation:
    if isinstance(value, Operation):
        return value
    if isinstance(value, str):
        for operation in Operation:
            if value.strip().lower() == operation.value.lower():
                return operation
    raise SchemaViolation("operation", f"must be one of Buy, Sell, Hold (got {value!r})")


def _parse_positive(field: str, value: Any) -> float:
    if value is None:
        raise SchemaViolation(field, "is required")
    if isinstance(value, bool):
        raise SchemaViolation(field, f"must be numeric (got {value!r})")
    if isinstance(value, int | float):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            raise SchemaViolation(field, f"must be numeric (got {value!r})") from None
    else:
        raise SchemaViolation(field, f"must be numeric (got {value!r})")
    if not math.isfinite(number):
        raise SchemaViolation(field, "must be finite")
    if number <= 0:
        raise SchemaViolation(field, f"must be positive (got {number})")
    return number


def _parse_position(position: PositionPayload, max_leverage: int) -> PositionPlan:
    values: dict[str, float] = {}
    for attr, wire_name in POSITION_FIELDS.items():
        values[attr] = _parse_positive(f"position.{wire_name}", getattr(position, attr))

    leverage = values["leverage"]
    if not leverage.is_integer() or not 1 <= leverage <= max_leverage:
        raise SchemaViolation(
            "position.leverage", f"must be a whole number between 1 and {max_leverage}"
        )

    return PositionPlan(
        entry_price=values["entry_price"],
        amount_usd=values["amount_usd"],
        leverage=int(leverage),
        stop_loss=values["stop_loss"],
        take_profit=values["take_profit"],
    )


def _error_field(error: ValidationError) -> str:
    errors = error.errors()
    if not errors:
        return "payload"
    return ".".join(str(part) for part in errors[0].get("loc", ())) or "payload"


def validate_decision(
    payload: Mapping[str, Any] | DecisionPayload,
    allowed_symbols: Iterable[str] | None = None,
    max_leverage: int = MAX_LEVERAGE,
) -> Decision:
    """Validate a raw decision payload.

    Args:
        payload: Parsed JSON object from the oracle
        allowed_symbols: Symbols the engine trades (optional)
        max_leverage: Configured leverage cap, never above MAX_LEVERAGE

    Returns:
        HoldDecision or TradeDecision

    Raises:
        SchemaViolation: Naming the first field that broke the contract
    """
    if isinstance(payload, DecisionPayload):
        decision = payload
    else:
        if not isinstance(payload, Mapping):
            raise SchemaViolation("payload", "must be a JSON object")
        try:
            decision = DecisionPayload.model_validate(dict(payload))
        except ValidationError as e:
            raise SchemaViolation(_error_field(e), "has an invalid shape") from e

    if decision.operation is None:
        raise SchemaViolation("operation", "is required")
    operation = _parse_operation(decision.operation)

    rationale = decision.rationale
    if not isinstance(rationale, str) or rationale.strip().lower() in PLACEHOLDER_RATIONALES:
        raise SchemaViolation("rationale", "is required and must not be a placeholder")

    symbol = decision.symbol
    if not isinstance(symbol, str) or not symbol.strip():
        raise SchemaViolation("symbol", "is required")
    symbol = symbol.strip().upper()
    if allowed_symbols is not None:
        allowed = {s.upper() for s in allowed_symbols}
        if symbol not in allowed:
            raise SchemaViolation("symbol", f"{symbol} is not traded (allowed: {sorted(allowed)})")

    position = decision.position
    has_position = position is not None and not position.is_empty()

    if operation is Operation.HOLD:
        if has_position:
            raise SchemaViolation("position", "must be absent for Hold")
        return HoldDecision(symbol=symbol, rationale=rationale.strip())

    if position is None or not has_position:
        raise SchemaViolation("position", f"is required for {operation.value}")

    return TradeDecision(
        operation=operation,
        symbol=symbol,
        position=_parse_position(position, min(max(max_leverage, 1), MAX_LEVERAGE)),
        rationale=rationale.strip(),
    )
