"""Decision payload schemas and validated decision models."""

from dataclasses import dataclass
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from ai_futures_trader.core.types import Operation, Side


class PositionPayload(BaseModel):
    """Raw ``position`` object as returned by the oracle.

    Field values stay untyped here; the validator owns the business rules
    and reports the exact field that broke them.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    entry_price: Any = Field(
        default=None, validation_alias=AliasChoices("entryPrice", "entry_price", "pricing")
    )
    amount_usd: Any = Field(
        default=None, validation_alias=AliasChoices("amountUsd", "amount_usd", "amount")
    )
    leverage: Any = None
    stop_loss: Any = Field(default=None, validation_alias=AliasChoices("stopLoss", "stop_loss"))
    take_profit: Any = Field(
        default=None, validation_alias=AliasChoices("takeProfit", "take_profit")
    )

    def is_empty(self) -> bool:
        return all(
            value is None
            for value in (
                self.entry_price,
                self.amount_usd,
                self.leverage,
                self.stop_loss,
                self.take_profit,
            )
        )


class DecisionPayload(BaseModel):
    """Raw decision object as returned by the oracle."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    operation: Any = None
    symbol: Any = None
    position: PositionPayload | None = None
    rationale: Any = Field(
        default=None, validation_alias=AliasChoices("rationale", "chat", "reasoning")
    )


# Wire names used for error reporting and audit output
POSITION_FIELDS = {
    "entry_price": "entryPrice",
    "amount_usd": "amountUsd",
    "leverage": "leverage",
    "stop_loss": "stopLoss",
    "take_profit": "takeProfit",
}


@dataclass(frozen=True)
class PositionPlan:
    """Validated sizing and protection for a new position."""

    entry_price: float
    amount_usd: float
    leverage: int
    stop_loss: float
    take_profit: float

    @property
    def contracts(self) -> float:
        """Requested USD notional converted to a contract quantity."""
        return self.amount_usd / self.entry_price

    def to_dict(self) -> dict[str, Any]:
        return {
            "entryPrice": self.entry_price,
            "amountUsd": self.amount_usd,
            "leverage": self.leverage,
            "stopLoss": self.stop_loss,
            "takeProfit": self.take_profit,
        }


@dataclass(frozen=True)
class HoldDecision:
    """Validated decision to do nothing this cycle."""

    symbol: str
    rationale: str

    @property
    def operation(self) -> Operation:
        return Operation.HOLD

    def to_dict(self) -> dict[str, Any]:
        return {"operation": self.operation.value, "symbol": self.symbol, "rationale": self.rationale}


@dataclass(frozen=True)
class TradeDecision:
    """Validated decision to open a position."""

    operation: Operation
    symbol: str
    position: PositionPlan
    rationale: str

    @property
    def side(self) -> Side:
        return Side.from_operation(self.operation)

    def to_dict(self) -> dict[str, Any]:
        return {
            "operation": self.operation.value,
            "symbol": self.symbol,
            "position": self.position.to_dict(),
            "rationale": self.rationale,
        }


Decision = HoldDecision | TradeDecision
