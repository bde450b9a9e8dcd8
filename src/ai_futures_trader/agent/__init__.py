"""Agent module - decision oracle, payload schemas and validation."""

from ai_futures_trader.agent.llm import LangChainDecisionOracle, create_llm
from ai_futures_trader.agent.oracle import DecisionOracle, DecisionRequest, OracleResponse
from ai_futures_trader.agent.schemas import (
    Decision,
    DecisionPayload,
    HoldDecision,
    PositionPlan,
    TradeDecision,
)
from ai_futures_trader.agent.validator import validate_decision

__all__ = [
    "Decision",
    "DecisionOracle",
    "DecisionPayload",
    "DecisionRequest",
    "HoldDecision",
    "LangChainDecisionOracle",
    "OracleResponse",
    "PositionPlan",
    "TradeDecision",
    "create_llm",
    "validate_decision",
]
