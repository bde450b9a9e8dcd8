"""Engine module - the decision cycle orchestrator."""

from ai_futures_trader.engine.decision_cycle import DecisionCycle, apply_protective_defaults

__all__ = ["DecisionCycle", "apply_protective_defaults"]
