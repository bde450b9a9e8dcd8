"""AI Futures Trader - LLM-driven crypto futures trading with position reconciliation."""

__version__ = "0.1.0"

# Re-export submodules for convenient access
from ai_futures_trader import (
    agent,
    audit,
    core,
    engine,
    exchange,
    execution,
    history,
    market,
    reconcile,
    storage,
)

__all__ = [
    "__version__",
    "agent",
    "audit",
    "core",
    "engine",
    "exchange",
    "execution",
    "history",
    "market",
    "reconcile",
    "storage",
]
