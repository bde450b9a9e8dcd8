"""Decision oracle interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


@dataclass
class DecisionRequest:
    """Prompts for one decision cycle."""

    system_prompt: str
    user_prompt: str
    symbols: list[str] = field(default_factory=list)


@dataclass
class OracleResponse:
    """Raw decision payload plus LLM metadata."""

    payload: dict[str, Any]
    model: str = ""
    prompt: str = ""
    latency_ms: float = 0.0
    prompt_tokens: int = 0
    completion_tokens: int = 0


class DecisionOracle(ABC):
    """Returns one candidate decision payload per cycle.

    The payload is untrusted; callers validate it before acting.
    """

    @abstractmethod
    async def decide(self, request: DecisionRequest) -> OracleResponse:
        """Ask for a decision.

        Raises:
            OracleError: The call failed or produced no JSON object
        """
        ...
