"""LLM decision oracle on langchain-anthropic."""

import asyncio
import json
import logging
import re
import time
from typing import Any

from langchain_core.messages import HumanMessage, SystemMessage

from ai_futures_trader.agent.oracle import DecisionOracle, DecisionRequest, OracleResponse
from ai_futures_trader.config import Config
from ai_futures_trader.core.errors import OracleError

logger = logging.getLogger(__name__)

CODE_BLOCK_PATTERN = r"```(?:json)?\s*\n?([\s\S]*?)\n?```"


def create_llm(config: Config) -> Any:
    """Create LangChain LLM client.

    Args:
        config: Application configuration

    Returns:
        Configured ChatAnthropic instance

    Note:
        Uses the Anthropic-compatible endpoint from config (e.g. a DeepSeek proxy)
    """
    # Lazy import to avoid loading langchain when not needed
    from langchain_anthropic import ChatAnthropic
    from pydantic import SecretStr

    return ChatAnthropic(
        model_name=config.api.llm_model,
        api_key=SecretStr(config.api.anthropic_api_key),
        base_url=config.api.anthropic_base_url or None,
        max_tokens_to_sample=2048,
        timeout=config.trading.llm_timeout_seconds,
        stop=None,
    )


def extract_text_content(content: Any) -> str:
    """Extract text content from LLM response.

    Handles different response formats:
    - Plain string
    - List of content blocks (thinking, text, etc.)
    - Dict with text field
    """
    if isinstance(content, str):
        return content

    if isinstance(content, list):
        text_parts = []
        for block in content:
            if isinstance(block, dict):
                if block.get("type") == "text" or (
                    "text" in block and block.get("type") != "thinking"
                ):
                    text_parts.append(block.get("text", ""))
            elif isinstance(block, str):
                text_parts.append(block)
        return "\n".join(text_parts) if text_parts else str(content)

    if isinstance(content, dict):
        if "text" in content:
            return str(content["text"])
        return str(content)

    return str(content)


def parse_json_payload(response: str) -> dict[str, Any]:
    """Extract the decision JSON object from LLM text.

    Tries fenced code blocks first, then the outermost braces.

    Raises:
        ValueError: If no JSON object can be parsed
    """
    for block in re.findall(CODE_BLOCK_PATTERN, response):
        block = block.strip()
        if block.startswith("{"):
            try:
                data = json.loads(block)
            except json.JSONDecodeError:
                continue
            if isinstance(data, dict):
                return data

    json_start = response.find("{")
    json_end = response.rfind("}") + 1
    if json_start == -1 or json_end == 0:
        raise ValueError("No JSON found in response")

    try:
        data = json.loads(response[json_start:json_end])
    except json.JSONDecodeError as e:
        logger.error(f"JSON parse error: {e}, response: {response[:500]}...")
        raise ValueError(f"Failed to parse JSON: {e}") from e
    if not isinstance(data, dict):
        raise ValueError("Response JSON is not an object")
    return data


class LangChainDecisionOracle(DecisionOracle):
    """Decision oracle backed by ChatAnthropic."""

    def __init__(
        self,
        config: Config,
        llm: Any | None = None,
        max_retries: int = 2,
    ) -> None:
        """Initialize oracle.

        Args:
            config: Application configuration
            llm: Preconfigured chat model (defaults to ``create_llm(config)``)
            max_retries: Extra attempts after a JSON parse failure
        """
        self._model = config.api.llm_model
        self._timeout = config.trading.llm_timeout_seconds
        self._llm = llm if llm is not None else create_llm(config)
        self._max_retries = max_retries

    async def decide(self, request: DecisionRequest) -> OracleResponse:
        messages = [
            SystemMessage(content=request.system_prompt),
            HumanMessage(content=request.user_prompt),
        ]
        start_time = time.time()
        last_error: Exception | None = None

        for attempt in range(self._max_retries + 1):
            try:
                response = await asyncio.wait_for(
                    self._llm.ainvoke(messages), timeout=self._timeout
                )
            except TimeoutError as e:
                raise OracleError(f"LLM timeout after {self._timeout}s") from e
            except Exception as e:
                raise OracleError(f"LLM call failed: {e}") from e

            text_content = extract_text_content(response.content)
            try:
                payload = parse_json_payload(text_content)
            except ValueError as e:
                last_error = e
                if attempt < self._max_retries:
                    logger.warning(
                        f"Oracle JSON parse error (attempt {attempt + 1}/{self._max_retries + 1}): "
                        f"{e}. Retrying..."
                    )
                    continue
                break

            prompt_tokens = 0
            completion_tokens = 0
            usage = getattr(response, "usage_metadata", None)
            if usage:
                prompt_tokens = usage.get("input_tokens", 0)
                completion_tokens = usage.get("output_tokens", 0)

            if attempt > 0:
                logger.info(f"Oracle succeeded on retry {attempt}")

            return OracleResponse(
                payload=payload,
                model=self._model,
                prompt=request.user_prompt,
                latency_ms=(time.time() - start_time) * 1000,
                prompt_tokens=prompt_tokens,
                completion_tokens=completion_tokens,
            )

        raise OracleError(
            f"Oracle JSON parse failed after {self._max_retries + 1} attempts: {last_error}"
        )
