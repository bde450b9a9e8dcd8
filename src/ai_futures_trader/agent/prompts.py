"""Prompt templates for the decision oracle."""

from datetime import datetime

from ai_futures_trader.exchange.models import ExchangePosition
from ai_futures_trader.market.models import FeatureVector

SYSTEM_PROMPT = """You are a crypto futures trading API. Return exactly one JSON object and nothing else.

You analyze market data for several USDT perpetual contracts and pick at most ONE action per call.

JSON SCHEMA:
{{
  "operation": "Buy" | "Sell" | "Hold",
  "symbol": one of {symbols},
  "position": {{
    "entryPrice": number,   // expected entry price in USD
    "amountUsd": number,    // position notional in USD
    "leverage": integer,    // 1-{max_leverage}
    "stopLoss": number,     // stop-loss price
    "takeProfit": number    // take-profit price
  }},
  "rationale": "string"     // technical reasoning behind the decision
}}

RULES:
1. "Buy" opens a long, "Sell" opens a short. Both MUST include "position" with ALL five fields.
2. "Hold" MUST omit "position" (or set it to null).
3. For a long, stopLoss < entryPrice < takeProfit. For a short, takeProfit < entryPrice < stopLoss.
4. Never open a position on a symbol that already has one.
5. "rationale" must explain the decision from the data provided.
6. Prefer leverage 1-5; higher leverage has lost money historically.
"""

DECISION_PROMPT = """TRADING ANALYSIS REQUEST

Session Data:
- Duration: {duration_minutes} minutes
- Current Time: {now}
- Invocation Count: {invocation_count}

{market_sections}

EXISTING POSITIONS:
{positions}

{account}

{history}

Return the JSON object now."""


def _series(values: list[float]) -> str:
    return ", ".join(str(v) for v in values) if values else "n/a"


def format_market_state(features: FeatureVector) -> str:
    """Render one symbol's feature vector, series oldest to newest."""
    return (
        f"## MARKET DATA ({features.symbol}) - OLDEST -> NEWEST\n"
        f"current_price = {features.price}, current_ema20 = {features.ema20}, "
        f"current_macd = {features.macd}, current_rsi (7 period) = {features.rsi7}\n"
        f"Open Interest: {features.open_interest}\n"
        f"Funding Rate: {features.funding_rate}\n"
        "Intraday series (1-minute intervals):\n"
        f"Mid prices: [{_series(features.mid_prices)}]\n"
        f"EMA indicators (20-period): [{_series(features.ema20_series)}]\n"
        f"MACD indicators: [{_series(features.macd_series)}]\n"
        f"RSI indicators (7-Period): [{_series(features.rsi7_series)}]\n"
        f"RSI indicators (14-Period): [{_series(features.rsi14_series)}]\n"
        "Longer-term context (1-hour timeframe):\n"
        f"20-Period EMA: {features.long_ema20} vs. 50-Period EMA: {features.long_ema50}\n"
        f"3-Period ATR: {features.atr3} vs. 14-Period ATR: {features.atr14}\n"
        f"Current Volume: {features.current_volume} vs. Average Volume: {features.average_volume:.3f}\n"
        f"MACD indicators: [{_series(features.long_macd_series)}]\n"
        f"RSI indicators (14-Period): [{_series(features.long_rsi14_series)}]"
    )


def format_positions(positions: list[ExchangePosition]) -> str:
    if not positions:
        return "No open positions"
    return "\n".join(
        f"- {p.symbol}: {p.side.value} {p.contracts} contracts @ {p.entry_price}, "
        f"mark {p.mark_price}, PnL {p.unrealized_pnl:.2f}"
        for p in positions
    )


def build_user_prompt(
    features: list[FeatureVector],
    positions: list[ExchangePosition],
    account: str,
    history: str,
    started_at: datetime,
    invocation_count: int = 0,
) -> str:
    now = datetime.now(started_at.tzinfo)
    return DECISION_PROMPT.format(
        duration_minutes=int((now - started_at).total_seconds() // 60),
        now=now.isoformat(),
        invocation_count=invocation_count,
        market_sections="\n\n".join(format_market_state(f) for f in features),
        positions=format_positions(positions),
        account=account,
        history=history,
    )


def build_system_prompt(symbols: list[str], max_leverage: int = 20) -> str:
    return SYSTEM_PROMPT.format(symbols=", ".join(f'"{s}"' for s in symbols), max_leverage=max_leverage)
