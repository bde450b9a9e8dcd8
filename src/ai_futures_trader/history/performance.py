"""Performance history aggregator.

Read-only statistics over closed trades, fed back into the decision prompt
so the oracle can avoid setups that have been losing.
"""

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any

from ai_futures_trader.storage.models import PositionRecord, utc_now
from ai_futures_trader.storage.store import SqliteRecordStore

logger = logging.getLogger(__name__)

HIGH_LEVERAGE = 5


@dataclass
class PerformanceSummary:
    """Win/loss statistics over a lookback window."""

    total_trades: int = 0
    win_rate: float = 0.0  # percent
    avg_win_pnl: float | None = None
    avg_loss_pnl: float | None = None
    high_leverage_trade_count: int = 0
    avg_tp_percent: float | None = None
    avg_sl_percent: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalTrades": self.total_trades,
            "winRate": self.win_rate,
            "avgWinPnl": self.avg_win_pnl,
            "avgLossPnl": self.avg_loss_pnl,
            "highLeverageTradeCount": self.high_leverage_trade_count,
            "avgTpPercent": self.avg_tp_percent,
            "avgSlPercent": self.avg_sl_percent,
        }


@dataclass
class AntiPattern:
    """A losing (leverage, SL %, TP %) setup."""

    setup_descriptor: str
    trade_count: int
    avg_pnl: float
    losses: int


@dataclass
class TradingHistory:
    """Everything the prompt needs about past trades for one symbol."""

    symbol: str
    summary: PerformanceSummary
    anti_patterns: list[AntiPattern] = field(default_factory=list)
    recent_trades: list[PositionRecord] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return self.summary.total_trades == 0 and not self.recent_trades


def _fmt_pct(value: float | None) -> str:
    return "n/a" if value is None else f"{value:.1f}%"


def describe_setup(leverage: int, sl_percent: float | None, tp_percent: float | None) -> str:
    return f"Leverage: {leverage}x, SL: {_fmt_pct(sl_percent)}, TP: {_fmt_pct(tp_percent)}"


class PerformanceHistory:
    """Aggregates closed position records."""

    def __init__(self, store: SqliteRecordStore) -> None:
        self._store = store

    def summary(self, symbol: str, lookback_days: int = 30) -> PerformanceSummary:
        row = self._store.performance_stats(
            symbol, since=utc_now() - timedelta(days=lookback_days), high_leverage=HIGH_LEVERAGE
        )
        total = int(row.get("total_trades") or 0)
        if total == 0:
            return PerformanceSummary()
        return PerformanceSummary(
            total_trades=total,
            win_rate=float(row.get("win_rate") or 0.0),
            avg_win_pnl=row.get("avg_win_pnl"),
            avg_loss_pnl=row.get("avg_loss_pnl"),
            high_leverage_trade_count=int(row.get("high_leverage_trades") or 0),
            avg_tp_percent=row.get("avg_tp_percent"),
            avg_sl_percent=row.get("avg_sl_percent"),
        )

    def anti_patterns(self, symbol: str, limit: int = 3) -> list[AntiPattern]:
        return [
            AntiPattern(
                setup_descriptor=describe_setup(
                    row["leverage"], row["sl_percent"], row["tp_percent"]
                ),
                trade_count=int(row["trade_count"]),
                avg_pnl=float(row["avg_pnl"]),
                losses=int(row["losses"]),
            )
            for row in self._store.losing_setups(symbol, limit)
        ]

    def recent_trades(self, symbol: str, limit: int = 5) -> list[PositionRecord]:
        return self._store.recent_closed(symbol, limit)

    def digest(self, symbol: str) -> TradingHistory:
        return TradingHistory(
            symbol=symbol,
            summary=self.summary(symbol),
            anti_patterns=self.anti_patterns(symbol),
            recent_trades=self.recent_trades(symbol),
        )


def format_history(history: TradingHistory) -> str:
    """Render a trading history digest as a prompt section."""
    if history.is_empty:
        return f"## TRADING HISTORY ({history.symbol})\nNo closed trades yet."

    s = history.summary
    lines = [
        f"## TRADING HISTORY ({history.symbol}, last 30 days)",
        f"Total trades: {s.total_trades}, win rate: {s.win_rate:.1f}%",
        f"Avg win PnL: {s.avg_win_pnl}, avg loss PnL: {s.avg_loss_pnl}",
        f"Trades above {HIGH_LEVERAGE}x leverage: {s.high_leverage_trade_count}",
        f"Avg TP on wins: {_fmt_pct(s.avg_tp_percent)}, avg SL on losses: {_fmt_pct(s.avg_sl_percent)}",
    ]
    if history.anti_patterns:
        lines.append("AVOID these losing setups:")
        lines.extend(
            f"- {p.setup_descriptor} ({p.trade_count} trades, {p.losses} losses, avg PnL {p.avg_pnl})"
            for p in history.anti_patterns
        )
    if history.recent_trades:
        lines.append("Recent trades (newest first):")
        for t in history.recent_trades:
            ind = t.indicators_at_open
            lines.append(
                f"- {t.operation.value} {t.leverage}x @ {t.entry_price}: {t.outcome.value} "
                f"({t.exit_reason.value if t.exit_reason else 'unknown'}), PnL {t.realized_pnl}, "
                f"RSI {ind.get('rsi')}, MACD {ind.get('macd')}, ATR14 {ind.get('atr_14')}"
            )
    return "\n".join(lines)
