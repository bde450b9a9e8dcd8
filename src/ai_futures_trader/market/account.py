"""Account information and performance digest."""

import logging

from ai_futures_trader.core.errors import ExchangeCallError
from ai_futures_trader.exchange.base import Exchange
from ai_futures_trader.market.models import AccountSummary

logger = logging.getLogger(__name__)


async def summarize_account(exchange: Exchange, initial_capital: float) -> AccountSummary:
    """Collect balance and open positions into an account summary.

    Falls back to the initial capital with no positions when the venue
    cannot be read; the summary only feeds the prompt.
    """
    try:
        positions = await exchange.fetch_positions()
        balance = await exchange.fetch_balance()
    except ExchangeCallError as e:
        logger.warning(f"Account data unavailable, using initial capital: {e}")
        return AccountSummary(
            total_cash=initial_capital,
            available_cash=initial_capital,
            positions_value=0.0,
            total_return=0.0,
        )

    total_cash = balance.total or initial_capital
    available_cash = balance.available or initial_capital
    total_return = (total_cash - initial_capital) / initial_capital if initial_capital else 0.0

    return AccountSummary(
        total_cash=total_cash,
        available_cash=available_cash,
        positions_value=sum(p.notional for p in positions),
        total_return=total_return,
        positions=[p.to_dict() for p in positions],
    )


def format_account(summary: AccountSummary) -> str:
    """Render the account summary as a prompt section."""
    if summary.positions:
        positions = "\n".join(
            f"Symbol: {p['symbol']}, Side: {p['side']}, Contracts: {p['contracts']}, "
            f"Entry: ${p['entry_price']}, Current: ${p['mark_price']}, "
            f"PnL: ${p['unrealized_pnl']:.2f}"
            for p in summary.positions
        )
    else:
        positions = "No positions"
    return (
        "## ACCOUNT INFORMATION & PERFORMANCE\n"
        f"Current Total Return: {summary.total_return * 100:.2f}%\n"
        f"Available Cash: ${summary.available_cash:.2f}\n"
        f"Current Account Value: ${summary.total_cash:.2f}\n"
        f"Positions Value: ${summary.positions_value:.2f}\n"
        f"Open Positions: {positions}"
    )
