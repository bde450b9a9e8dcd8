"""Error taxonomy for the trading engine.

Every failure below is caught at a cycle boundary. None of them is allowed
to stop the scheduler.
"""


class TradingError(Exception):
    """Base class for all engine errors."""


class SchemaViolation(TradingError):
    """Decision payload broke its structural or business-rule contract."""

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")


class GuardSkip(TradingError):
    """An open position already exists for the symbol."""

    def __init__(self, symbol: str) -> None:
        self.symbol = symbol
        super().__init__(f"Open position already exists for {symbol}")


class ExchangeCallError(TradingError):
    """Exchange call failed."""


class TransientExchangeError(ExchangeCallError):
    """Network failure, rate limit or timeout. Retried on the next invocation."""


class ExchangeRejectedError(ExchangeCallError):
    """Venue refused the request."""

    def __init__(self, message: str, code: str | None = None) -> None:
        self.code = code
        super().__init__(message)


class ExecutionError(TradingError):
    """Order execution failed."""


class EntryOrderFailure(ExecutionError):
    """Entry order rejected or timed out.

    ``ambiguous`` is set when the venue may have accepted the order even
    though no acknowledgement arrived.
    """

    def __init__(self, symbol: str, reason: str, ambiguous: bool = False) -> None:
        self.symbol = symbol
        self.reason = reason
        self.ambiguous = ambiguous
        super().__init__(f"Entry order for {symbol} failed: {reason}")


class ProtectiveOrderFailure(ExecutionError):
    """A stop-loss or take-profit order could not be placed."""

    def __init__(self, symbol: str, leg: str, reason: str) -> None:
        self.symbol = symbol
        self.leg = leg
        self.reason = reason
        super().__init__(f"{leg} order for {symbol} failed: {reason}")


class ReconciliationMiss(TradingError):
    """No history entry matched a closed position yet."""

    def __init__(self, record_id: int, symbol: str) -> None:
        self.record_id = record_id
        self.symbol = symbol
        super().__init__(f"No history match for position #{record_id} ({symbol})")


class OracleError(TradingError):
    """Decision oracle failed or returned unparseable output."""
