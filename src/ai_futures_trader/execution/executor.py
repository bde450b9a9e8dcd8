"""Risk-managed order executor.

Sequence per trade:
1. Convert USD notional to contracts.
2. Guard check (no other exchange call if a position exists).
3. Set leverage, tolerating "already set" and bounded transient failures.
4. Market entry order - the point of no return.
5. Settle delay, then read the live position.
6. Reduce-only stop-loss and take-profit, each attempted independently and
   sized to the live contract count.
"""

import asyncio
import logging
from collections.abc import Awaitable
from decimal import ROUND_HALF_UP, Decimal

from ai_futures_trader.agent.schemas import PositionPlan
from ai_futures_trader.core.errors import (
    EntryOrderFailure,
    ExchangeCallError,
    ExchangeRejectedError,
    ProtectiveOrderFailure,
    TransientExchangeError,
)
from ai_futures_trader.core.types import OrderType, ProtectionLeg, Side, TriggerDirection
from ai_futures_trader.exchange.base import Exchange
from ai_futures_trader.exchange.models import OrderAck
from ai_futures_trader.execution.guard import PositionGuard
from ai_futures_trader.execution.models import ExecutionResult, ProtectionResult

logger = logging.getLogger(__name__)


class OrderExecutor:
    """Turns a validated trade plan into exchange orders."""

    def __init__(
        self,
        exchange: Exchange,
        guard: PositionGuard | None = None,
        settle_delay_seconds: float = 2.0,
        leverage_attempts: int = 2,
        price_decimals: int = 2,
        price_decimals_overrides: dict[str, int] | None = None,
    ) -> None:
        """Initialize executor.

        Args:
            exchange: Venue adapter
            guard: Position guard (defaults to one over the same exchange)
            settle_delay_seconds: Wait between entry and the live position read
            leverage_attempts: Attempts for transient set-leverage failures
            price_decimals: Tick decimals for protective order prices
            price_decimals_overrides: Per-symbol tick decimals
        """
        self._exchange = exchange
        self._guard = guard or PositionGuard(exchange)
        self._settle_delay = settle_delay_seconds
        self._leverage_attempts = max(leverage_attempts, 1)
        self._price_decimals = price_decimals
        self._decimals_overrides = {
            symbol.upper(): decimals for symbol, decimals in (price_decimals_overrides or {}).items()
        }

    def decimals_for(self, symbol: str) -> int:
        return self._decimals_overrides.get(symbol.upper(), self._price_decimals)

    def round_price(self, symbol: str, price: float) -> float:
        """Quantize a price to the symbol's tick decimals, half up."""
        tick = Decimal(1).scaleb(-self.decimals_for(symbol))
        return float(Decimal(str(price)).quantize(tick, rounding=ROUND_HALF_UP))

    async def execute(self, symbol: str, side: Side, plan: PositionPlan) -> ExecutionResult:
        """Open a protected position.

        Raises:
            GuardSkip: A position already exists for the symbol
            TransientExchangeError: The guard could not read positions
            EntryOrderFailure: The entry order was rejected or timed out
        """
        requested_contracts = plan.contracts

        await self._guard.ensure_no_open_position(symbol)

        leverage_set = await self._set_leverage(symbol, plan.leverage)

        try:
            entry = await self._exchange.create_order(
                symbol,
                OrderType.MARKET,
                side.entry_order_side,
                requested_contracts,
                leverage=plan.leverage,
            )
        except TransientExchangeError as e:
            # The venue may have filled an order whose acknowledgement was lost
            raise EntryOrderFailure(symbol, str(e), ambiguous=True) from e
        except ExchangeRejectedError as e:
            raise EntryOrderFailure(symbol, str(e)) from e

        logger.info(
            f"Entry accepted: {side.value} {requested_contracts:.6f} {symbol} "
            f"@ ~{plan.entry_price} ({plan.leverage}x), order {entry.order_id}"
        )

        if self._settle_delay > 0:
            await asyncio.sleep(self._settle_delay)

        try:
            live = await self._exchange.fetch_position(symbol)
        except ExchangeCallError as e:
            logger.warning(f"Live position read failed for {symbol}: {e}")
            live = None

        if live is None:
            logger.warning(
                f"No live {symbol} position visible after entry; protection deferred to retry"
            )
            protection = ProtectionResult()
        else:
            protection = await self.protect(
                symbol, side, live.contracts, plan.stop_loss, plan.take_profit
            )

        return ExecutionResult(
            order_id=entry.order_id,
            symbol=symbol,
            side=side,
            requested_contracts=requested_contracts,
            contracts=live.contracts if live else None,
            entry_price=live.entry_price if live else None,
            mark_price=live.mark_price if live else None,
            leverage_set=leverage_set,
            entry_order=entry,
            protection=protection,
        )

    async def _set_leverage(self, symbol: str, leverage: int) -> bool:
        for attempt in range(1, self._leverage_attempts + 1):
            try:
                changed = await self._exchange.set_leverage(symbol, leverage)
                if not changed:
                    logger.debug(f"Leverage for {symbol} already {leverage}x")
                return True
            except TransientExchangeError as e:
                logger.warning(
                    f"Set leverage {symbol} {leverage}x failed "
                    f"(attempt {attempt}/{self._leverage_attempts}): {e}"
                )
            except ExchangeRejectedError as e:
                logger.warning(f"Set leverage {symbol} {leverage}x rejected: {e}")
                break
        logger.warning(f"Continuing {symbol} entry without confirmed leverage")
        return False

    async def protect(
        self,
        symbol: str,
        side: Side,
        contracts: float,
        stop_loss: float,
        take_profit: float,
        legs: set[ProtectionLeg] | None = None,
    ) -> ProtectionResult:
        """Place reduce-only protective orders for a live position.

        Each leg is attempted independently; a failed leg is logged and
        reported as not placed. Legs not requested are reported as not placed.
        """
        legs = legs if legs is not None else {ProtectionLeg.STOP_LOSS, ProtectionLeg.TAKE_PROFIT}
        result = ProtectionResult()

        if ProtectionLeg.STOP_LOSS in legs:
            result.stop_loss_order = await self._place_leg(
                symbol, ProtectionLeg.STOP_LOSS, self._stop_loss(symbol, side, contracts, stop_loss)
            )
            result.stop_loss_placed = result.stop_loss_order is not None

        if ProtectionLeg.TAKE_PROFIT in legs:
            result.take_profit_order = await self._place_leg(
                symbol,
                ProtectionLeg.TAKE_PROFIT,
                self._take_profit(symbol, side, contracts, take_profit),
            )
            result.take_profit_placed = result.take_profit_order is not None

        if result.complete:
            logger.info(f"{symbol} protected: SL {stop_loss}, TP {take_profit}")
        return result

    async def _place_leg(
        self, symbol: str, leg: ProtectionLeg, coro: Awaitable[OrderAck]
    ) -> OrderAck | None:
        try:
            return await coro
        except ExchangeCallError as e:
            failure = ProtectiveOrderFailure(symbol, leg.value, str(e))
            logger.error(f"{failure} - position left unprotected, flagged for retry")
            return None

    async def _stop_loss(
        self, symbol: str, side: Side, contracts: float, stop_loss: float
    ) -> OrderAck:
        direction = TriggerDirection.FALL if side is Side.LONG else TriggerDirection.RISE
        return await self._exchange.create_order(
            symbol,
            OrderType.STOP,
            side.close_order_side,
            contracts,
            reduce_only=True,
            trigger_price=self.round_price(symbol, stop_loss),
            trigger_direction=direction,
        )

    async def _take_profit(
        self, symbol: str, side: Side, contracts: float, take_profit: float
    ) -> OrderAck:
        price = self.round_price(symbol, take_profit)
        try:
            return await self._exchange.create_order(
                symbol,
                OrderType.LIMIT,
                side.close_order_side,
                contracts,
                price,
                reduce_only=True,
            )
        except ExchangeCallError as e:
            logger.warning(f"TP limit for {symbol} failed ({e}), falling back to trigger order")

        direction = TriggerDirection.RISE if side is Side.LONG else TriggerDirection.FALL
        return await self._exchange.create_order(
            symbol,
            OrderType.STOP,
            side.close_order_side,
            contracts,
            reduce_only=True,
            trigger_price=price,
            trigger_direction=direction,
        )
