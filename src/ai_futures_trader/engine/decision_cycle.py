"""Decision cycle orchestrator.

Snapshot -> Oracle -> protective defaults -> Validator -> Guard -> Executor
-> durable record. Every failure is caught here; a failed cycle is stored
as a Hold cycle with status ``failed`` and still gets an audit entry.
"""

import asyncio
import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from ai_futures_trader.agent.oracle import DecisionOracle, DecisionRequest, OracleResponse
from ai_futures_trader.agent.prompts import build_system_prompt, build_user_prompt
from ai_futures_trader.agent.schemas import Decision, HoldDecision, TradeDecision
from ai_futures_trader.agent.validator import validate_decision
from ai_futures_trader.audit.models import DecisionLog, OrderLog
from ai_futures_trader.audit.writer import LocalLogWriter
from ai_futures_trader.config import TradingConfig
from ai_futures_trader.core.errors import ExchangeCallError, GuardSkip, TradingError
from ai_futures_trader.core.types import CycleStatus, Operation, ProtectionLeg
from ai_futures_trader.exchange.base import Exchange
from ai_futures_trader.execution.executor import OrderExecutor
from ai_futures_trader.execution.guard import PositionGuard
from ai_futures_trader.execution.models import ExecutionResult
from ai_futures_trader.history.performance import PerformanceHistory, format_history
from ai_futures_trader.market.account import format_account, summarize_account
from ai_futures_trader.market.models import FeatureVector
from ai_futures_trader.market.snapshot import SnapshotProvider
from ai_futures_trader.storage.models import CycleRecord, PositionRecord, utc_now
from ai_futures_trader.storage.store import SqliteRecordStore

logger = logging.getLogger(__name__)

STOP_LOSS_KEYS = ("stopLoss", "stop_loss")
TAKE_PROFIT_KEYS = ("takeProfit", "take_profit")
ENTRY_PRICE_KEYS = ("entryPrice", "entry_price", "pricing")


def _first_number(data: dict[str, Any], keys: tuple[str, ...]) -> float | None:
    for key in keys:
        value = data.get(key)
        if isinstance(value, int | float) and not isinstance(value, bool) and value > 0:
            return float(value)
    return None


def apply_protective_defaults(
    payload: dict[str, Any],
    reference_price: float | None,
    stop_loss_percent: float = 5.0,
    take_profit_percent: float = 6.0,
) -> dict[str, Any]:
    """Fill a missing stop-loss or take-profit on a Buy/Sell payload.

    Defaults are placed ``stop_loss_percent`` against and
    ``take_profit_percent`` with the trade, from the current price or, if
    unknown, the payload's entry price. Anything else is returned unchanged
    for the validator to judge.
    """
    operation = str(payload.get("operation", "")).strip().lower()
    position = payload.get("position")
    if operation not in ("buy", "sell") or not isinstance(position, dict):
        return payload

    has_sl = _first_number(position, STOP_LOSS_KEYS) is not None
    has_tp = _first_number(position, TAKE_PROFIT_KEYS) is not None
    if has_sl and has_tp:
        return payload

    price = reference_price or _first_number(position, ENTRY_PRICE_KEYS)
    if not price:
        return payload

    is_long = operation == "buy"
    filled = dict(position)
    if not has_sl:
        factor = 1 - stop_loss_percent / 100 if is_long else 1 + stop_loss_percent / 100
        filled["stopLoss"] = price * factor
        logger.warning(f"Oracle omitted stopLoss, using fallback {filled['stopLoss']:.4f}")
    if not has_tp:
        factor = 1 + take_profit_percent / 100 if is_long else 1 - take_profit_percent / 100
        filled["takeProfit"] = price * factor
        logger.warning(f"Oracle omitted takeProfit, using fallback {filled['takeProfit']:.4f}")
    return {**payload, "position": filled}


@dataclass
class _CycleContext:
    log_id: str
    response: OracleResponse | None = None
    decision: Decision | None = None
    execution: ExecutionResult | None = None


class DecisionCycle:
    """Runs one decision cycle end to end."""

    def __init__(
        self,
        config: TradingConfig,
        exchange: Exchange,
        snapshots: SnapshotProvider,
        oracle: DecisionOracle,
        executor: OrderExecutor,
        store: SqliteRecordStore,
        history: PerformanceHistory | None = None,
        audit: LocalLogWriter | None = None,
        guard: PositionGuard | None = None,
        on_prices: Callable[[dict[str, float]], None] | None = None,
    ) -> None:
        """Initialize the cycle.

        Args:
            config: Trading configuration
            exchange: Venue adapter
            snapshots: Feature vector provider
            oracle: Decision oracle
            executor: Order executor
            store: Durable record store
            history: Performance aggregator (defaults to one over ``store``)
            audit: Audit trail writer (optional)
            guard: Position guard (defaults to one over ``exchange``)
            on_prices: Receives the latest price per symbol (paper venue feed)
        """
        self._config = config
        self._exchange = exchange
        self._snapshots = snapshots
        self._oracle = oracle
        self._executor = executor
        self._store = store
        self._history = history or PerformanceHistory(store)
        self._audit = audit
        self._guard = guard or PositionGuard(exchange)
        self._on_prices = on_prices
        self._started_at = utc_now()
        self._invocations = 0

    async def run(self) -> CycleRecord:
        """Run one cycle. Never raises."""
        started = utc_now()
        ctx = _CycleContext(log_id=str(uuid.uuid4()))
        self._invocations += 1

        try:
            cycle = await self._run(ctx)
        except Exception as e:
            logger.exception(f"Decision cycle failed: {e}")
            symbol = ctx.decision.symbol if ctx.decision else None
            cycle = CycleRecord(
                status=CycleStatus.FAILED,
                operation=Operation.HOLD,
                symbol=symbol,
                rationale=ctx.decision.rationale if ctx.decision else "",
                error=f"{type(e).__name__}: {e}",
            )

        cycle.started_at = started
        cycle.finished_at = utc_now()
        try:
            await asyncio.to_thread(self._store.record_cycle, cycle)
        except Exception:
            logger.exception("Failed to store cycle record")
        self._write_decision_log(ctx, cycle)

        logger.info(
            f"Cycle {cycle.status.value}: {cycle.operation.value} {cycle.symbol or '-'}"
            f"{f' ({cycle.error})' if cycle.error else ''}"
        )
        return cycle

    async def _run(self, ctx: _CycleContext) -> CycleRecord:
        await self.retry_protection()

        open_positions = await self._guard.open_positions()
        if self._config.skip_when_positions_open and open_positions:
            symbols = ", ".join(sorted({p.symbol for p in open_positions}))
            logger.info(f"Positions open ({symbols}), skipping oracle this cycle")
            return CycleRecord(
                status=CycleStatus.SKIPPED,
                rationale=f"Positions open: {symbols}",
            )

        features = await self._collect_features()
        if self._on_prices:
            self._on_prices({f.symbol: f.price for f in features.values()})

        account = await summarize_account(self._exchange, self._config.initial_capital)
        digests = [await asyncio.to_thread(self._history.digest, symbol) for symbol in features]
        history_text = "\n\n".join(format_history(digest) for digest in digests)

        request = DecisionRequest(
            system_prompt=build_system_prompt(self._config.symbols, self._config.max_leverage),
            user_prompt=build_user_prompt(
                list(features.values()),
                open_positions,
                format_account(account),
                history_text,
                started_at=self._started_at,
                invocation_count=self._invocations,
            ),
            symbols=list(features),
        )
        ctx.response = await self._oracle.decide(request)

        payload = ctx.response.payload
        if self._config.fill_missing_protection:
            symbol = str(payload.get("symbol", "")).strip().upper()
            reference = features[symbol].price if symbol in features else None
            payload = apply_protective_defaults(
                payload,
                reference,
                self._config.default_stop_loss_percent,
                self._config.default_take_profit_percent,
            )

        ctx.decision = validate_decision(
            payload,
            allowed_symbols=self._config.symbols,
            max_leverage=self._config.max_leverage,
        )
        logger.info(
            f"Decision: {ctx.decision.operation.value} {ctx.decision.symbol} - "
            f"{ctx.decision.rationale[:80]}"
        )

        if isinstance(ctx.decision, HoldDecision):
            return CycleRecord(
                status=CycleStatus.HOLD,
                symbol=ctx.decision.symbol,
                rationale=ctx.decision.rationale,
            )

        return await self._execute(ctx, ctx.decision, features.get(ctx.decision.symbol))

    async def _execute(
        self, ctx: _CycleContext, decision: TradeDecision, features: FeatureVector | None
    ) -> CycleRecord:
        """Trade and record, shielded from cancellation.

        A cancelled cycle still finishes the trade it started: an accepted
        entry always gets its protective orders and its durable record.
        """
        trade = asyncio.ensure_future(self._trade(ctx, decision, features))
        try:
            return await asyncio.shield(trade)
        except asyncio.CancelledError:
            logger.warning(f"Cycle cancelled during {decision.symbol} trade, finishing it first")
            await asyncio.wait({trade})
            if not trade.cancelled() and trade.exception() is not None:
                logger.error(f"Trade for {decision.symbol} failed after cancel: {trade.exception()}")
            raise

    async def _trade(
        self, ctx: _CycleContext, decision: TradeDecision, features: FeatureVector | None
    ) -> CycleRecord:
        plan = decision.position
        try:
            result = await self._executor.execute(decision.symbol, decision.side, plan)
        except GuardSkip as skip:
            return CycleRecord(
                status=CycleStatus.SKIPPED,
                operation=decision.operation,
                symbol=decision.symbol,
                rationale=decision.rationale,
                error=str(skip),
            )
        ctx.execution = result

        record = await asyncio.to_thread(
            self._store.create_position,
            PositionRecord(
                symbol=decision.symbol,
                operation=decision.operation,
                side=decision.side,
                entry_price=result.entry_price or plan.entry_price,
                requested_entry_price=plan.entry_price,
                amount_usd=plan.amount_usd,
                contracts=result.contracts,
                leverage=plan.leverage,
                stop_loss=plan.stop_loss,
                take_profit=plan.take_profit,
                exchange_order_id=result.order_id,
                indicators_at_open=features.indicators_at_open() if features else {},
                rationale=decision.rationale,
                stop_loss_placed=result.stop_loss_placed,
                take_profit_placed=result.take_profit_placed,
            ),
        )
        self._write_order_logs(ctx, result)

        if result.needs_protection_retry:
            logger.warning(
                f"Position #{record.id} {record.symbol} is not fully protected "
                f"(SL: {result.stop_loss_placed}, TP: {result.take_profit_placed})"
            )

        return CycleRecord(
            status=CycleStatus.EXECUTED,
            operation=decision.operation,
            symbol=decision.symbol,
            rationale=decision.rationale,
            position_id=record.id,
        )

    async def _collect_features(self) -> dict[str, FeatureVector]:
        features: dict[str, FeatureVector] = {}
        for symbol in self._config.symbols:
            try:
                features[symbol] = await self._snapshots.collect(symbol)
            except (ExchangeCallError, ValueError) as e:
                logger.warning(f"Market data unavailable for {symbol}: {e}")
        if not features:
            raise TradingError("No market data for any symbol")
        return features

    async def retry_protection(self) -> int:
        """Re-place missing SL/TP legs for open, unprotected records.

        Returns:
            Number of records that became fully protected
        """
        records = await asyncio.to_thread(self._store.list_open_positions)
        flagged = [r for r in records if not r.is_protected]
        if not flagged:
            return 0

        try:
            live = {
                p.symbol: p
                for p in await self._guard.open_positions(sorted({r.symbol for r in flagged}))
            }
        except ExchangeCallError as e:
            logger.warning(f"Protection retry skipped, positions unavailable: {e}")
            return 0

        repaired = 0
        for record in flagged:
            position = live.get(record.symbol)
            if position is None or position.side is not record.side:
                # Closed already; the reconciler owns it from here
                continue
            legs = set()
            if not record.stop_loss_placed:
                legs.add(ProtectionLeg.STOP_LOSS)
            if not record.take_profit_placed:
                legs.add(ProtectionLeg.TAKE_PROFIT)

            logger.info(
                f"Retrying protection for #{record.id} {record.symbol}: "
                f"{', '.join(sorted(leg.value for leg in legs))}"
            )
            result = await self._executor.protect(
                record.symbol,
                record.side,
                position.contracts,
                record.stop_loss,
                record.take_profit,
                legs=legs,
            )
            stop_loss_placed = record.stop_loss_placed or result.stop_loss_placed
            take_profit_placed = record.take_profit_placed or result.take_profit_placed
            await asyncio.to_thread(
                self._store.update_protection, record.id, stop_loss_placed, take_profit_placed
            )
            if stop_loss_placed and take_profit_placed:
                repaired += 1
        return repaired

    def _write_decision_log(self, ctx: _CycleContext, cycle: CycleRecord) -> None:
        if self._audit is None:
            return
        response = ctx.response
        position = None
        if isinstance(ctx.decision, TradeDecision):
            position = ctx.decision.position.to_dict()
        try:
            self._audit.write_decision_log(
                DecisionLog(
                    log_id=ctx.log_id,
                    status=cycle.status.value,
                    operation=cycle.operation.value,
                    symbol=cycle.symbol,
                    position=position,
                    rationale=cycle.rationale,
                    error=cycle.error,
                    position_id=cycle.position_id,
                    model=response.model if response else "",
                    prompt_tokens=response.prompt_tokens if response else 0,
                    completion_tokens=response.completion_tokens if response else 0,
                    latency_ms=response.latency_ms if response else 0.0,
                )
            )
        except OSError:
            logger.exception("Failed to write decision log")

    def _write_order_logs(self, ctx: _CycleContext, result: ExecutionResult) -> None:
        if self._audit is None:
            return
        purposes = {id(result.entry_order): "entry"}
        if result.protection.stop_loss_order is not None:
            purposes[id(result.protection.stop_loss_order)] = ProtectionLeg.STOP_LOSS.value
        if result.protection.take_profit_order is not None:
            purposes[id(result.protection.take_profit_order)] = ProtectionLeg.TAKE_PROFIT.value
        try:
            for ack in result.orders:
                self._audit.write_order_log(
                    OrderLog(
                        log_id=str(uuid.uuid4()),
                        order_id=ack.order_id,
                        symbol=ack.symbol,
                        side=ack.side.value,
                        order_type=ack.order_type.value,
                        size=ack.quantity,
                        price=ack.price,
                        trigger_price=ack.trigger_price,
                        reduce_only=ack.reduce_only,
                        status=ack.status,
                        purpose=purposes.get(id(ack), ""),
                        decision_log_id=ctx.log_id,
                    )
                )
        except OSError:
            logger.exception("Failed to write order log")
