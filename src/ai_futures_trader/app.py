"""AI Futures Trader - application wiring and entry point.

Two independent fixed-interval jobs share one asyncio loop:
1. Decision cycle (default every 180s): snapshot -> oracle -> execute.
2. Reconciliation (default every 60s): resolve closed positions.
"""

import asyncio
import contextlib
import logging
import signal
import sys

from ai_futures_trader.agent.llm import LangChainDecisionOracle
from ai_futures_trader.agent.oracle import DecisionOracle
from ai_futures_trader.audit.writer import LocalLogWriter
from ai_futures_trader.config import Config
from ai_futures_trader.core.errors import ExchangeCallError
from ai_futures_trader.core.scheduler import IntervalJob
from ai_futures_trader.engine.decision_cycle import DecisionCycle
from ai_futures_trader.exchange.base import Exchange
from ai_futures_trader.exchange.bybit import BybitExchange
from ai_futures_trader.exchange.paper import PaperExchange
from ai_futures_trader.execution.executor import OrderExecutor
from ai_futures_trader.execution.guard import PositionGuard
from ai_futures_trader.history.performance import PerformanceHistory
from ai_futures_trader.logging import setup_logging
from ai_futures_trader.market.snapshot import CcxtSnapshotProvider
from ai_futures_trader.reconcile.matching import ContentHistoryMatcher
from ai_futures_trader.reconcile.reconciler import PositionReconciler, ReconcileReport
from ai_futures_trader.storage.store import SqliteRecordStore

logger = logging.getLogger(__name__)


class TradingEngine:
    """Wires adapters, the decision cycle and the reconciler."""

    def __init__(
        self,
        config: Config,
        exchange: Exchange | None = None,
        market: BybitExchange | None = None,
        oracle: DecisionOracle | None = None,
        store: SqliteRecordStore | None = None,
        audit: LocalLogWriter | None = None,
    ) -> None:
        """Initialize engine.

        Args:
            config: Application configuration
            exchange: Trading venue (defaults to Bybit, or paper in DRY_RUN)
            market: Market data venue (defaults to Bybit)
            oracle: Decision oracle (defaults to the LangChain oracle)
            store: Record store (defaults to sqlite at DATABASE_PATH)
            audit: Audit writer (defaults to AUDIT_DIR)
        """
        self._config = config
        trading = config.trading

        self._market = market or BybitExchange(
            api_key=config.api.bybit_api_key,
            api_secret=config.api.bybit_api_secret,
            demo=config.api.bybit_demo,
            timeout_seconds=trading.exchange_timeout_seconds,
        )
        if exchange is not None:
            self._exchange = exchange
        elif trading.dry_run:
            self._exchange = PaperExchange(initial_balance=trading.paper_balance)
        else:
            self._exchange = self._market

        self._store = store or SqliteRecordStore(config.storage.database_path)
        self._audit = audit or LocalLogWriter(config.storage.audit_dir)
        self._guard = PositionGuard(self._exchange)

        self._executor = OrderExecutor(
            self._exchange,
            guard=self._guard,
            settle_delay_seconds=trading.settle_delay_seconds,
            leverage_attempts=trading.leverage_attempts,
            price_decimals=trading.price_decimals,
            price_decimals_overrides=trading.price_decimals_overrides,
        )
        self._cycle = DecisionCycle(
            trading,
            self._exchange,
            CcxtSnapshotProvider(self._market),
            oracle or LangChainDecisionOracle(config),
            self._executor,
            self._store,
            history=PerformanceHistory(self._store),
            audit=self._audit,
            guard=self._guard,
            on_prices=self._push_paper_prices if self.is_paper else None,
        )
        self._reconciler = PositionReconciler(
            self._exchange,
            self._store,
            matcher=ContentHistoryMatcher(
                qty_tolerance=config.reconcile.qty_tolerance,
                price_tolerance=config.reconcile.price_tolerance,
                scan_depth=config.reconcile.scan_depth,
            ),
            lookback_days=config.reconcile.lookback_days,
            history_limit=config.reconcile.history_limit,
        )

        self._decision_job = IntervalJob(
            "decision",
            self._cycle.run,
            trading.decision_interval_seconds,
            drain_timeout_seconds=trading.shutdown_grace_seconds,
        )
        self._reconcile_job = IntervalJob(
            "reconcile", self.reconcile_once, trading.reconcile_interval_seconds
        )
        self._stop_event = asyncio.Event()

    @property
    def is_paper(self) -> bool:
        return isinstance(self._exchange, PaperExchange)

    @property
    def cycle(self) -> DecisionCycle:
        return self._cycle

    def _push_paper_prices(self, prices: dict[str, float]) -> None:
        if isinstance(self._exchange, PaperExchange):
            for symbol, price in prices.items():
                self._exchange.set_mark_price(symbol, price)

    async def _refresh_paper_prices(self) -> None:
        """Feed last trade prices of paper positions so resting SL/TP can fire."""
        if not isinstance(self._exchange, PaperExchange):
            return
        for position in await self._exchange.fetch_positions():
            try:
                candles = await self._market.fetch_ohlcv(position.symbol, "1m", 1)
            except ExchangeCallError as e:
                logger.warning(f"[PAPER] Price refresh failed for {position.symbol}: {e}")
                continue
            if candles:
                self._exchange.set_mark_price(position.symbol, float(candles[-1][4]))

    async def reconcile_once(self) -> ReconcileReport:
        await self._refresh_paper_prices()
        return await self._reconciler.reconcile()

    async def connect(self) -> None:
        await self._market.connect()
        if self._exchange is not self._market:
            await self._exchange.connect()

    async def run_once(self) -> None:
        """One reconciliation pass followed by one decision cycle."""
        await self.connect()
        try:
            await self._reconcile_job.run_once()
            await self._decision_job.run_once()
        finally:
            await self.shutdown()

    async def start(self) -> None:
        """Start both jobs and block until ``stop`` is called."""
        trading = self._config.trading
        logger.info("=" * 60)
        logger.info("AI Futures Trader")
        logger.info("=" * 60)
        logger.info(f"Symbols: {', '.join(trading.symbols)}")
        logger.info(f"Decision interval: {trading.decision_interval_seconds}s")
        logger.info(f"Reconcile interval: {trading.reconcile_interval_seconds}s")
        if self.is_paper:
            logger.info(f"Mode: DRY_RUN (paper venue, ${trading.paper_balance:.2f} balance)")
        else:
            logger.info(f"Mode: LIVE ({self._exchange.name})")
        logger.info("=" * 60)

        try:
            await self.connect()
        except ExchangeCallError as e:
            logger.error(f"Failed to connect to {self._exchange.name}: {e}")
            return

        await self._reconcile_job.start()
        await self._decision_job.start()
        await self._stop_event.wait()

    async def stop(self) -> None:
        logger.info("Stopping trading engine...")
        self._stop_event.set()
        await self._decision_job.stop()
        await self._reconcile_job.stop()

    async def shutdown(self) -> None:
        if isinstance(self._exchange, PaperExchange):
            stats = self._exchange.get_stats()
            logger.info(
                f"[PAPER] Balance ${stats['current_balance']:.2f} "
                f"({stats['pnl_percent']:+.2f}%), open positions: {stats['open_positions']}"
            )
        await self._exchange.disconnect()
        if self._exchange is not self._market:
            await self._market.disconnect()
        self._store.close()
        logger.info("Trading engine stopped")


async def main_async(once: bool = False) -> None:
    """Async main entry point.

    Args:
        once: Run a single reconcile pass and decision cycle, then exit
    """
    config = Config.from_env()
    setup_logging(config.logging)
    engine = TradingEngine(config)

    if once:
        await engine.run_once()
        return

    loop = asyncio.get_running_loop()

    def shutdown_handler() -> None:
        logger.info("Shutdown signal received")
        asyncio.create_task(engine.stop())

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, shutdown_handler)

    try:
        await engine.start()
    finally:
        await engine.stop()
        await engine.shutdown()


def main() -> None:
    """Application entry point."""
    once = "--once" in sys.argv

    with contextlib.suppress(KeyboardInterrupt):
        asyncio.run(main_async(once=once))


if __name__ == "__main__":
    main()
