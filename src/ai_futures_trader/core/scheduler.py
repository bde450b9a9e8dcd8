"""Fixed-interval job runner.

A job never overlaps with itself: a tick that arrives while the previous
run is still in progress is dropped, not queued. Stopping a job lets the
current run finish, up to a drain timeout, before cancelling it.
"""

import asyncio
import contextlib
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any

logger = logging.getLogger(__name__)


class IntervalJob:
    """Runs an async callable on a fixed interval."""

    def __init__(
        self,
        name: str,
        func: Callable[[], Awaitable[Any]],
        interval_seconds: float,
        run_immediately: bool = True,
        drain_timeout_seconds: float = 30.0,
    ) -> None:
        self._name = name
        self._func = func
        self._interval = interval_seconds
        self._run_immediately = run_immediately
        self._drain_timeout = drain_timeout_seconds
        self._running = False
        self._busy = False
        self._task: asyncio.Task | None = None
        self._inflight: asyncio.Task | None = None
        self.runs = 0
        self.dropped = 0
        self.failures = 0

    @property
    def name(self) -> str:
        return self._name

    @property
    def is_busy(self) -> bool:
        return self._busy

    @property
    def is_running(self) -> bool:
        return self._running

    async def run_once(self) -> bool:
        """Run the job now and wait for it.

        Returns:
            False if a run was already in progress and this one was dropped
        """
        if self._busy:
            self.dropped += 1
            logger.warning(f"[{self._name}] previous run still in progress, tick dropped")
            return False

        self._busy = True
        started = time.monotonic()
        try:
            await self._func()
            self.runs += 1
        except asyncio.CancelledError:
            raise
        except Exception:
            self.failures += 1
            logger.exception(f"[{self._name}] run failed")
        finally:
            self._busy = False
        logger.debug(f"[{self._name}] run finished in {time.monotonic() - started:.2f}s")
        return True

    def trigger(self) -> bool:
        """Start a run in the background without waiting for it.

        Returns:
            False if the job is busy and the trigger was dropped
        """
        if self._busy:
            self.dropped += 1
            logger.warning(f"[{self._name}] busy, trigger dropped")
            return False
        self._inflight = asyncio.create_task(self.run_once())
        return True

    async def start(self) -> None:
        """Start the periodic loop."""
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._run_loop())
        logger.info(f"Job '{self._name}' started (interval: {self._interval}s)")

    async def stop(self) -> None:
        """Stop the loop, then let an in-flight run finish.

        The run gets up to ``drain_timeout_seconds`` before it is cancelled.
        """
        self._running = False
        if self._task and not self._task.done():
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task

        inflight = self._inflight
        if inflight and not inflight.done():
            logger.info(f"[{self._name}] waiting up to {self._drain_timeout}s for current run")
            done, _ = await asyncio.wait({inflight}, timeout=self._drain_timeout)
            if not done:
                logger.warning(f"[{self._name}] run did not finish in time, cancelling")
                inflight.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await inflight

        self._task = None
        self._inflight = None
        logger.info(f"Job '{self._name}' stopped")

    async def _run_loop(self) -> None:
        """Fire ticks at a fixed rate; ticks missed while busy are dropped."""
        next_tick = time.monotonic()
        if not self._run_immediately:
            next_tick += self._interval
        while self._running:
            delay = next_tick - time.monotonic()
            if delay > 0:
                await asyncio.sleep(delay)
            if not self._running:
                break
            self.trigger()
            next_tick += self._interval
            # Missed ticks are skipped, never replayed
            now = time.monotonic()
            while next_tick <= now:
                next_tick += self._interval
