"""Non-overlapping asyncio interval loop shared by the collector and alert engine."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

import structlog

logger = structlog.get_logger(__name__)

TickFn = Callable[[], Awaitable[None]]


class PeriodicTask:
    """Runs ``tick_fn`` every ``interval_secs`` until stopped.

    A tick never overlaps another tick: ``run_once()`` called while a tick is
    in flight returns False without running. ``stop()`` stops issuing new
    ticks and waits for the in-flight one to finish.

    Usage::

        task = PeriodicTask("collection", collector.collect_once, 30.0)
        await task.start()
        # ...
        await task.stop()
    """

    def __init__(
        self,
        name: str,
        tick_fn: TickFn,
        interval_secs: float,
    ) -> None:
        self._name = name
        self._tick_fn = tick_fn
        self._interval_secs = interval_secs
        self._lock = asyncio.Lock()
        self._stop_event = asyncio.Event()
        self._task: asyncio.Task[None] | None = None
        self._running = False
        self._tick_count = 0
        self._skipped_count = 0

    @property
    def running(self) -> bool:
        return self._running

    @property
    def tick_count(self) -> int:
        """Number of completed ticks."""
        return self._tick_count

    @property
    def skipped_count(self) -> int:
        """Number of ticks skipped because one was already in flight."""
        return self._skipped_count

    @property
    def in_flight(self) -> bool:
        return self._lock.locked()

    # ── Lifecycle ───────────────────────────────────────────────

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._stop_event.clear()
        self._task = asyncio.create_task(self._loop())
        logger.info(
            "periodic_task_started",
            task=self._name,
            interval_secs=self._interval_secs,
        )

    async def stop(self, timeout: float | None = None) -> None:
        """Stop the loop, letting an in-flight tick complete.

        If ``timeout`` elapses first the task is cancelled.
        """
        self._running = False
        self._stop_event.set()
        if self._task is not None:
            try:
                await asyncio.wait_for(asyncio.shield(self._task), timeout)
            except TimeoutError:
                self._task.cancel()
                try:
                    await self._task
                except asyncio.CancelledError:
                    pass
            self._task = None
        logger.info("periodic_task_stopped", task=self._name, ticks=self._tick_count)

    # ── Ticks ───────────────────────────────────────────────────

    async def run_once(self) -> bool:
        """Run a single tick now. Returns False if a tick was already running."""
        if self._lock.locked():
            self._skipped_count += 1
            logger.warning("periodic_tick_skipped", task=self._name)
            return False
        async with self._lock:
            try:
                await self._tick_fn()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("periodic_tick_error", task=self._name)
            self._tick_count += 1
        return True

    async def _loop(self) -> None:
        while self._running:
            await self.run_once()
            try:
                await asyncio.wait_for(self._stop_event.wait(), self._interval_secs)
            except TimeoutError:
                continue
