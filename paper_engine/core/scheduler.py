"""Fixed-interval tick scheduler."""
import asyncio
from typing import Awaitable, Callable, Optional

import structlog

logger = structlog.get_logger(__name__)

TickCallback = Callable[[], Awaitable[None]]


class Scheduler:
    """
    Drive a coroutine at a fixed interval.

    Ticks never overlap: the loop awaits each tick before scheduling the
    next one. When a tick overruns, the missed deadlines are skipped rather
    than queued, and the loop realigns to the next deadline on the original
    grid. step() runs one tick by hand for tests and CLI use.
    """

    def __init__(self, callback: TickCallback, interval: float = 1.0, name: str = "scheduler"):
        if interval <= 0:
            raise ValueError("Interval must be positive")
        self.callback = callback
        self.interval = interval
        self.name = name

        self._running = False
        self._task: Optional[asyncio.Task] = None
        self.ticks_run = 0
        self.ticks_skipped = 0

    @property
    def is_running(self) -> bool:
        return self._running

    def start(self):
        """Begin the recurring tick. No-op if already running."""
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._loop(), name=f"{self.name}-loop")
        logger.info("scheduler.started", name=self.name, interval=self.interval)

    async def stop(self):
        """
        Cancel the recurring tick. No-op if already stopped.

        When called from inside a tick the loop is not cancelled; it exits
        once the current tick returns.
        """
        if not self._running:
            return
        self._running = False
        task, self._task = self._task, None

        if task is not None and task is not asyncio.current_task():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        logger.info("scheduler.stopped", name=self.name, ticks_run=self.ticks_run)

    async def step(self):
        """Run a single tick immediately."""
        await self.callback()
        self.ticks_run += 1

    async def _loop(self):
        loop = asyncio.get_running_loop()
        next_run = loop.time()

        while self._running:
            try:
                await self.step()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                # The tick callback is expected to contain its own failures
                logger.error("scheduler.tick_error", name=self.name, error=str(e), exc_info=True)

            if not self._running:
                break

            next_run += self.interval
            now = loop.time()
            if now > next_run:
                missed = int((now - next_run) // self.interval) + 1
                next_run += missed * self.interval
                self.ticks_skipped += missed
                logger.warning("scheduler.tick_overrun", name=self.name, skipped=missed)

            await asyncio.sleep(max(0.0, next_run - now))
