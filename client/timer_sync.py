from typing import Awaitable, Callable, Optional, Union
import asyncio
import logging

import config
from utils import maybe_await, now_ms

logger = logging.getLogger(__name__)

TickCallback = Callable[[float], Union[None, Awaitable[None]]]
TimeoutCallback = Callable[[], Union[None, Awaitable[None]]]


class TimerSync:
    """Countdown anchored to the server's round-start timestamp.

    Every client computes ``duration - (now - start_timestamp)`` from the same
    server stamp, so they converge on one deadline no matter when each one
    rendered the question.
    """

    def __init__(self, clock: Callable[[], float] = now_ms,
                 tick_interval: Optional[float] = None):
        self.clock = clock
        self.tick_interval = tick_interval if tick_interval is not None else config.TIMER_TICK_INTERVAL
        self._start_timestamp: Optional[float] = None
        self._duration = 0.0
        self._last_remaining: Optional[float] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def remaining(self) -> float:
        """Seconds left, clamped at zero and never growing between calls."""
        if self._start_timestamp is None:
            return 0.0
        elapsed = (self.clock() - self._start_timestamp) / 1000
        value = max(0.0, self._duration - elapsed)
        # A local clock stepping backwards must not push the deadline out
        if self._last_remaining is not None:
            value = min(value, self._last_remaining)
        self._last_remaining = value
        return value

    def start(self, start_timestamp: float, duration_seconds: float,
              on_tick: TickCallback, on_timeout: TimeoutCallback):
        self.cancel()
        self._start_timestamp = start_timestamp
        self._duration = float(duration_seconds)
        self._last_remaining = None
        self._task = asyncio.create_task(self._run(on_tick, on_timeout))

    def cancel(self):
        """Stop ticking. Safe to call any number of times."""
        task, self._task = self._task, None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    async def _run(self, on_tick: TickCallback, on_timeout: TimeoutCallback):
        try:
            while True:
                remaining = self.remaining()
                await self._tick(on_tick, remaining)
                if self._task is not asyncio.current_task():
                    return  # cancelled from inside the tick handler
                if remaining <= 0:
                    break
                await asyncio.sleep(self.tick_interval)
        except asyncio.CancelledError:
            return

        # Detached before firing: cancel() from here on is a no-op
        self._task = None
        logger.info("Countdown reached zero")
        await maybe_await(on_timeout)

    async def _tick(self, on_tick: TickCallback, remaining: float):
        try:
            await maybe_await(on_tick, remaining)
        except Exception:
            logger.exception("Countdown tick handler failed")
