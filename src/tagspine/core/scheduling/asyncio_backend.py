"""Loop-native scheduler backend.

This is the DEFAULT backend for tagspine scheduling.  It runs the tick
loop as a task on the bot's own event loop, so the tick callback can take
the same asyncio locks as chat-command handlers.

    start()
       │
       ▼
    Task (loop):
       while True:
           await sleep(interval)
           tick_count += 1
           last_tick = now()
           await tick_callback()     ◄── exceptions logged, loop continues

    stop()
       │
       ▼
    task.cancel(); await task
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any

from tagspine.core.logging import get_logger

from .protocol import BackendHealth, TickCallback

logger = get_logger(__name__)


class AsyncioSchedulerBackend:
    """Scheduler backend driven by an asyncio task.

    Example:
        >>> backend = AsyncioSchedulerBackend()
        >>>
        >>> async def my_tick():
        ...     print("Tick!")
        ...
        >>> backend.start(my_tick, interval_seconds=3600)
        >>> # ... later ...
        >>> await backend.stop()
    """

    name = "asyncio"

    def __init__(self, sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep) -> None:
        self._sleep = sleep
        self._task: asyncio.Task | None = None
        self._tick_count = 0
        self._last_tick: datetime | None = None
        self._interval: float = 3600.0

    def start(
        self,
        tick_callback: TickCallback,
        interval_seconds: float = 3600.0,
    ) -> None:
        """Start the tick loop on the running event loop.

        Args:
            tick_callback: Async function to call on each tick.
            interval_seconds: How often to tick (default: hourly).
        """
        if self.is_running:
            logger.warning("scheduler_backend_already_started", backend=self.name)
            return

        self._interval = interval_seconds
        self._task = asyncio.get_running_loop().create_task(
            self._loop(tick_callback), name="tagspine-scheduler"
        )
        logger.info("scheduler_backend_started", backend=self.name, interval=interval_seconds)

    async def _loop(self, tick_callback: TickCallback) -> None:
        while True:
            await self._sleep(self._interval)
            self._tick_count += 1
            self._last_tick = datetime.now(UTC)

            try:
                await tick_callback()
            except Exception as e:
                logger.exception("scheduler_tick_failed", error=str(e))

    async def stop(self) -> None:
        """Cancel the tick loop and wait for it to finish."""
        if self._task is None:
            return

        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("scheduler_backend_stopped", backend=self.name)

    def health(self) -> dict[str, Any]:
        """Return backend health status."""
        return self.get_health().to_dict()

    def get_health(self) -> BackendHealth:
        """Return structured health status."""
        return BackendHealth(
            healthy=self.is_running,
            backend=self.name,
            tick_count=self._tick_count,
            last_tick=self._last_tick,
            extra={"interval_seconds": self._interval},
        )

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def tick_count(self) -> int:
        return self._tick_count

    @property
    def last_tick(self) -> datetime | None:
        return self._last_tick
