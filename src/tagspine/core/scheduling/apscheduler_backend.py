"""APScheduler-based scheduler backend.

Wraps APScheduler 3.x ``AsyncIOScheduler`` to provide the
``SchedulerBackend`` protocol.  Jobs run on the bot's event loop, so the
tick callback shares the directory's asyncio locks.

Requires the ``[apscheduler]`` extra::

    pip install tagspine[apscheduler]

.. note::

    For most deployments the ``AsyncioSchedulerBackend`` is sufficient.
    Use this backend when APScheduler is already driving other jobs in
    the same bot.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from tagspine.core.logging import get_logger

from .protocol import TickCallback

logger = get_logger(__name__)

_JOB_ID = "tagspine_scheduler_tick"


def _require_apscheduler():
    """Validate that apscheduler is installed."""
    try:
        from apscheduler.schedulers.asyncio import AsyncIOScheduler  # noqa: F401

        return AsyncIOScheduler
    except ImportError:
        raise ImportError(
            "APScheduler is required for APSchedulerBackend. "
            "Install it with: pip install tagspine[apscheduler]"
        ) from None


class APSchedulerBackend:
    """APScheduler-based scheduler backend.

    Example::

        >>> backend = APSchedulerBackend()
        >>> backend.start(tick_callback, interval_seconds=3600)
        >>> # … later …
        >>> await backend.stop()
    """

    name: str = "apscheduler"

    def __init__(self) -> None:
        AsyncIOScheduler = _require_apscheduler()  # noqa: N806
        self._scheduler = AsyncIOScheduler(timezone=UTC)
        self._tick_count: int = 0
        self._last_tick: datetime | None = None

    def start(
        self,
        tick_callback: TickCallback,
        interval_seconds: float = 3600.0,
    ) -> None:
        """Register an interval job calling *tick_callback* and start the scheduler.

        Must be called from a running event loop.
        """

        async def _tick_wrapper() -> None:
            self._tick_count += 1
            self._last_tick = datetime.now(UTC)
            try:
                await tick_callback()
            except Exception:
                logger.exception("scheduler_tick_failed", backend=self.name)

        self._scheduler.add_job(
            _tick_wrapper,
            "interval",
            seconds=interval_seconds,
            id=_JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        if not self._scheduler.running:
            self._scheduler.start()
        logger.info("scheduler_backend_started", backend=self.name, interval=interval_seconds)

    async def stop(self) -> None:
        """Shut the scheduler down."""
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("scheduler_backend_stopped", backend=self.name)

    def health(self) -> dict[str, Any]:
        """Return backend health status."""
        running = self._scheduler.running
        return {
            "healthy": running,
            "backend": self.name,
            "tick_count": self._tick_count,
            "last_tick": self._last_tick.isoformat() if self._last_tick else None,
            "scheduled_jobs": len(self._scheduler.get_jobs()) if running else 0,
        }
