"""Cleanup Scheduler - hourly tick, daily reconciliation pass.

Manifesto:
    The backend only says "an hour has passed".  Each tick asks the clock
    whether the local hour is the configured cleanup hour and runs a pass
    only then, so the pass fires once a day without the backend knowing
    anything about calendars or time zones.

┌──────────────────────────────────────────────────────────────────────┐
│  CLEANUP SCHEDULER                                                    │
│                                                                       │
│   backend tick (hourly)                                               │
│        │                                                              │
│        ▼                                                              │
│   clock() → cleanup timezone → hour == cleanup_hour ?                 │
│        │ no: skip (debug)                                             │
│        ▼ yes                                                          │
│   run_pass()                                                          │
│        ├── CleanBusyError   → skipped, pass already running           │
│        ├── NotFoundError    → nothing stored yet                      │
│        ├── other exception  → logged, passes_failed += 1              │
│        └── CleanupReport    → passes_completed += 1                   │
│                                                                       │
│   A failed pass never stops the backend; the next matching hour       │
│   tries again.                                                        │
└──────────────────────────────────────────────────────────────────────┘

Tags:
    tagspine, scheduling, cleanup, beat-as-poller, timezone

Doc-Types:
    api-reference, architecture-diagram
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, tzinfo
from typing import Any

from tagspine.core.errors import BusyError, NotFoundError
from tagspine.core.logging import LogContext, get_logger
from tagspine.core.scheduling import BackendHealth, SchedulerBackend, create_backend
from tagspine.core.settings import TagSpineSettings, get_settings

from .cleanup import CleanupReport

logger = get_logger(__name__)

CleanupPass = Callable[[], Awaitable[CleanupReport]]


def _scheduled_pass_context(settings: TagSpineSettings) -> dict[str, str]:
    """Channel and guild the scheduled pass runs on behalf of, when configured."""
    context = {"channel_id": settings.cleanup_channel_id, "guild_id": settings.cleanup_guild_id}
    return {key: value for key, value in context.items() if value}


@dataclass
class SchedulerStats:
    """Statistics for the cleanup scheduler."""

    tick_count: int = 0
    passes_completed: int = 0
    passes_skipped: int = 0
    passes_failed: int = 0
    last_tick: datetime | None = None
    last_pass: datetime | None = None
    last_error: str | None = None
    last_report: CleanupReport | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "tick_count": self.tick_count,
            "passes_completed": self.passes_completed,
            "passes_skipped": self.passes_skipped,
            "passes_failed": self.passes_failed,
            "last_tick": self.last_tick.isoformat() if self.last_tick else None,
            "last_pass": self.last_pass.isoformat() if self.last_pass else None,
            "last_error": self.last_error,
        }


@dataclass
class SchedulerHealth:
    healthy: bool
    backend: BackendHealth | dict
    cleanup_hour: int
    timezone: str
    stats: SchedulerStats = field(default_factory=SchedulerStats)

    def to_dict(self) -> dict[str, Any]:
        return {
            "healthy": self.healthy,
            "backend": self.backend.to_dict() if isinstance(self.backend, BackendHealth) else self.backend,
            "cleanup_hour": self.cleanup_hour,
            "timezone": self.timezone,
            "stats": self.stats.to_dict(),
        }


class CleanupScheduler:
    """Runs the reconciliation pass once a day from an hourly tick.

    Example:
        >>> scheduler = CleanupScheduler(
        ...     AsyncioSchedulerBackend(),
        ...     service.run_cleanup,
        ...     cleanup_hour=2,
        ...     timezone=ZoneInfo("Australia/Sydney"),
        ... )
        >>> scheduler.start()
        >>> # Later...
        >>> await scheduler.stop()
    """

    def __init__(
        self,
        backend: SchedulerBackend,
        run_pass: CleanupPass,
        *,
        cleanup_hour: int = 2,
        timezone: tzinfo = UTC,
        interval_seconds: float = 3600.0,
        clock: Callable[[], datetime] = lambda: datetime.now(UTC),
        pass_context: dict[str, Any] | None = None,
    ) -> None:
        if not 0 <= cleanup_hour <= 23:
            raise ValueError(f"cleanup_hour must be between 0 and 23, got {cleanup_hour}")
        self.backend = backend
        self.run_pass = run_pass
        self.cleanup_hour = cleanup_hour
        self.timezone = timezone
        self.interval = interval_seconds
        self._clock = clock
        self.pass_context = dict(pass_context or {})

        self._stats = SchedulerStats()
        self._running = False

    @classmethod
    def from_settings(
        cls,
        run_pass: CleanupPass,
        settings: TagSpineSettings | None = None,
        backend: SchedulerBackend | None = None,
    ) -> CleanupScheduler:
        settings = settings or get_settings()
        return cls(
            backend or create_backend(settings.scheduler_backend),
            run_pass,
            cleanup_hour=settings.cleanup_hour,
            timezone=settings.tzinfo,
            interval_seconds=settings.cleanup_interval_seconds,
            pass_context=_scheduled_pass_context(settings),
        )

    # === Lifecycle ===

    def start(self) -> None:
        if self._running:
            logger.warning("cleanup_scheduler_already_running")
            return

        logger.info(
            "cleanup_scheduler_started",
            backend=self.backend.name,
            interval=self.interval,
            cleanup_hour=self.cleanup_hour,
            timezone=str(self.timezone),
        )
        self.backend.start(self._tick, self.interval)
        self._running = True

    async def stop(self) -> None:
        if not self._running:
            return
        await self.backend.stop()
        self._running = False
        logger.info("cleanup_scheduler_stopped")

    @property
    def is_running(self) -> bool:
        return self._running

    # === Tick Processing ===

    def is_due(self, now: datetime | None = None) -> bool:
        """True when ``now`` falls in the cleanup hour of the configured zone."""
        now = now or self._clock()
        if now.tzinfo is None:
            now = now.replace(tzinfo=UTC)
        return now.astimezone(self.timezone).hour == self.cleanup_hour

    async def _tick(self) -> None:
        now = self._clock()
        self._stats.tick_count += 1
        self._stats.last_tick = now

        if not self.is_due(now):
            logger.debug("cleanup_not_due", hour=now.astimezone(self.timezone).hour)
            return

        await self.trigger()

    async def trigger(self) -> CleanupReport | None:
        """Run one pass now.  Returns None when the pass did not complete."""
        async with LogContext(**self.pass_context):
            return await self._run_pass()

    async def _run_pass(self) -> CleanupReport | None:
        try:
            report = await self.run_pass()
        except BusyError:
            self._stats.passes_skipped += 1
            logger.debug("cleanup_skipped", reason="busy")
            return None
        except NotFoundError as e:
            self._stats.passes_skipped += 1
            logger.info("cleanup_skipped", reason="empty", error=str(e))
            return None
        except Exception as e:
            self._stats.passes_failed += 1
            self._stats.last_error = str(e)
            logger.exception("cleanup_failed", error=str(e), passes_failed=self._stats.passes_failed)
            return None

        self._stats.passes_completed += 1
        self._stats.last_pass = self._clock()
        self._stats.last_report = report
        return report

    # === Health & Stats ===

    @property
    def stats(self) -> SchedulerStats:
        return self._stats

    def get_health(self) -> SchedulerHealth:
        backend_health = self.backend.health()
        return SchedulerHealth(
            healthy=self._running and bool(backend_health.get("healthy", False)),
            backend=backend_health,
            cleanup_hour=self.cleanup_hour,
            timezone=str(self.timezone),
            stats=self._stats,
        )

    def health(self) -> dict[str, Any]:
        return self.get_health().to_dict()
