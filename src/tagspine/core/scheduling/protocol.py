"""Scheduler backend protocol.

┌──────────────────────────────────────────────────────────────────────────────┐
│  SCHEDULER BACKEND PROTOCOL                                                   │
│                                                                               │
│  Backends control WHEN ticks happen; the cleanup scheduler controls WHAT     │
│  happens on each tick (hour check, busy check, reconciliation pass).         │
│                                                                               │
│   ┌─────────────────┐       tick()       ┌──────────────────────┐            │
│   │ Asyncio Backend │ ─────────────────► │  CleanupScheduler    │            │
│   │ (default)       │                    │                      │            │
│   └─────────────────┘                    │  - hour == target?   │            │
│                                          │  - clean slot free?  │            │
│   ┌─────────────────┐       tick()       │  - run pass          │            │
│   │  APScheduler    │ ─────────────────► │                      │            │
│   │  Backend        │                    └──────────────────────┘            │
│   └─────────────────┘                                                         │
│                                                                               │
│  Ticks always run on the bot's event loop: the directory's locks are         │
│  asyncio primitives bound to that loop.                                      │
└──────────────────────────────────────────────────────────────────────────────┘
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol, runtime_checkable

TickCallback = Callable[[], Awaitable[None]]


@runtime_checkable
class SchedulerBackend(Protocol):
    """Protocol for pluggable scheduler timing backends.

    A backend is responsible ONLY for timing: calling the tick callback
    at the specified interval on the running event loop.

    Implementations:
        - AsyncioSchedulerBackend: loop-native task (default)
        - APSchedulerBackend: APScheduler AsyncIOScheduler (``[apscheduler]`` extra)
    """

    name: str

    def start(
        self,
        tick_callback: TickCallback,
        interval_seconds: float = 3600.0,
    ) -> None:
        """Start the scheduler loop.  Must be called from a running event loop."""
        ...

    async def stop(self) -> None:
        """Stop the scheduler loop, waiting for an in-flight tick to finish."""
        ...

    def health(self) -> dict[str, Any]:
        """Return backend health status.

        Returns:
            dict with at least:
                - healthy: bool, whether backend is running
                - backend: str, backend name
                - tick_count: int, number of ticks executed
                - last_tick: str | None, ISO timestamp of last tick
        """
        ...


@dataclass
class BackendHealth:
    """Structured backend health response."""

    healthy: bool
    backend: str
    tick_count: int = 0
    last_tick: datetime | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "healthy": self.healthy,
            "backend": self.backend,
            "tick_count": self.tick_count,
            "last_tick": self.last_tick.isoformat() if self.last_tick else None,
            **self.extra,
        }
