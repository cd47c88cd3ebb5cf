"""Scheduling package for tagspine.

Timing backends that drive periodic work (the daily cleanup pass) from
the bot's event loop.

    from tagspine.core.scheduling import AsyncioSchedulerBackend

    backend = AsyncioSchedulerBackend()
    backend.start(tick, interval_seconds=3600)
    ...
    await backend.stop()

APSchedulerBackend is imported lazily via :func:`create_backend` because
it needs the optional ``[apscheduler]`` extra.
"""

from __future__ import annotations

from .asyncio_backend import AsyncioSchedulerBackend
from .protocol import BackendHealth, SchedulerBackend, TickCallback


def create_backend(name: str = "asyncio") -> SchedulerBackend:
    """Build a scheduler backend by name (``asyncio`` or ``apscheduler``)."""
    if name == "asyncio":
        return AsyncioSchedulerBackend()
    if name == "apscheduler":
        from .apscheduler_backend import APSchedulerBackend

        return APSchedulerBackend()
    raise ValueError(f"Unknown scheduler backend: {name}")


__all__ = [
    "AsyncioSchedulerBackend",
    "BackendHealth",
    "SchedulerBackend",
    "TickCallback",
    "create_backend",
]
