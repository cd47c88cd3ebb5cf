"""Event system for chat-platform events.

Why This Package Exists
-----------------------
Reactions, member updates and other chat events arrive on one shared
delivery path.  Most consumers only care about a narrow slice of them
for a short time: the confirmation workflow, for example, needs reaction
events on one prompt from one user for at most a few seconds.

The ``EventBus`` protocol decouples the transport adapter (which
publishes whatever the chat platform delivers) from those short-lived
listeners.  Subscriptions are explicit handles so they can be torn down
deterministically on every exit path.

Usage::

    from tagspine.core.events import Event
    from tagspine.core.events.memory import InMemoryEventBus

    bus = InMemoryEventBus()

    async def handler(event: Event):
        print(event.payload["emoji"])

    async with bus.listen("reaction.added", handler) as listener:
        await bus.publish(Event(event_type="reaction.added", source="discord",
                                payload={"emoji": "✅"}))

Modules
-------
memory      InMemoryEventBus -- single-process, listener handles
"""

from __future__ import annotations

import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Protocol, runtime_checkable

__all__ = [
    "Event",
    "EventBus",
    "EventHandler",
    "EventPredicate",
    "Listener",
]


# ── Event Model ──────────────────────────────────────────────────────────


@dataclass
class Event:
    """Event payload delivered through the bus.

    Attributes:
        event_type: Dot-separated type (e.g., ``reaction.added``)
        source: Origin system/component
        payload: Event-specific data
        timestamp: When the event occurred (UTC)
        event_id: Unique event identifier
    """

    event_type: str
    source: str
    payload: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def matches(self, pattern: str) -> bool:
        """Check if event type matches a pattern (supports wildcards).

        Examples:
            - ``reaction.*`` matches ``reaction.added``, ``reaction.removed``
            - ``*`` matches everything
            - ``reaction.added`` matches exactly ``reaction.added``
        """
        if pattern == "*":
            return True
        if pattern.endswith(".*"):
            prefix = pattern[:-2]
            return self.event_type.startswith(prefix + ".")
        return self.event_type == pattern


# ── Type Aliases ─────────────────────────────────────────────────────────

EventHandler = Callable[[Event], Awaitable[None]]
EventPredicate = Callable[[Event], bool]


# ── EventBus Protocol ────────────────────────────────────────────────────


@runtime_checkable
class EventBus(Protocol):
    """Protocol for event bus implementations."""

    async def publish(self, event: Event) -> None:
        """Deliver an event to every matching subscriber."""
        ...

    async def subscribe(
        self,
        event_type: str,
        handler: EventHandler,
        *,
        predicate: EventPredicate | None = None,
    ) -> str:
        """Subscribe to events matching a pattern and optional predicate.

        Returns:
            Subscription ID for later unsubscription
        """
        ...

    async def unsubscribe(self, subscription_id: str) -> None:
        """Remove a subscription.  Unknown or already-removed IDs are ignored."""
        ...

    async def close(self) -> None:
        ...


# ── Scoped Subscription Handle ───────────────────────────────────────────


class Listener:
    """Scoped subscription handle over any :class:`EventBus`.

    Subscribes on :meth:`open` (or ``async with`` entry) and unsubscribes
    exactly once, however many times :meth:`close` is called.

    Example::

        async with Listener(bus, "reaction.added", on_reaction, predicate=is_mine):
            await asyncio.sleep(5)
        # unsubscribed here, even on error or cancellation
    """

    def __init__(
        self,
        bus: EventBus,
        event_type: str,
        handler: EventHandler,
        predicate: EventPredicate | None = None,
    ) -> None:
        self._bus = bus
        self._event_type = event_type
        self._handler = handler
        self._predicate = predicate
        self._subscription_id: str | None = None
        self._closed = False

    async def open(self) -> Listener:
        if self._subscription_id is None and not self._closed:
            self._subscription_id = await self._bus.subscribe(
                self._event_type, self._handler, predicate=self._predicate
            )
        return self

    async def close(self) -> bool:
        """Deregister the subscription.

        Returns:
            True if this call removed the subscription, False if it had
            already been closed (or was never opened).
        """
        if self._closed:
            return False
        self._closed = True
        if self._subscription_id is None:
            return False
        await self._bus.unsubscribe(self._subscription_id)
        return True

    @property
    def active(self) -> bool:
        return self._subscription_id is not None and not self._closed

    @property
    def subscription_id(self) -> str | None:
        return self._subscription_id

    async def __aenter__(self) -> Listener:
        return await self.open()

    async def __aexit__(self, *args) -> None:
        await self.close()
