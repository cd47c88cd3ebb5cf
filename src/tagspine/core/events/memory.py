"""
In-memory event bus implementation.

Manifesto:
    A single bot process needs a zero-dependency event bus that hands chat
    events to whoever is listening right now, and lets short-lived
    listeners detach deterministically.

Events are delivered immediately to matching handlers and not persisted.
Listener handles make deregistration idempotent: ``close()`` may be
called from every exit path of a workflow and only the first call
unsubscribes.

Tags:
    tagspine, events, in-memory, asyncio, testing, single-node

Doc-Types:
    api-reference
"""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass

from tagspine.core.events import Event, EventHandler, EventPredicate, Listener
from tagspine.core.logging import get_logger

__all__ = ["InMemoryEventBus", "Listener"]

logger = get_logger(__name__)


@dataclass
class Subscription:
    """Internal subscription record."""

    id: str
    pattern: str
    handler: EventHandler
    predicate: EventPredicate | None = None

    def accepts(self, event: Event) -> bool:
        if not event.matches(self.pattern):
            return False
        return self.predicate is None or self.predicate(event)


class InMemoryEventBus:
    """In-process event bus for single-node deployments.

    Example::

        bus = InMemoryEventBus()

        async def log_event(event: Event):
            print(f"Event: {event.event_type}")

        await bus.subscribe("*", log_event)
        await bus.publish(Event(event_type="reaction.added", source="discord"))
        # Output: Event: reaction.added
    """

    def __init__(self) -> None:
        self._subscriptions: dict[str, Subscription] = {}
        self._lock = asyncio.Lock()
        self._closed = False

    async def publish(self, event: Event) -> None:
        """Publish an event to all matching subscribers.

        Handlers are called concurrently using asyncio.gather.
        Exceptions in handlers are logged but don't stop delivery.
        """
        if self._closed:
            return

        async with self._lock:
            handlers_to_call = [
                (sub.id, sub.handler)
                for sub in self._subscriptions.values()
                if sub.accepts(event)
            ]

        if not handlers_to_call:
            return

        async def safe_call(sub_id: str, handler: EventHandler) -> None:
            try:
                await handler(event)
            except Exception as e:
                logger.warning(
                    "event_handler_error",
                    subscription_id=sub_id,
                    event_type=event.event_type,
                    error=str(e),
                )

        await asyncio.gather(
            *[safe_call(sub_id, handler) for sub_id, handler in handlers_to_call],
            return_exceptions=True,
        )

    async def subscribe(
        self,
        event_type: str,
        handler: EventHandler,
        *,
        predicate: EventPredicate | None = None,
    ) -> str:
        """Subscribe to events matching a pattern.

        Args:
            event_type: Pattern to match (supports ``*`` and ``type.*``)
            handler: Async callback for matching events
            predicate: Optional extra filter evaluated per event

        Returns:
            Subscription ID
        """
        sub_id = f"sub_{uuid.uuid4().hex[:12]}"

        async with self._lock:
            self._subscriptions[sub_id] = Subscription(
                id=sub_id,
                pattern=event_type,
                handler=handler,
                predicate=predicate,
            )

        return sub_id

    async def unsubscribe(self, subscription_id: str) -> None:
        """Remove a subscription."""
        async with self._lock:
            self._subscriptions.pop(subscription_id, None)

    def listen(
        self,
        event_type: str,
        handler: EventHandler,
        *,
        predicate: EventPredicate | None = None,
    ) -> Listener:
        """Create a scoped :class:`Listener` (subscribed on open / ``async with``)."""
        return Listener(self, event_type, handler, predicate)

    async def close(self) -> None:
        """Mark bus as closed and clear subscriptions."""
        self._closed = True
        async with self._lock:
            self._subscriptions.clear()

    @property
    def subscription_count(self) -> int:
        """Number of active subscriptions."""
        return len(self._subscriptions)
