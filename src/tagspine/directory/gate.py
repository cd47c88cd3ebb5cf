"""Mutation Gate: the only legitimate path to mutate the directory.

Three independent locks::

    ┌────────────────────────────────────────────────────────────────┐
    │  table lock   asyncio.Lock     load → mutate → save, blocking   │
    │  create slot  ExclusiveSlot    one add/create at a time, fail   │
    │                                fast with CreateBusyError        │
    │  clean slot   ExclusiveSlot    one cleanup pass at a time, fail │
    │                                fast with CleanBusyError         │
    └────────────────────────────────────────────────────────────────┘

The slots never queue: a queued second add could let its requester
answer the first requester's confirmation prompt.  Slots are held for a
whole operation (including the confirmation wait) and released exactly
once on every exit path.

All methods must be called from the event loop thread.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterator
from contextlib import contextmanager

from tagspine.core.errors import BusyError, CleanBusyError, CreateBusyError


class ExclusiveSlot:
    """Capacity-1, non-blocking exclusivity slot.

    Example:
        >>> slot = ExclusiveSlot("create", CreateBusyError)
        >>> if slot.try_acquire():
        ...     try:
        ...         pass  # exclusive work
        ...     finally:
        ...         slot.release()
        ... else:
        ...     print("busy")
    """

    def __init__(self, name: str, busy_error: type[BusyError] = BusyError) -> None:
        self.name = name
        self._busy_error = busy_error
        self._held = False

    def try_acquire(self) -> bool:
        """Take the slot if free.  Never waits."""
        if self._held:
            return False
        self._held = True
        return True

    def release(self) -> bool:
        """Free the slot.  Returns False if it was not held."""
        if not self._held:
            return False
        self._held = False
        return True

    @property
    def held(self) -> bool:
        return self._held

    @contextmanager
    def hold(self) -> Iterator[None]:
        """Hold the slot for the ``with`` body or raise the slot's busy error."""
        if not self.try_acquire():
            raise self._busy_error()
        try:
            yield
        finally:
            self.release()

    def __repr__(self) -> str:
        return f"ExclusiveSlot({self.name!r}, held={self._held})"


class MutationGate:
    """Table lock plus the create and clean exclusivity slots."""

    def __init__(self) -> None:
        self.table_lock = asyncio.Lock()
        self.create_slot = ExclusiveSlot("create", CreateBusyError)
        self.clean_slot = ExclusiveSlot("clean", CleanBusyError)

    def mutation(self) -> asyncio.Lock:
        """``async with gate.mutation():`` around every read-modify-write."""
        return self.table_lock

    def creating(self):
        """``with gate.creating():`` for the whole add/create request."""
        return self.create_slot.hold()

    def cleaning(self):
        """``with gate.cleaning():`` for the whole reconciliation pass."""
        return self.clean_slot.hold()

    @property
    def locked(self) -> bool:
        return self.table_lock.locked()
