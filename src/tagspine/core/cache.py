"""
Bounded in-memory cache with TTL expiry.

Used as the fast local tier of identity resolution: display names looked
up from the chat platform are kept for a short while so listings and
cleanup passes do not hammer the authoritative member fetch.

Architecture:
    ::

        CacheBackend (Protocol)
        └── InMemoryCache  # single-process, bounded LRU, lazy TTL

        API: get(key) → value | None
             set(key, value, ttl_seconds=None)
             delete(key)
             exists(key) → bool
             clear()

Examples:
    >>> from tagspine.core.cache import InMemoryCache
    >>> cache = InMemoryCache(max_size=1000, default_ttl_seconds=300)
    >>> cache.set("member:123", "alice")
    >>> cache.get("member:123")
    'alice'

Guardrails:
    ❌ DON'T: Cache without TTL (display names change)
    ✅ DO: Keep ``default_ttl_seconds`` short for identity data

Tags:
    cache, in-memory, ttl, lru, tagspine
"""

from __future__ import annotations

import time
from collections import OrderedDict
from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class CacheBackend(Protocol):
    """Protocol for cache implementations."""

    def get(self, key: str) -> Any | None:
        """Retrieve a value, or ``None`` if missing or expired."""
        ...

    def set(self, key: str, value: Any, *, ttl_seconds: int | None = None) -> None:
        """Store a value with optional TTL."""
        ...

    def delete(self, key: str) -> None:
        """Remove a key."""
        ...

    def exists(self, key: str) -> bool:
        """Check if key exists and is not expired."""
        ...

    def clear(self) -> None:
        """Remove all keys."""
        ...


class InMemoryCache:
    """Bounded in-memory cache with TTL support.

    Uses LRU eviction when ``max_size`` is reached. Not thread-safe; meant
    to be used from the event loop thread only.

    Attributes:
        max_size: Maximum number of keys before LRU eviction.
        default_ttl_seconds: Default TTL for keys (``None`` → no expiry).
    """

    def __init__(
        self,
        *,
        max_size: int = 10_000,
        default_ttl_seconds: int | None = 300,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._store: OrderedDict[str, tuple[Any, float | None]] = OrderedDict()
        self._max_size = max_size
        self._default_ttl = default_ttl_seconds
        self._clock = clock

    def get(self, key: str) -> Any | None:
        """Retrieve a value by key."""
        if not self.exists(key):
            return None

        self._store.move_to_end(key)
        return self._store[key][0]

    def set(self, key: str, value: Any, *, ttl_seconds: int | None = None) -> None:
        """Store a value with optional TTL."""
        ttl = ttl_seconds if ttl_seconds is not None else self._default_ttl
        expires_at = (self._clock() + ttl) if ttl else None

        # Evict LRU if at capacity
        if key not in self._store and len(self._store) >= self._max_size:
            self._store.popitem(last=False)

        self._store[key] = (value, expires_at)
        self._store.move_to_end(key)

    def delete(self, key: str) -> None:
        """Remove a key from the cache."""
        self._store.pop(key, None)

    def exists(self, key: str) -> bool:
        """Check if key exists and is not expired."""
        if key not in self._store:
            return False

        _, expires_at = self._store[key]
        if expires_at is not None and self._clock() > expires_at:
            self.delete(key)
            return False

        return True

    def clear(self) -> None:
        """Remove all keys."""
        self._store.clear()

    def size(self) -> int:
        """Return current number of cached keys."""
        return len(self._store)


__all__ = ["CacheBackend", "InMemoryCache"]
