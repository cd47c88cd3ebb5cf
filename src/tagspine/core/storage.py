"""
Key/value persistence contract (SYNC-ONLY).

The directory is persisted as one value under one key.  This module
defines the minimal get/set-by-key contract the directory repository
needs and two backends for it.

Calls block.  The directory service and the reconciler call the store from
coroutines while holding the table lock, so a SQLite save stalls the event
loop for its duration.  With one small value per save that is a few
milliseconds; a backend with slow I/O should be wrapped with
``asyncio.to_thread`` at the repository, not here.

Architecture:
    ::

        KeyValueStore (Protocol)
        ├── InMemoryKeyValueStore  # tests, ephemeral bots
        └── SqliteKeyValueStore    # single-file persistence

        API: get(key) → str | None
             set(key, value)        (atomic: one UPSERT + commit)
             delete(key)

Usage::

    from tagspine.core.storage import SqliteKeyValueStore

    store = SqliteKeyValueStore("data/tagspine.db")
    store.set("fulltags", '{"platforms": {}}')
    store.get("fulltags")

Tags:
    tagspine, storage, sqlite, key-value, persistence
"""

from __future__ import annotations

import sqlite3
from datetime import UTC, datetime
from pathlib import Path
from typing import Protocol, runtime_checkable

_SCHEMA = """
CREATE TABLE IF NOT EXISTS kv_store (
    key TEXT NOT NULL PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT NOT NULL
)
"""


@runtime_checkable
class KeyValueStore(Protocol):
    """Minimal persistence contract used by the directory repository."""

    def get(self, key: str) -> str | None:
        """Return the stored value, or ``None`` if the key is absent."""
        ...

    def set(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``, replacing any previous value atomically."""
        ...

    def delete(self, key: str) -> None:
        ...


class InMemoryKeyValueStore:
    """Dict-backed store.  Counts writes so tests can assert on them."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}
        self.write_count = 0

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value
        self.write_count += 1

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class SqliteKeyValueStore:
    """SQLite-backed store with a single ``kv_store`` table.

    Each ``set`` is one ``INSERT ... ON CONFLICT DO UPDATE`` followed by a
    commit, so a reader never observes a half-written value.
    """

    def __init__(self, path: str | Path = ":memory:") -> None:
        path = str(path)
        if path != ":memory:":
            Path(path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(path, check_same_thread=False)
        self._conn.execute(_SCHEMA)
        self._conn.commit()

    def get(self, key: str) -> str | None:
        cursor = self._conn.execute("SELECT value FROM kv_store WHERE key = ?", (key,))
        row = cursor.fetchone()
        return row[0] if row else None

    def set(self, key: str, value: str) -> None:
        now = datetime.now(UTC).isoformat()
        with self._conn:
            self._conn.execute(
                """
                INSERT INTO kv_store (key, value, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value,
                                               updated_at = excluded.updated_at
                """,
                (key, value, now),
            )

    def delete(self, key: str) -> None:
        with self._conn:
            self._conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))

    def close(self) -> None:
        self._conn.close()

    def __repr__(self) -> str:
        return f"SqliteKeyValueStore({self._conn!r})"


__all__ = ["InMemoryKeyValueStore", "KeyValueStore", "SqliteKeyValueStore"]
