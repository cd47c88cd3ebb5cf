"""Tests for DirectoryRepository load/save."""

import pytest

from conftest import make_directory
from tagspine.core.errors import NoDirectoryError, StorageError
from tagspine.core.storage import InMemoryKeyValueStore, SqliteKeyValueStore
from tagspine.directory.models import Directory
from tagspine.directory.repository import DirectoryRepository


class BrokenStore:
    def get(self, key):
        raise OSError("disk unavailable")

    def set(self, key, value):
        raise OSError("disk full")

    def delete(self, key):
        pass


class TestDirectoryRepository:
    def test_load_missing_raises(self):
        repo = DirectoryRepository(InMemoryKeyValueStore())
        with pytest.raises(NoDirectoryError):
            repo.load()
        assert repo.load_or_empty() == Directory()
        assert not repo.exists()

    def test_save_and_load(self):
        repo = DirectoryRepository(InMemoryKeyValueStore())
        directory = make_directory(Game={"U1": "main#1234"})
        repo.save(directory)

        loaded = repo.load()
        assert loaded == directory
        assert loaded.platforms["Game"].users["U1"].ping_opt_in is True

    def test_saved_under_configured_key(self):
        kv = InMemoryKeyValueStore()
        DirectoryRepository(kv, key="fulltags").save(Directory())
        assert kv.get("fulltags") is not None

    def test_sqlite_round_trip(self, tmp_path):
        kv = SqliteKeyValueStore(tmp_path / "tags.db")
        DirectoryRepository(kv).save(make_directory(Game={"U1": "a"}))
        kv.close()

        kv = SqliteKeyValueStore(tmp_path / "tags.db")
        assert DirectoryRepository(kv).load().platforms["Game"].users["U1"].tag == "a"
        kv.close()

    def test_corrupt_value(self):
        kv = InMemoryKeyValueStore()
        kv.set("fulltags", "{not json")
        with pytest.raises(StorageError, match="corrupt"):
            DirectoryRepository(kv).load()

    def test_backend_failures_wrapped(self):
        repo = DirectoryRepository(BrokenStore())
        with pytest.raises(StorageError) as exc:
            repo.load()
        assert isinstance(exc.value.__cause__, OSError)
        assert exc.value.context.metadata["key"] == "fulltags"

        with pytest.raises(StorageError):
            repo.save(Directory())
