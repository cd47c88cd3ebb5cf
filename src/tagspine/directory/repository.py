"""Loads and saves the whole directory under one storage key."""

from __future__ import annotations

from pydantic import ValidationError as PydanticValidationError

from tagspine.core.errors import NoDirectoryError, StorageError, TagSpineError
from tagspine.core.logging import get_logger
from tagspine.core.storage import KeyValueStore

from .models import Directory

logger = get_logger(__name__)


class DirectoryRepository:
    """Get/set of the :class:`Directory` value through a :class:`KeyValueStore`.

    Example:
        >>> repo = DirectoryRepository(InMemoryKeyValueStore(), key="fulltags")
        >>> repo.load_or_empty()
        Directory(platforms={})
    """

    def __init__(self, store: KeyValueStore, key: str = "fulltags") -> None:
        self.store = store
        self.key = key

    def load(self) -> Directory:
        """Load the directory.

        Raises:
            NoDirectoryError: Nothing has been stored under the key yet
            StorageError: The backend failed or the stored value is corrupt
        """
        try:
            raw = self.store.get(self.key)
        except TagSpineError:
            raise
        except Exception as e:
            raise StorageError("failed to load directory", cause=e).with_context(key=self.key) from e

        if raw is None:
            raise NoDirectoryError()

        try:
            return Directory.model_validate_json(raw)
        except PydanticValidationError as e:
            raise StorageError("stored directory is corrupt", cause=e).with_context(key=self.key) from e

    def load_or_empty(self) -> Directory:
        try:
            return self.load()
        except NoDirectoryError:
            return Directory()

    def save(self, directory: Directory) -> None:
        """Persist the directory as one value (one atomic backend write)."""
        try:
            self.store.set(self.key, directory.model_dump_json())
        except TagSpineError:
            raise
        except Exception as e:
            raise StorageError("failed to save directory", cause=e).with_context(key=self.key) from e
        logger.debug("directory_saved", key=self.key, platforms=len(directory.platforms))

    def exists(self) -> bool:
        return self.store.get(self.key) is not None
