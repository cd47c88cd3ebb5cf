"""Core primitives for tagspine: errors, logging, settings, cache, storage, events, scheduling."""

from tagspine.core.errors import (
    BusyError,
    CollaboratorError,
    ConfirmationAborted,
    NotFoundError,
    TagSpineError,
    ValidationError,
)
from tagspine.core.logging import configure_logging, get_logger
from tagspine.core.settings import TagSpineSettings, get_settings

__all__ = [
    "BusyError",
    "CollaboratorError",
    "ConfirmationAborted",
    "NotFoundError",
    "TagSpineError",
    "TagSpineSettings",
    "ValidationError",
    "configure_logging",
    "get_logger",
    "get_settings",
]
