"""
Structured error types for tagspine.

Every failure the directory core can report is a ``TagSpineError``.  Each
error carries a category, a retryable flag, structured context and an
optional chained cause, so chat-command handlers can turn it into a
user-facing message and log it without guessing at what went wrong.

Manifesto:
    - **Typed hierarchy:** one subclass per failure kind the caller must
      distinguish (validation, not found, busy, aborted, collaborator)
    - **No silent retries:** the core never retries; ``retryable`` is a
      hint for the caller only
    - **Rich context:** errors carry platform / owner metadata for logging
    - **Error chaining:** collaborator failures keep the original exception

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────────┐
        │                       TagSpineError                              │
        │          (category, retryable, context, cause)                   │
        ├─────────────────────────────────────────────────────────────────┤
        │  ValidationError        NotFoundError         BusyError          │
        │  (VALIDATION)           (NOT_FOUND)           (CONCURRENCY)      │
        │     │                      │                     │               │
        │  PlatformTooLongError   NoDirectoryError      CreateBusyError    │
        │  TagTooLongError        PlatformNotFoundError CleanBusyError     │
        │  EmptyTagError          TagNotFoundError                         │
        │                         NoUserTagsError                          │
        │                                                                  │
        │  ConfirmationAborted    CollaboratorError                        │
        │  (WORKFLOW)             (COLLABORATOR, retryable)                │
        │                            │                                     │
        │                         StorageError (STORAGE)                   │
        └─────────────────────────────────────────────────────────────────┘

Examples:
    >>> error = PlatformNotFoundError().with_context(platform="Game")
    >>> error.context.platform
    'Game'
    >>> error.to_dict()["category"]
    'NOT_FOUND'

Tags:
    error-handling, exception-hierarchy, error-context, tagspine

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories for classification and routing."""

    VALIDATION = "VALIDATION"        # Text too long, empty tag
    NOT_FOUND = "NOT_FOUND"          # No directory, unknown platform/tag
    CONCURRENCY = "CONCURRENCY"      # Create or clean slot already held
    WORKFLOW = "WORKFLOW"            # Confirmation denied or timed out
    COLLABORATOR = "COLLABORATOR"    # Transport / identity resolver failure
    STORAGE = "STORAGE"              # Directory load/save failure
    INTERNAL = "INTERNAL"            # Bugs, unexpected state


@dataclass
class ErrorContext:
    """Structured metadata attached to an error.

    Attributes:
        platform: Platform name the operation targeted
        owner_id: User the operation was performed for
        operation: Name of the directory operation
        metadata: Additional key-value pairs
    """

    platform: str | None = None
    owner_id: str | None = None
    operation: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["platform", "owner_id", "operation"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class TagSpineError(Exception):
    """
    Base exception for all tagspine errors.

    Subclasses set ``default_message``, ``default_category`` and
    ``default_retryable`` so the common cases can be raised without
    arguments, e.g. ``raise PlatformNotFoundError()``.

    Examples:
        >>> error = TagSpineError("Something went wrong")
        >>> error.category
        <ErrorCategory.INTERNAL: 'INTERNAL'>
        >>> error.retryable
        False
    """

    default_message: str = "tagspine error"
    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str | None = None,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        message = message or self.default_message
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> TagSpineError:
        """
        Add context to this error (fluent API).

        Usage:
            raise PlatformNotFoundError().with_context(platform="Game")
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# VALIDATION ERRORS (rejected before any lock is taken)
# =============================================================================


class ValidationError(TagSpineError):
    """Request text failed a length or presence check."""

    default_message = "invalid request"
    default_category = ErrorCategory.VALIDATION


class PlatformTooLongError(ValidationError):
    """Platform name exceeds the configured limit."""

    def __init__(self, limit: int, **kwargs: Any):
        super().__init__(
            f"your platform is too long, keep it under {limit} characters", **kwargs
        )
        self.limit = limit


class TagTooLongError(ValidationError):
    """Tag text exceeds the configured limit."""

    def __init__(self, limit: int, **kwargs: Any):
        super().__init__(f"your tag is too long, keep it under {limit} characters", **kwargs)
        self.limit = limit


class EmptyTagError(ValidationError):
    default_message = "please provide a tag"


# =============================================================================
# NOT FOUND ERRORS (read-only, no state change)
# =============================================================================


class NotFoundError(TagSpineError):
    """Something the caller asked about does not exist."""

    default_message = "not found"
    default_category = ErrorCategory.NOT_FOUND


class NoDirectoryError(NotFoundError):
    default_message = "no tags found in database, add a tag to start it"


class PlatformNotFoundError(NotFoundError):
    default_message = "no platform of that name"


class TagNotFoundError(NotFoundError):
    default_message = "you don't have a tag on this platform"


class NoUserTagsError(NotFoundError):
    default_message = "no tags found for that user"


# =============================================================================
# BUSY ERRORS (exclusivity slot already held)
# =============================================================================


class BusyError(TagSpineError):
    """An exclusive operation is already in progress.

    Callers should ask the user to try again later; the core never queues
    or retries.
    """

    default_message = "busy, try again later"
    default_category = ErrorCategory.CONCURRENCY
    default_retryable = True


class CreateBusyError(BusyError):
    default_message = "please do not try add anything while I'm waiting"


class CleanBusyError(BusyError):
    default_message = "already cleaning, please be patient"


# =============================================================================
# WORKFLOW OUTCOMES
# =============================================================================


class ConfirmationAborted(TagSpineError):
    """Platform creation was denied or timed out.

    Not a system fault: a normal negative outcome of the confirmation
    workflow.  The directory is unchanged.
    """

    default_message = "Aborting platform creation."
    default_category = ErrorCategory.WORKFLOW

    def __init__(self, outcome: Enum, **kwargs: Any):
        super().__init__(**kwargs)
        self.outcome = outcome

    @property
    def timed_out(self) -> bool:
        return self.outcome.value == "timed_out"


# =============================================================================
# COLLABORATOR ERRORS (propagated unmodified, never retried by the core)
# =============================================================================


class CollaboratorError(TagSpineError):
    """Transport, identity resolver or storage failure."""

    default_message = "external collaborator failed"
    default_category = ErrorCategory.COLLABORATOR
    default_retryable = True


class StorageError(CollaboratorError):
    default_message = "directory storage failed"
    default_category = ErrorCategory.STORAGE


__all__ = [
    "BusyError",
    "CleanBusyError",
    "CollaboratorError",
    "ConfirmationAborted",
    "CreateBusyError",
    "EmptyTagError",
    "ErrorCategory",
    "ErrorContext",
    "NoDirectoryError",
    "NoUserTagsError",
    "NotFoundError",
    "PlatformNotFoundError",
    "PlatformTooLongError",
    "StorageError",
    "TagNotFoundError",
    "TagSpineError",
    "TagTooLongError",
    "ValidationError",
]
