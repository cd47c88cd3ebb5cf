"""The tag directory: store, mutation gate, confirmation, cleanup.

    from tagspine.directory import DirectoryService, Requester

    service = DirectoryService.from_settings(store, transport, bus, resolver)
    await service.add_tag(Requester("u1", "alice", "chan-1"), "Game", "main#1234")
"""

from .cleanup import CleanupReport, Reconciler
from .collaborators import (
    REACTION_ADDED,
    CachedIdentityResolver,
    ChatTransport,
    IdentityResolver,
    MessageRef,
    RoleManager,
    reaction_added,
)
from .confirmation import ConfirmationOutcome, ConfirmationSession, ConfirmationWorkflow
from .gate import ExclusiveSlot, MutationGate
from .models import (
    AddTagResult,
    Directory,
    Platform,
    PlatformSummary,
    RemoveTagResult,
    Requester,
    TagEntry,
    TagListing,
)
from .repository import DirectoryRepository
from .scheduler import CleanupScheduler, SchedulerStats
from .service import DirectoryService
from .store import DirectoryStore, validate_request

__all__ = [
    "REACTION_ADDED",
    "AddTagResult",
    "CachedIdentityResolver",
    "ChatTransport",
    "CleanupReport",
    "CleanupScheduler",
    "ConfirmationOutcome",
    "ConfirmationSession",
    "ConfirmationWorkflow",
    "Directory",
    "DirectoryRepository",
    "DirectoryService",
    "DirectoryStore",
    "ExclusiveSlot",
    "IdentityResolver",
    "MessageRef",
    "MutationGate",
    "Platform",
    "PlatformSummary",
    "Reconciler",
    "RemoveTagResult",
    "Requester",
    "RoleManager",
    "SchedulerStats",
    "TagEntry",
    "TagListing",
    "reaction_added",
    "validate_request",
]
