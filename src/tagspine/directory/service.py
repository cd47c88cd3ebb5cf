"""
DirectoryService: every directory operation a chat command can call.

Manifesto:
    Command handlers should not know about locks, slots, persistence or
    confirmation prompts.  They call one method and get back either a
    result or a typed :class:`~tagspine.core.errors.TagSpineError` that
    they turn into user-facing text.

Locking per operation::

    add_tag                create slot → table lock → (confirm if new) → save
    remove_tag             table lock → save → role delete (best-effort)
    set_ping_preference    table lock → save
    disable_all_pings      table lock → save
    force_remove_platform  table lock → save → role delete (best-effort)
    run_cleanup            clean slot → table lock → save once
    get_tag / list_*       no lock (listings are advisory)

Validation happens before any lock is taken.

Tags:
    tagspine, service, facade, directory, operations

Doc-Types:
    api-reference, architecture
"""

from __future__ import annotations

from tagspine.core.errors import ConfirmationAborted, NoUserTagsError
from tagspine.core.events import EventBus
from tagspine.core.logging import get_logger
from tagspine.core.settings import TagSpineSettings, get_settings
from tagspine.core.storage import KeyValueStore

from .cleanup import CleanupReport, Reconciler
from .collaborators import ChatTransport, IdentityResolver, RoleManager, delete_roles_best_effort
from .confirmation import ConfirmationOutcome, ConfirmationWorkflow
from .gate import MutationGate
from .models import (
    AddTagResult,
    Platform,
    PlatformSummary,
    RemoveTagResult,
    Requester,
    TagEntry,
    TagListing,
)
from .repository import DirectoryRepository
from .store import DirectoryStore, validate_request

logger = get_logger(__name__)


def remove_platform(repository: DirectoryRepository, platform: str) -> Platform:
    """Load, drop ``platform`` with all its tags, save.

    Takes no lock: callers either hold the table lock or own the store
    outright, as the offline CLI does.
    """
    store = DirectoryStore(repository.load())
    removed = store.remove_platform(platform)
    repository.save(store.directory)
    return removed


class DirectoryService:
    """The directory core behind one :class:`MutationGate`.

    Example:
        >>> service = DirectoryService(repository, workflow, resolver, roles=roles)
        >>> await service.add_tag(Requester("u1", "alice", "chan-1"), "Game", "main#1234")
        AddTagResult(entry=TagEntry(...), platform_created=True)
    """

    def __init__(
        self,
        repository: DirectoryRepository,
        confirmation: ConfirmationWorkflow,
        resolver: IdentityResolver,
        *,
        roles: RoleManager | None = None,
        gate: MutationGate | None = None,
        tag_limit: int = 64,
        platform_limit: int = 20,
    ) -> None:
        self.repository = repository
        self.confirmation = confirmation
        self.resolver = resolver
        self.roles = roles
        self.gate = gate or MutationGate()
        self.tag_limit = tag_limit
        self.platform_limit = platform_limit
        self.reconciler = Reconciler(repository, self.gate, resolver, roles)

    @classmethod
    def from_settings(
        cls,
        store: KeyValueStore,
        transport: ChatTransport,
        bus: EventBus,
        resolver: IdentityResolver,
        *,
        roles: RoleManager | None = None,
        settings: TagSpineSettings | None = None,
    ) -> DirectoryService:
        settings = settings or get_settings()
        workflow = ConfirmationWorkflow(
            transport,
            bus,
            timeout_seconds=settings.confirm_timeout_seconds,
            confirm_emoji=settings.confirm_emoji,
            deny_emoji=settings.deny_emoji,
        )
        return cls(
            DirectoryRepository(store, key=settings.storage_key),
            workflow,
            resolver,
            roles=roles,
            tag_limit=settings.tag_limit,
            platform_limit=settings.platform_limit,
        )

    def _validate(self, platform: str, tag: str | None = None) -> None:
        validate_request(platform, tag, tag_limit=self.tag_limit, platform_limit=self.platform_limit)

    # =========================================================================
    # Mutations
    # =========================================================================

    async def add_tag(self, requester: Requester, platform: str, tag: str) -> AddTagResult:
        """Add or replace ``requester``'s tag on ``platform``.

        A platform that does not exist yet is created only after the
        requester confirms the prompt.

        Raises:
            ValidationError: tag or platform text rejected
            CreateBusyError: another add is waiting on its confirmation
            ConfirmationAborted: the requester denied or the prompt timed out
        """
        self._validate(platform, tag)

        with self.gate.creating():
            async with self.gate.mutation():
                store = DirectoryStore(self.repository.load_or_empty())

                if store.has(platform):
                    entry = store.upsert_entry(platform, requester.user_id, tag, requester.display_name)
                    self.repository.save(store.directory)
                    logger.info("tag_added", platform=platform, owner_id=requester.user_id)
                    return AddTagResult(entry=entry)

                session = await self.confirmation.run(requester.channel_id, requester.user_id, platform)
                if session.outcome is not ConfirmationOutcome.CONFIRMED:
                    raise ConfirmationAborted(session.outcome).with_context(
                        platform=platform, owner_id=requester.user_id
                    )

                entry = TagEntry(
                    owner_id=requester.user_id,
                    display_name=requester.display_name,
                    tag=tag,
                    platform=platform,
                )
                store.create_platform(platform, entry)
                self.repository.save(store.directory)

        logger.info("platform_created", platform=platform, owner_id=requester.user_id)
        return AddTagResult(entry=entry, platform_created=True)

    async def remove_tag(self, owner_id: str, platform: str) -> RemoveTagResult:
        """Remove ``owner_id``'s tag, deleting the platform if it empties."""
        self._validate(platform)

        async with self.gate.mutation():
            store = DirectoryStore(self.repository.load())
            removal = store.remove_user(platform, owner_id)
            self.repository.save(store.directory)

        logger.info("tag_removed", platform=platform, owner_id=owner_id)
        if removal.platform_removed:
            logger.info("platform_removed", platform=platform, reason="empty")
            await delete_roles_best_effort(self.roles, [removal.role_ref])
        return RemoveTagResult(entry=removal.entry, platform_removed=removal.platform_removed)

    async def set_ping_preference(self, owner_id: str, platform: str, enabled: bool) -> TagEntry:
        self._validate(platform)

        async with self.gate.mutation():
            store = DirectoryStore(self.repository.load())
            entry = store.set_ping(platform, owner_id, enabled)
            self.repository.save(store.directory)

        logger.info("ping_preference_set", platform=platform, owner_id=owner_id, enabled=enabled)
        return entry

    async def disable_all_pings(self, owner_id: str) -> list[str]:
        """Opt ``owner_id`` out of pings on every platform they are on.

        Raises:
            NoUserTagsError: the owner has no tags anywhere
        """
        async with self.gate.mutation():
            store = DirectoryStore(self.repository.load())
            touched = store.disable_all_pings(owner_id)
            if not touched:
                raise NoUserTagsError().with_context(owner_id=owner_id)
            self.repository.save(store.directory)

        logger.info("pings_disabled", owner_id=owner_id, platforms=touched)
        return touched

    async def force_remove_platform(self, platform: str) -> Platform:
        """Moderator delete: remove a platform and all its tags, no confirmation."""
        self._validate(platform)

        async with self.gate.mutation():
            removed = remove_platform(self.repository, platform)

        logger.info("platform_removed", platform=platform, reason="force", tags=len(removed.users))
        await delete_roles_best_effort(self.roles, [removed.role_ref])
        return removed

    async def run_cleanup(self) -> CleanupReport:
        return await self.reconciler.run()

    # =========================================================================
    # Reads
    # =========================================================================

    def get_tag(self, platform: str, owner_id: str) -> TagEntry:
        store = DirectoryStore(self.repository.load())
        return store.get_entry(platform, owner_id)

    def list_by_owner(self, owner_id: str) -> list[TagEntry]:
        entries = DirectoryStore(self.repository.load()).list_by_owner(owner_id)
        if not entries:
            raise NoUserTagsError().with_context(owner_id=owner_id)
        return entries

    def list_platforms(self) -> list[PlatformSummary]:
        return DirectoryStore(self.repository.load()).list_platforms()

    def ping_targets(self, platform: str) -> list[str]:
        return DirectoryStore(self.repository.load()).ping_targets(platform)

    async def list_by_platform(self, platform: str) -> list[TagListing]:
        """Tags on ``platform`` with freshly resolved names.

        Owners that cannot be resolved right now are flagged and sorted
        last.  The stored directory is never modified here.
        """
        store = DirectoryStore(self.repository.load())
        names: dict[str, str | None] = {}
        for owner_id in store.get(platform).users:
            try:
                names[owner_id] = await self.resolver.resolve(owner_id)
            except Exception as e:
                logger.warning("identity_lookup_failed", owner_id=owner_id, error=str(e))
                names[owner_id] = None
        return store.list_by_platform(platform, names)
