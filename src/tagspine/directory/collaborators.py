"""
External collaborator contracts.

The directory core talks to the chat platform only through these
protocols.  A bot adapter implements them over its chat library; tests
implement them with in-process fakes.

Contracts:
    ChatTransport     send_message / add_reaction / remove_all_reactions
    RoleManager       delete_role (best-effort, failures swallowed)
    IdentityResolver  resolve(owner_id) → display name | None (unresolvable)

Reaction events arrive on the shared event bus as ``reaction.added``
events built by :func:`reaction_added`.

Identity resolution is two-tier (fast local cache, then authoritative
fetch); :class:`CachedIdentityResolver` presents both tiers as one call.

Tags:
    tagspine, protocols, transport, identity, collaborators

Doc-Types:
    api-reference
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from tagspine.core.cache import CacheBackend, InMemoryCache
from tagspine.core.errors import CollaboratorError, TagSpineError
from tagspine.core.events import Event
from tagspine.core.logging import get_logger
from tagspine.core.settings import TagSpineSettings, get_settings

logger = get_logger(__name__)

REACTION_ADDED = "reaction.added"


@dataclass(frozen=True)
class MessageRef:
    """Identity of a message the bot posted."""

    channel_id: str
    message_id: str


def reaction_added(message_id: str, user_id: str, emoji: str, *, source: str = "chat") -> Event:
    """Build the bus event for a reaction added to a message."""
    return Event(
        event_type=REACTION_ADDED,
        source=source,
        payload={"message_id": message_id, "user_id": user_id, "emoji": emoji},
    )


# ── Protocols ────────────────────────────────────────────────────────────


@runtime_checkable
class ChatTransport(Protocol):
    async def send_message(self, channel_id: str, text: str) -> MessageRef:
        ...

    async def add_reaction(self, message: MessageRef, emoji: str) -> None:
        ...

    async def remove_all_reactions(self, message: MessageRef) -> None:
        ...


@runtime_checkable
class RoleManager(Protocol):
    async def delete_role(self, role_ref: str) -> None:
        ...


@runtime_checkable
class IdentityResolver(Protocol):
    async def resolve(self, owner_id: str) -> str | None:
        """Current display name, or ``None`` if the owner is definitively gone.

        Raises:
            CollaboratorError: the lookup itself failed (transient)
        """
        ...


# ── Two-tier identity resolution ─────────────────────────────────────────


class CachedIdentityResolver:
    """Local cache in front of an authoritative resolver.

    Positive answers are cached for ``ttl_seconds``.  Unresolvable answers
    are never cached, and failures of the authoritative fetch surface as
    :class:`CollaboratorError`.

    Example:
        >>> resolver = CachedIdentityResolver(guild_member_lookup, ttl_seconds=300)
        >>> await resolver.resolve("1234")
        'alice'
    """

    def __init__(
        self,
        fetch: IdentityResolver,
        *,
        cache: CacheBackend | None = None,
        ttl_seconds: int = 300,
    ) -> None:
        self._fetch = fetch
        self._ttl = ttl_seconds
        self._cache = cache if cache is not None else InMemoryCache(default_ttl_seconds=ttl_seconds)

    @classmethod
    def from_settings(
        cls,
        fetch: IdentityResolver,
        settings: TagSpineSettings | None = None,
        *,
        cache: CacheBackend | None = None,
    ) -> CachedIdentityResolver:
        settings = settings or get_settings()
        return cls(fetch, cache=cache, ttl_seconds=settings.identity_cache_ttl_seconds)

    @property
    def ttl_seconds(self) -> int:
        return self._ttl

    async def resolve(self, owner_id: str) -> str | None:
        cached = self._cache.get(owner_id)
        if cached is not None:
            return cached

        try:
            name = await self._fetch.resolve(owner_id)
        except TagSpineError:
            raise
        except Exception as e:
            raise CollaboratorError("identity lookup failed", cause=e).with_context(owner_id=owner_id) from e

        if name is not None:
            self._cache.set(owner_id, name, ttl_seconds=self._ttl)
        return name

    def forget(self, owner_id: str) -> None:
        self._cache.delete(owner_id)


# ── Best-effort side effects ─────────────────────────────────────────────


async def delete_roles_best_effort(roles: RoleManager | None, role_refs: Iterable[str | None]) -> None:
    """Delete platform roles, logging and swallowing every failure.

    A missing role is not a correctness problem for the directory.
    """
    if roles is None:
        return
    for role_ref in role_refs:
        if not role_ref:
            continue
        try:
            await roles.delete_role(role_ref)
        except Exception as e:
            logger.warning("role_delete_failed", role_ref=role_ref, error=str(e))
