"""Directory Store: pure data operations over a :class:`Directory`.

No I/O happens here: callers load the directory, hand it to a
``DirectoryStore``, mutate through it while holding the gate's table lock,
then persist.  Every mutation keeps the invariant that a platform with no
users is removed rather than retained.

Side effects the store cannot perform itself (deleting a platform's role)
are reported back through :class:`Removal` so the caller can schedule them.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

from tagspine.core.errors import (
    EmptyTagError,
    PlatformNotFoundError,
    PlatformTooLongError,
    TagNotFoundError,
    TagTooLongError,
    ValidationError,
)

from .models import Directory, Platform, PlatformSummary, TagEntry, TagListing

DEFAULT_TAG_LIMIT = 64
DEFAULT_PLATFORM_LIMIT = 20


def validate_request(
    platform: str,
    tag: str | None = None,
    *,
    tag_limit: int = DEFAULT_TAG_LIMIT,
    platform_limit: int = DEFAULT_PLATFORM_LIMIT,
) -> None:
    """Reject over-long or empty text before any lock is taken."""
    if tag is not None:
        if not tag.strip():
            raise EmptyTagError()
        if len(tag) > tag_limit:
            raise TagTooLongError(tag_limit)
    if not platform:
        raise ValidationError("please provide a platform")
    if len(platform) > platform_limit:
        raise PlatformTooLongError(platform_limit).with_context(platform=platform[:platform_limit])


@dataclass(frozen=True)
class Removal:
    """Outcome of removing a user's entry."""

    entry: TagEntry
    platform_removed: bool = False
    role_ref: str | None = None


class DirectoryStore:
    """Invariant-preserving operations on one :class:`Directory` value."""

    def __init__(self, directory: Directory | None = None) -> None:
        self.directory = directory if directory is not None else Directory()

    @property
    def platforms(self) -> dict[str, Platform]:
        return self.directory.platforms

    # === Platforms ===

    def get(self, name: str) -> Platform:
        try:
            return self.platforms[name]
        except KeyError:
            raise PlatformNotFoundError().with_context(platform=name) from None

    def has(self, name: str) -> bool:
        return name in self.platforms

    def put(self, platform: Platform) -> None:
        """Insert or replace a platform.  Caller holds the table lock."""
        if not platform.users:
            raise ValueError(f"refusing to store platform {platform.name!r} with no users")
        self.platforms[platform.name] = platform

    def remove_platform(self, name: str) -> Platform:
        platform = self.get(name)
        del self.platforms[name]
        return platform

    # === Entries ===

    def get_entry(self, platform: str, owner_id: str) -> TagEntry:
        plt = self.get(platform)
        try:
            return plt.users[owner_id]
        except KeyError:
            raise TagNotFoundError().with_context(platform=platform, owner_id=owner_id) from None

    def upsert_entry(self, platform: str, owner_id: str, tag: str, display_name: str = "") -> TagEntry:
        """Add or re-add a tag on an existing platform.

        A re-add by the same owner updates the tag in place and keeps the
        owner's ping preference.
        """
        plt = self.get(platform)
        entry = plt.users.get(owner_id)
        if entry is None:
            entry = TagEntry(owner_id=owner_id, display_name=display_name, tag=tag, platform=platform)
            plt.users[owner_id] = entry
        else:
            entry.tag = tag
            if display_name:
                entry.display_name = display_name
        return entry

    def create_platform(self, name: str, first: TagEntry) -> Platform:
        """Create a platform together with its first entry."""
        platform = Platform(name=name, users={first.owner_id: first})
        self.put(platform)
        return platform

    def remove_user(self, platform: str, owner_id: str) -> Removal:
        """Remove an entry, cascading to the platform if it becomes empty."""
        plt = self.get(platform)
        entry = plt.users.pop(owner_id, None)
        if entry is None:
            raise TagNotFoundError().with_context(platform=platform, owner_id=owner_id)

        if plt.users:
            return Removal(entry=entry)

        del self.platforms[platform]
        return Removal(entry=entry, platform_removed=True, role_ref=plt.role_ref)

    def set_ping(self, platform: str, owner_id: str, enabled: bool) -> TagEntry:
        entry = self.get_entry(platform, owner_id)
        entry.ping_opt_in = enabled
        return entry

    def disable_all_pings(self, owner_id: str) -> list[str]:
        """Opt ``owner_id`` out of pings everywhere; returns the platforms touched."""
        touched = []
        for name, plt in self.platforms.items():
            entry = plt.users.get(owner_id)
            if entry is not None:
                entry.ping_opt_in = False
                touched.append(name)
        return sorted(touched)

    # === Reads ===

    def list_by_owner(self, owner_id: str) -> list[TagEntry]:
        """Every tag ``owner_id`` holds, ordered by platform name."""
        entries = [plt.users[owner_id] for plt in self.platforms.values() if owner_id in plt.users]
        return sorted(entries, key=lambda e: e.platform)

    def list_by_platform(
        self, platform: str, names: Mapping[str, str | None] | None = None
    ) -> list[TagListing]:
        """Listing rows for ``platform`` sorted by display name.

        Args:
            platform: Platform to list
            names: Freshly resolved display names by owner ID.  ``None``
                values mark owners that could not be resolved; owners
                missing from the mapping keep their cached name.

        Unresolved rows sort last.  Nothing in the store is modified.
        """
        names = names or {}
        rows = []
        for owner_id, entry in self.get(platform).users.items():
            resolved = True
            display_name = entry.display_name
            if owner_id in names:
                fresh = names[owner_id]
                if fresh is None:
                    resolved = False
                else:
                    display_name = fresh
            rows.append(
                TagListing(
                    owner_id=owner_id,
                    display_name=display_name,
                    tag=entry.tag,
                    ping_opt_in=entry.ping_opt_in,
                    resolved=resolved,
                )
            )
        return sorted(rows, key=lambda r: (not r.resolved, r.display_name))

    def list_platforms(self) -> list[PlatformSummary]:
        summaries = [PlatformSummary(name=p.name, tag_count=len(p.users)) for p in self.platforms.values()]
        return sorted(summaries, key=lambda s: s.name.lower())

    def ping_targets(self, platform: str) -> list[str]:
        """Owner IDs on ``platform`` that opted in to pings."""
        return [owner_id for owner_id, e in self.get(platform).users.items() if e.ping_opt_in]

    def violations(self) -> list[str]:
        """Describe every broken invariant (empty platforms, orphaned entries)."""
        problems = []
        for key, plt in self.platforms.items():
            if not plt.users:
                problems.append(f"platform {key!r} has no users")
            if key != plt.name:
                problems.append(f"platform {key!r} is stored under a different name {plt.name!r}")
            for owner_id, entry in plt.users.items():
                if entry.owner_id != owner_id or entry.platform != key:
                    problems.append(f"entry {owner_id!r} on {key!r} points elsewhere")
        return problems
