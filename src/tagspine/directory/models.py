"""Directory data model.

Manifesto:
    The directory is one value: a mapping of platform name to Platform,
    each holding the tags its users registered.  It is loaded and saved as
    a whole, so the models double as the persistence format (pydantic JSON).

Persisted:
    Directory ── platforms: {name → Platform}
    Platform  ── name, role_ref, users: {owner_id → TagEntry}
    TagEntry  ── owner_id, display_name (advisory), tag, platform, ping_opt_in

Views (never persisted):
    Requester, TagListing, PlatformSummary, AddTagResult, RemoveTagResult

Tags:
    tagspine, models, pydantic, dataclasses, directory

Doc-Types:
    api-reference, data-model
"""

from __future__ import annotations

from dataclasses import dataclass

from pydantic import BaseModel, Field

# ---------------------------------------------------------------------------
# Persisted models
# ---------------------------------------------------------------------------


class TagEntry(BaseModel):
    """One user's tag on one platform.

    ``display_name`` is a cache of the owner's name at the last refresh.
    It is advisory only; always re-resolve before showing it.
    """

    owner_id: str
    display_name: str = ""
    tag: str
    platform: str
    ping_opt_in: bool = True


class Platform(BaseModel):
    """A named context users register tags under.

    A platform with no users is not a valid persisted state.
    """

    name: str
    role_ref: str | None = None
    users: dict[str, TagEntry] = Field(default_factory=dict)


class Directory(BaseModel):
    """The whole directory: the unit of persistence."""

    platforms: dict[str, Platform] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Request / result views
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Requester:
    """Who is asking, and where to talk back to them."""

    user_id: str
    display_name: str = ""
    channel_id: str = ""


@dataclass(frozen=True)
class TagListing:
    """A tag as shown in a platform listing.

    ``resolved`` is False when the owner could not be resolved right now;
    such rows keep their last known name and sort last.
    """

    owner_id: str
    display_name: str
    tag: str
    ping_opt_in: bool
    resolved: bool = True


@dataclass(frozen=True)
class PlatformSummary:
    name: str
    tag_count: int


@dataclass(frozen=True)
class AddTagResult:
    entry: TagEntry
    platform_created: bool = False


@dataclass(frozen=True)
class RemoveTagResult:
    entry: TagEntry
    platform_removed: bool = False
