"""Shared fixtures: in-process fakes for the chat platform and a manual timer."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

import pytest

from tagspine.core.events.memory import InMemoryEventBus
from tagspine.core.settings import clear_settings_cache
from tagspine.core.storage import InMemoryKeyValueStore
from tagspine.directory.collaborators import MessageRef
from tagspine.directory.confirmation import ConfirmationWorkflow
from tagspine.directory.models import Directory, Platform, TagEntry
from tagspine.directory.repository import DirectoryRepository
from tagspine.directory.service import DirectoryService


class ManualTimer:
    """Drop-in for ``asyncio.sleep`` whose sleepers wake only on :meth:`advance`."""

    def __init__(self) -> None:
        self.now = 0.0
        self._sleepers: list[tuple[float, asyncio.Future]] = []

    async def sleep(self, seconds: float) -> None:
        fut = asyncio.get_running_loop().create_future()
        self._sleepers.append((self.now + seconds, fut))
        await fut

    def advance(self, seconds: float) -> None:
        self.now += seconds
        for deadline, fut in self._sleepers:
            if deadline <= self.now and not fut.done():
                fut.set_result(None)
        self._sleepers = [(d, f) for d, f in self._sleepers if not f.done()]

    @property
    def pending(self) -> int:
        return sum(1 for _, f in self._sleepers if not f.done())


@dataclass
class SentMessage:
    ref: MessageRef
    text: str


class FakeTransport:
    def __init__(self) -> None:
        self.sent: list[SentMessage] = []
        self.reactions: list[tuple[MessageRef, str]] = []
        self.cleared: list[MessageRef] = []
        self.fail_send = False
        self.fail_clear = False

    async def send_message(self, channel_id: str, text: str) -> MessageRef:
        if self.fail_send:
            raise ConnectionError("gateway closed")
        ref = MessageRef(channel_id=channel_id, message_id=f"msg-{len(self.sent) + 1}")
        self.sent.append(SentMessage(ref, text))
        return ref

    async def add_reaction(self, message: MessageRef, emoji: str) -> None:
        self.reactions.append((message, emoji))

    async def remove_all_reactions(self, message: MessageRef) -> None:
        if self.fail_clear:
            raise PermissionError("missing manage messages permission")
        self.cleared.append(message)

    @property
    def last_prompt(self) -> MessageRef:
        return self.sent[-1].ref


class FakeRoles:
    def __init__(self, fail: bool = False) -> None:
        self.deleted: list[str] = []
        self.fail = fail

    async def delete_role(self, role_ref: str) -> None:
        if self.fail:
            raise PermissionError("cannot delete role")
        self.deleted.append(role_ref)


class FakeResolver:
    """Resolves owners from ``names``; IDs in ``broken`` raise."""

    def __init__(self, names: dict[str, str] | None = None, broken: set[str] | None = None) -> None:
        self.names = dict(names or {})
        self.broken = set(broken or ())
        self.calls: list[str] = []

    async def resolve(self, owner_id: str) -> str | None:
        self.calls.append(owner_id)
        if owner_id in self.broken:
            raise TimeoutError(f"lookup of {owner_id} timed out")
        return self.names.get(owner_id)


async def wait_until(predicate, *, attempts: int = 200) -> None:
    """Yield to the loop until ``predicate()`` holds."""
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition never became true")


def make_directory(**platforms: dict[str, str]) -> Directory:
    """``make_directory(Game={"u1": "main#1"})`` → Directory with display names = owner IDs."""
    directory = Directory()
    for name, users in platforms.items():
        directory.platforms[name] = Platform(
            name=name,
            role_ref=f"role-{name}",
            users={
                owner: TagEntry(owner_id=owner, display_name=owner, tag=tag, platform=name)
                for owner, tag in users.items()
            },
        )
    return directory


@pytest.fixture(autouse=True)
def _fresh_settings(monkeypatch):
    for key in ("TAGSPINE_CLEANUP_HOUR", "TAGSPINE_DATABASE_PATH", "TAGSPINE_LOG_FORMAT"):
        monkeypatch.delenv(key, raising=False)
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def timer():
    return ManualTimer()


@pytest.fixture
def bus():
    return InMemoryEventBus()


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def roles():
    return FakeRoles()


@pytest.fixture
def resolver():
    return FakeResolver({"U1": "alice", "U2": "bob", "U3": "carol"})


@pytest.fixture
def kv():
    return InMemoryKeyValueStore()


@pytest.fixture
def repository(kv):
    return DirectoryRepository(kv, key="fulltags")


@pytest.fixture
def workflow(transport, bus, timer):
    return ConfirmationWorkflow(transport, bus, timeout_seconds=7.0, sleep=timer.sleep)


@pytest.fixture
def service(repository, workflow, resolver, roles):
    return DirectoryService(repository, workflow, resolver, roles=roles)
