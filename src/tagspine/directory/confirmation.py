"""
Confirmation Workflow: human approval before a new platform is created.

Manifesto:
    A creation request must pause until the requesting user reacts to a
    prompt, but the reaction arrives on the shared chat event stream, not
    on the request's own call path.  The two sides meet through a
    single-use future owned by the session: the reaction handler resolves
    it at most once, the request awaits it raced against a timer.

State machine (one session per creation request)::

                         send prompt, open listener, add ✅ ❌
    ┌──────┐  ─────────────────────────────────────────►  ┌──────────┐
    │ idle │                                              │ pending  │
    └──────┘                                              └────┬─────┘
                          ┌──────────────────┬─────────────────┤
                   ✅ by requester    ❌ by requester    timer elapsed
                          ▼                  ▼                 ▼
                    ┌───────────┐      ┌──────────┐      ┌───────────┐
                    │ confirmed │      │  denied  │      │ timed_out │
                    └───────────┘      └──────────┘      └───────────┘

    First writer wins.  The listener is closed exactly once on every
    exit path, then the prompt's reactions are cleared in the background
    without holding up the result.

Tags:
    tagspine, confirmation, asyncio, future, rendezvous, reactions

Doc-Types:
    api-reference, architecture
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from tagspine.core.errors import CollaboratorError, TagSpineError
from tagspine.core.events import Event, EventBus, Listener
from tagspine.core.logging import LogContext, get_logger

from .collaborators import REACTION_ADDED, ChatTransport, MessageRef

logger = get_logger(__name__)

PROMPT_TEMPLATE = (
    "Creating new platform **{platform}**. Please check if a similar one exists. "
    "Confirm adding in {seconds:g} seconds."
)


class ConfirmationOutcome(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    DENIED = "denied"
    TIMED_OUT = "timed_out"

    @property
    def terminal(self) -> bool:
        return self is not ConfirmationOutcome.PENDING


@dataclass
class ConfirmationSession:
    """One pending approval.  Never persisted.

    Must be created while an event loop is running.
    """

    prompt: MessageRef
    requester_id: str
    platform: str
    confirm_emoji: str = "✅"
    deny_emoji: str = "❌"
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    outcome: ConfirmationOutcome = ConfirmationOutcome.PENDING
    _done: asyncio.Future = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._done = asyncio.get_running_loop().create_future()

    @property
    def future(self) -> asyncio.Future:
        return self._done

    def resolve(self, outcome: ConfirmationOutcome) -> bool:
        """Record a terminal outcome.  Returns False if one was already recorded."""
        if self._done.done():
            return False
        self.outcome = outcome
        self._done.set_result(outcome)
        return True

    def matches(self, event: Event) -> bool:
        """Only the requester's ✅/❌ on this exact prompt counts."""
        payload = event.payload
        return (
            payload.get("message_id") == self.prompt.message_id
            and payload.get("user_id") == self.requester_id
            and payload.get("emoji") in (self.confirm_emoji, self.deny_emoji)
        )

    async def on_reaction(self, event: Event) -> None:
        if event.payload.get("emoji") == self.confirm_emoji:
            self.resolve(ConfirmationOutcome.CONFIRMED)
        else:
            self.resolve(ConfirmationOutcome.DENIED)


class ConfirmationWorkflow:
    """Runs confirmation sessions against a chat transport and event bus.

    Example:
        >>> workflow = ConfirmationWorkflow(transport, bus, timeout_seconds=7)
        >>> session = await workflow.run("chan-1", "u1", "Game")
        >>> session.outcome
        <ConfirmationOutcome.CONFIRMED: 'confirmed'>

    ``sleep`` is the timer used for the confirmation window; tests inject
    a controllable one to simulate the clock.
    """

    def __init__(
        self,
        transport: ChatTransport,
        bus: EventBus,
        *,
        timeout_seconds: float = 7.0,
        confirm_emoji: str = "✅",
        deny_emoji: str = "❌",
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], datetime] = lambda: datetime.now(UTC),
    ) -> None:
        self.transport = transport
        self.bus = bus
        self.timeout_seconds = timeout_seconds
        self.confirm_emoji = confirm_emoji
        self.deny_emoji = deny_emoji
        self._sleep = sleep
        self._clock = clock
        self._cleanup_tasks: set[asyncio.Task] = set()

    def prompt_text(self, platform: str) -> str:
        return PROMPT_TEMPLATE.format(platform=platform, seconds=self.timeout_seconds)

    async def run(self, channel_id: str, requester_id: str, platform: str) -> ConfirmationSession:
        """Prompt ``requester_id`` and wait for a terminal outcome.

        Returns the finished session; its ``outcome`` is never PENDING.

        Raises:
            CollaboratorError: posting the prompt or its reactions failed
        """
        async with LogContext(platform=platform, requester_id=requester_id):
            prompt = await self._call(self.transport.send_message(channel_id, self.prompt_text(platform)))
            session = ConfirmationSession(
                prompt=prompt,
                requester_id=requester_id,
                platform=platform,
                confirm_emoji=self.confirm_emoji,
                deny_emoji=self.deny_emoji,
                created_at=self._clock(),
            )
            listener = Listener(self.bus, REACTION_ADDED, session.on_reaction, predicate=session.matches)

            try:
                await listener.open()
                await self._call(self.transport.add_reaction(prompt, self.confirm_emoji))
                await self._call(self.transport.add_reaction(prompt, self.deny_emoji))
                logger.info("confirmation_pending", message_id=prompt.message_id, timeout=self.timeout_seconds)
                await self._wait(session)
            finally:
                await listener.close()
                if not session.future.done():
                    session.future.cancel()
                self._clear_reactions_later(prompt)

            logger.info("confirmation_finished", outcome=session.outcome.value)
            return session

    async def _wait(self, session: ConfirmationSession) -> None:
        timer = asyncio.ensure_future(self._sleep(self.timeout_seconds))
        try:
            await asyncio.wait({session.future, timer}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            timer.cancel()
        session.resolve(ConfirmationOutcome.TIMED_OUT)

    async def _call(self, awaitable: Awaitable[Any]) -> Any:
        try:
            return await awaitable
        except TagSpineError:
            raise
        except Exception as e:
            raise CollaboratorError("chat transport failed", cause=e) from e

    # ── Best-effort reaction cleanup ────────────────────────────────────

    def _clear_reactions_later(self, prompt: MessageRef) -> None:
        task = asyncio.create_task(self._clear_reactions(prompt))
        self._cleanup_tasks.add(task)
        task.add_done_callback(self._cleanup_tasks.discard)

    async def _clear_reactions(self, prompt: MessageRef) -> None:
        try:
            await self.transport.remove_all_reactions(prompt)
        except Exception as e:
            logger.warning("reaction_cleanup_failed", message_id=prompt.message_id, error=str(e))

    async def drain(self) -> None:
        """Wait for every pending reaction cleanup to finish."""
        while self._cleanup_tasks:
            await asyncio.gather(*list(self._cleanup_tasks), return_exceptions=True)

    @property
    def pending_cleanups(self) -> int:
        return len(self._cleanup_tasks)
