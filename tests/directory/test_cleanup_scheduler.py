"""Tests for CleanupScheduler: hour matching, skip/failure handling, health."""

from datetime import UTC, datetime
from zoneinfo import ZoneInfo

import pytest
import structlog

from conftest import ManualTimer, make_directory, wait_until
from tagspine.core.errors import CleanBusyError, NoDirectoryError
from tagspine.core.scheduling import AsyncioSchedulerBackend
from tagspine.core.settings import TagSpineSettings
from tagspine.directory.cleanup import CleanupReport
from tagspine.directory.scheduler import CleanupScheduler

SYDNEY = ZoneInfo("Australia/Sydney")


class ManualBackend:
    name = "manual"

    def __init__(self) -> None:
        self.tick = None
        self.interval = None
        self.running = False

    def start(self, tick_callback, interval_seconds=3600.0):
        self.tick = tick_callback
        self.interval = interval_seconds
        self.running = True

    async def stop(self):
        self.running = False

    def health(self):
        return {"healthy": self.running, "backend": self.name, "tick_count": 0, "last_tick": None}


class Clock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class PassRecorder:
    def __init__(self, error: Exception | None = None) -> None:
        self.calls = 0
        self.error = error

    async def __call__(self) -> CleanupReport:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return CleanupReport(names_refreshed=1)


# 2 AM in Sydney (AEST, UTC+10) is 16:00 UTC the day before.
TWO_AM_SYDNEY = datetime(2026, 6, 14, 16, 0, tzinfo=UTC)
THREE_AM_SYDNEY = datetime(2026, 6, 14, 17, 0, tzinfo=UTC)


def _scheduler(run_pass, clock, backend=None):
    return CleanupScheduler(backend or ManualBackend(), run_pass, cleanup_hour=2, timezone=SYDNEY, clock=clock)


class TestHourMatching:
    def test_is_due_in_configured_zone(self):
        scheduler = _scheduler(PassRecorder(), Clock(TWO_AM_SYDNEY))
        assert scheduler.is_due(TWO_AM_SYDNEY)
        assert not scheduler.is_due(THREE_AM_SYDNEY)
        assert not scheduler.is_due(datetime(2026, 6, 14, 2, 0, tzinfo=UTC))

    def test_rejects_bad_hour(self):
        with pytest.raises(ValueError):
            CleanupScheduler(ManualBackend(), PassRecorder(), cleanup_hour=24)

    @pytest.mark.asyncio
    async def test_runs_only_in_cleanup_hour(self):
        backend = ManualBackend()
        clock = Clock(THREE_AM_SYDNEY)
        run_pass = PassRecorder()
        scheduler = _scheduler(run_pass, clock, backend)
        scheduler.start()

        await backend.tick()
        assert run_pass.calls == 0

        clock.now = TWO_AM_SYDNEY
        await backend.tick()
        assert run_pass.calls == 1
        assert scheduler.stats.tick_count == 2
        assert scheduler.stats.passes_completed == 1
        assert scheduler.stats.last_report.names_refreshed == 1

    @pytest.mark.asyncio
    async def test_hourly_ticks_give_one_pass_per_day(self):
        backend = ManualBackend()
        clock = Clock(datetime(2026, 6, 14, 0, 0, tzinfo=UTC))
        run_pass = PassRecorder()
        _scheduler(run_pass, clock, backend).start()

        for hour in range(48):
            clock.now = datetime(2026, 6, 14 + hour // 24, hour % 24, 0, tzinfo=UTC)
            await backend.tick()

        assert run_pass.calls == 2


class TestFailures:
    @pytest.mark.asyncio
    async def test_busy_is_skipped(self):
        run_pass = PassRecorder(CleanBusyError())
        scheduler = _scheduler(run_pass, Clock(TWO_AM_SYDNEY))

        assert await scheduler.trigger() is None
        assert scheduler.stats.passes_skipped == 1
        assert scheduler.stats.passes_failed == 0

    @pytest.mark.asyncio
    async def test_empty_directory_is_skipped(self):
        scheduler = _scheduler(PassRecorder(NoDirectoryError()), Clock(TWO_AM_SYDNEY))
        await scheduler.trigger()
        assert scheduler.stats.passes_skipped == 1

    @pytest.mark.asyncio
    async def test_failure_recorded_and_next_tick_retries(self):
        backend = ManualBackend()
        run_pass = PassRecorder(RuntimeError("resolver down"))
        scheduler = _scheduler(run_pass, Clock(TWO_AM_SYDNEY), backend)
        scheduler.start()

        await backend.tick()
        assert scheduler.stats.passes_failed == 1
        assert scheduler.stats.last_error == "resolver down"

        run_pass.error = None
        await backend.tick()
        assert scheduler.stats.passes_completed == 1


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_start_stop_and_health(self):
        backend = ManualBackend()
        scheduler = _scheduler(PassRecorder(), Clock(TWO_AM_SYDNEY), backend)

        assert scheduler.health()["healthy"] is False
        scheduler.start()
        scheduler.start()
        health = scheduler.health()

        assert health["healthy"] is True
        assert health["cleanup_hour"] == 2
        assert health["timezone"] == "Australia/Sydney"
        assert health["backend"]["backend"] == "manual"
        assert health["stats"]["tick_count"] == 0

        await scheduler.stop()
        assert not scheduler.is_running
        assert not backend.running

    def test_from_settings(self):
        settings = TagSpineSettings(_env_file=None, cleanup_hour=4, cleanup_timezone="UTC")
        scheduler = CleanupScheduler.from_settings(PassRecorder(), settings, backend=ManualBackend())

        assert scheduler.cleanup_hour == 4
        assert scheduler.interval == 3600
        assert scheduler.is_due(datetime(2026, 1, 1, 4, 30, tzinfo=UTC))

    @pytest.mark.asyncio
    async def test_pass_runs_with_configured_channel_context(self, monkeypatch):
        monkeypatch.setenv("TAGSPINE_CLEANUP_CHANNEL_ID", "chan-7")
        monkeypatch.setenv("TAGSPINE_CLEANUP_GUILD_ID", "guild-3")
        seen = []

        async def run_pass():
            seen.append(structlog.contextvars.get_contextvars())
            return CleanupReport()

        scheduler = CleanupScheduler.from_settings(run_pass, backend=ManualBackend())
        await scheduler.trigger()

        assert scheduler.pass_context == {"channel_id": "chan-7", "guild_id": "guild-3"}
        assert seen[0]["channel_id"] == "chan-7"
        assert seen[0]["guild_id"] == "guild-3"
        assert "channel_id" not in structlog.contextvars.get_contextvars()

    def test_unset_channel_context_is_empty(self):
        settings = TagSpineSettings(_env_file=None)
        scheduler = CleanupScheduler.from_settings(PassRecorder(), settings, backend=ManualBackend())
        assert scheduler.pass_context == {}

    @pytest.mark.asyncio
    async def test_with_asyncio_backend_and_real_pass(self, service, repository):
        repository.save(make_directory(Game={"U1": "a", "U9": "b"}))
        backend_timer = ManualTimer()
        scheduler = CleanupScheduler(
            AsyncioSchedulerBackend(sleep=backend_timer.sleep),
            service.run_cleanup,
            cleanup_hour=2,
            timezone=SYDNEY,
            clock=Clock(TWO_AM_SYDNEY),
        )
        scheduler.start()
        await wait_until(lambda: backend_timer.pending == 1)

        backend_timer.advance(3600)
        await wait_until(lambda: scheduler.stats.passes_completed == 1)

        assert list(repository.load().platforms["Game"].users) == ["U1"]
        await scheduler.stop()
