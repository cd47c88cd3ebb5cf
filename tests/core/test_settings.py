"""Tests for TagSpineSettings and the cached get_settings() factory."""

from zoneinfo import ZoneInfo

import pytest
from pydantic import ValidationError

from tagspine.core.settings import TagSpineSettings, clear_settings_cache, get_settings


class TestDefaults:
    def test_defaults(self):
        settings = TagSpineSettings(_env_file=None)

        assert settings.storage_key == "fulltags"
        assert settings.tag_limit == 64
        assert settings.platform_limit == 20
        assert settings.confirm_timeout_seconds == 7.0
        assert settings.confirm_emoji == "✅"
        assert settings.deny_emoji == "❌"
        assert settings.cleanup_hour == 2
        assert settings.cleanup_interval_seconds == 3600
        assert settings.scheduler_backend == "asyncio"

    def test_tzinfo(self):
        settings = TagSpineSettings(_env_file=None)
        assert settings.tzinfo == ZoneInfo("Australia/Sydney")


class TestEnvironment:
    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("TAGSPINE_CLEANUP_HOUR", "4")
        monkeypatch.setenv("TAGSPINE_CLEANUP_TIMEZONE", "UTC")
        settings = TagSpineSettings(_env_file=None)

        assert settings.cleanup_hour == 4
        assert settings.tzinfo == ZoneInfo("UTC")

    @pytest.mark.parametrize("hour", [-1, 24])
    def test_rejects_bad_hour(self, hour):
        with pytest.raises(ValidationError, match="cleanup_hour"):
            TagSpineSettings(_env_file=None, cleanup_hour=hour)

    def test_rejects_unknown_timezone(self):
        with pytest.raises(ValidationError, match="unknown timezone"):
            TagSpineSettings(_env_file=None, cleanup_timezone="Mars/Olympus_Mons")

    def test_rejects_non_positive_timeout(self):
        with pytest.raises(ValidationError):
            TagSpineSettings(_env_file=None, confirm_timeout_seconds=0)


class TestGetSettings:
    def test_cached(self):
        assert get_settings() is get_settings()

    def test_force_reload_and_clear(self, monkeypatch):
        first = get_settings()
        monkeypatch.setenv("TAGSPINE_TAG_LIMIT", "32")

        assert get_settings().tag_limit == first.tag_limit
        assert get_settings(_force_reload=True).tag_limit == 32

        clear_settings_cache()
        assert get_settings() is not first
