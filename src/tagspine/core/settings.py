"""
Centralized settings for tagspine.

Manifesto:
    Limits, timeouts and the cleanup hour are policy, not code.  One
    validated, cached settings object resolves them from ``TAGSPINE_*``
    environment variables and ``.env`` files so the bot, the scheduler
    and the CLI all agree.

Examples:
    >>> from tagspine.core.settings import get_settings
    >>> settings = get_settings()
    >>> settings.confirm_timeout_seconds
    7.0

Tags:
    tagspine, configuration, settings, pydantic, caching, validation

Doc-Types:
    api-reference
"""

from __future__ import annotations

from typing import Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class TagSpineSettings(BaseSettings):
    """tagspine configuration.

    All fields can be set via ``TAGSPINE_*`` environment variables (e.g.
    ``TAGSPINE_CLEANUP_HOUR=4``) or through a ``.env`` file.
    """

    model_config = SettingsConfigDict(
        env_prefix="TAGSPINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Storage ──────────────────────────────────────────────────
    storage_key: str = Field(default="fulltags", description="Key the directory is stored under")
    database_path: str = Field(default="data/tagspine.db")

    # ── Limits ───────────────────────────────────────────────────
    tag_limit: int = Field(default=64, gt=0)
    platform_limit: int = Field(default=20, gt=0)

    # ── Confirmation ─────────────────────────────────────────────
    confirm_timeout_seconds: float = Field(default=7.0, gt=0)
    confirm_emoji: str = Field(default="✅")
    deny_emoji: str = Field(default="❌")

    # ── Cleanup ──────────────────────────────────────────────────
    cleanup_hour: int = Field(default=2, description="Local hour-of-day of the daily pass")
    cleanup_timezone: str = Field(default="Australia/Sydney")
    cleanup_interval_seconds: float = Field(default=3600.0, gt=0)
    scheduler_backend: Literal["asyncio", "apscheduler"] = Field(default="asyncio")
    cleanup_channel_id: str = Field(default="")
    cleanup_guild_id: str = Field(default="")

    # ── Identity ─────────────────────────────────────────────────
    identity_cache_ttl_seconds: int = Field(default=300, ge=0)

    # ── Logging ──────────────────────────────────────────────────
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json")

    @field_validator("cleanup_hour")
    @classmethod
    def _check_hour(cls, value: int) -> int:
        if not 0 <= value <= 23:
            raise ValueError("cleanup_hour must be between 0 and 23")
        return value

    @field_validator("cleanup_timezone")
    @classmethod
    def _check_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"unknown timezone: {value}") from exc
        return value

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.cleanup_timezone)


# ── Settings factory with caching ────────────────────────────────────────

_settings_cache: dict[str, TagSpineSettings] = {}


def get_settings(*, _force_reload: bool = False) -> TagSpineSettings:
    """Load, validate, and cache a :class:`TagSpineSettings` instance."""
    if not _force_reload and "default" in _settings_cache:
        return _settings_cache["default"]

    settings = TagSpineSettings()
    _settings_cache["default"] = settings
    return settings


def clear_settings_cache() -> None:
    """Clear the settings cache (primarily for testing)."""
    _settings_cache.clear()


__all__ = ["TagSpineSettings", "clear_settings_cache", "get_settings"]
