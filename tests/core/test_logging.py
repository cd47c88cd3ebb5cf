"""Tests for structured logging configuration."""

import importlib
import json

import pytest
import structlog

from tagspine.core.logging import LogContext, clear_context, configure_logging, get_logger


@pytest.fixture(autouse=True)
def _reset_structlog():
    yield
    clear_context()
    structlog.reset_defaults()


def _last_json_line(capsys) -> dict:
    lines = [line for line in capsys.readouterr().out.splitlines() if line.strip()]
    return json.loads(lines[-1])


class TestConfigureLogging:
    def test_json_output_is_ecs_compatible(self, capsys):
        configure_logging(level="INFO", json_format=True, service="tagspine-test")
        get_logger("tagspine.directory.service").info("platform_created", platform="Game")

        record = _last_json_line(capsys)
        assert record["event"] == "platform_created"
        assert record["platform"] == "Game"
        assert record["logger"] == "tagspine.directory.service"
        assert record["log.level"] == "info"
        assert record["service.name"] == "tagspine-test"
        assert "@timestamp" in record

    def test_level_filtering(self, capsys):
        configure_logging(level="WARNING", json_format=True)
        logger = get_logger("filtered")
        logger.info("hidden")
        logger.warning("role_delete_failed", role_ref="r1")

        out = capsys.readouterr().out
        assert "hidden" not in out
        assert "role_delete_failed" in out

    @pytest.mark.parametrize(
        "module",
        [
            "tagspine.core.events.memory",
            "tagspine.core.scheduling.asyncio_backend",
            "tagspine.directory.service",
            "tagspine.directory.scheduler",
            "tagspine.directory.cleanup",
        ],
    )
    def test_modules_with_named_loggers_import(self, module):
        imported = importlib.import_module(module)
        assert imported.logger is not None

    def test_named_logger_in_console_output(self, capsys):
        configure_logging(level="INFO", json_format=False)
        get_logger("tagspine.directory.cleanup").info("cleanup_pass_finished")

        out = capsys.readouterr().out
        assert "cleanup_pass_finished" in out
        assert "tagspine.directory.cleanup" in out

    def test_module_logger_created_before_configure_follows_config(self, capsys):
        logger = get_logger("early")
        configure_logging(level="INFO", json_format=True)
        logger.info("tag_added")

        assert _last_json_line(capsys)["event"] == "tag_added"


class TestLogContext:
    def test_context_bound_only_inside_block(self, capsys):
        configure_logging(level="INFO", json_format=True)
        logger = get_logger("ctx")

        with LogContext(platform="Game", requester_id="U1"):
            logger.info("confirmation_pending")
        inside = _last_json_line(capsys)

        logger.info("after")
        outside = _last_json_line(capsys)

        assert inside["platform"] == "Game"
        assert inside["requester_id"] == "U1"
        assert "platform" not in outside

    @pytest.mark.asyncio
    async def test_async_context(self, capsys):
        configure_logging(level="INFO", json_format=True)
        async with LogContext(platform="Game"):
            get_logger("ctx").info("inside")
        assert _last_json_line(capsys)["platform"] == "Game"
