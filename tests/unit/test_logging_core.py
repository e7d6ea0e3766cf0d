"""Tests for the minidao logging system."""

import io
import json
import logging

logger = logging.getLogger(__name__)
import pytest

from minidao.logging import (
    ConsoleHandler,
    JSONFormatter,
    LogConfig,
    LogContext,
    LogEntry,
    LogLevel,
    LogManager,
    MemoryHandler,
    TextFormatter,
    get_logger,
    setup_logging,
    shutdown_logging,
)


def make_entry(level=LogLevel.INFO, message="hello", context=None, **kwargs):
    return LogEntry(
        timestamp=0.5,
        level=level,
        message=message,
        logger_name="minidao.test",
        context=context or LogContext(),
        **kwargs,
    )


class TestLogLevel:
    """Test LogLevel ordering."""

    def test_ranks_increase(self):
        levels = list(LogLevel)

        assert [level.rank for level in levels] == sorted(level.rank for level in levels)
        assert LogLevel.WARNING.rank > LogLevel.INFO.rank


class TestLogContext:
    """Test LogContext class."""

    def test_merge_prefers_other(self):
        base = LogContext(contract_id="CBASE", caller="alice", metadata={"a": 1})
        call = LogContext(contract_id="CDAO", function="vote", metadata={"b": 2})

        merged = base.merged_with(call)

        assert merged.contract_id == "CDAO"
        assert merged.function == "vote"
        assert merged.caller == "alice"
        assert merged.metadata == {"a": 1, "b": 2}

    def test_merge_with_none(self):
        base = LogContext(contract_id="CBASE")

        assert base.merged_with(None) is base


class TestLogEntry:
    """Test LogEntry class."""

    def test_to_json(self):
        entry = make_entry(extra={"proposal_id": 3}, exception=ValueError("bad"))

        data = json.loads(entry.to_json())

        assert data["level"] == "info"
        assert data["extra"] == {"proposal_id": 3}
        assert data["exception"] == "bad"
        assert data["thread_id"] is not None


class TestFormatters:
    """Test log formatters."""

    def test_text_formatter_includes_call(self):
        entry = make_entry(context=LogContext(contract_id="CDAO", function="vote"))

        text = TextFormatter().format(entry)

        assert "[INFO] minidao.test: hello" in text
        assert text.endswith("(CDAO.vote)")

    def test_text_formatter_without_call(self):
        assert "(" not in TextFormatter().format(make_entry())

    def test_json_formatter(self):
        entry = make_entry(context=LogContext(contract_id="CDAO"), extra={"k": "v"})

        data = json.loads(JSONFormatter().format(entry))

        assert data["message"] == "hello"
        assert data["context"]["contract_id"] == "CDAO"
        assert data["extra"] == {"k": "v"}
        assert data["timestamp"].endswith("Z")

    def test_json_formatter_exception(self):
        try:
            raise RuntimeError("kaboom")
        except RuntimeError as e:
            entry = make_entry(level=LogLevel.ERROR, exception=e)

        data = json.loads(JSONFormatter().format(entry))

        assert data["exception"]["type"] == "RuntimeError"
        assert "kaboom" in data["exception"]["traceback"]


class TestHandlers:
    """Test log handlers."""

    def test_console_handler(self):
        stream = io.StringIO()
        handler = ConsoleHandler(stream)

        handler.handle(make_entry())

        assert "hello" in stream.getvalue()

    def test_console_handler_keeps_std_streams_open(self):
        import sys

        handler = ConsoleHandler(sys.stderr)
        handler.close()

        assert not sys.stderr.closed

    def test_handler_level(self):
        handler = MemoryHandler()
        handler.set_level(LogLevel.WARNING)

        handler.handle(make_entry(level=LogLevel.INFO))
        handler.handle(make_entry(level=LogLevel.ERROR))

        assert [log["level"] for log in handler.get_logs()] == ["error"]

    def test_memory_handler_bounded(self):
        handler = MemoryHandler(max_size=2)
        for i in range(3):
            handler.handle(make_entry(message=f"m{i}"))

        assert [log["message"] for log in handler.get_logs()] == ["m1", "m2"]
        handler.clear_logs()
        assert handler.get_logs() == []


class TestLogManager:
    """Test LogManager and module-level helpers."""

    @pytest.fixture
    def manager(self):
        manager = setup_logging(LogConfig(level=LogLevel.DEBUG, handlers=["memory"]))
        yield manager
        shutdown_logging()

    def test_logger_routes_to_configured_handlers(self, manager):
        get_logger("minidao.test").info("routed", context=LogContext(contract_id="CDAO"))

        logs = manager.get_handler("memory").get_logs()
        assert logs[-1]["message"] == "routed"
        assert logs[-1]["context"]["contract_id"] == "CDAO"

    def test_level_filtering(self):
        manager = LogManager(LogConfig(level=LogLevel.WARNING, handlers=["memory"]))
        log = manager.get_logger("minidao.test")

        log.info("dropped")
        log.warning("kept")

        assert [entry["message"] for entry in manager.get_handler("memory").get_logs()] == ["kept"]

    def test_global_context(self, manager):
        manager.set_context(LogContext(caller="alice"))

        get_logger("minidao.test").debug("with caller")

        assert manager.get_handler("memory").get_logs()[-1]["context"]["caller"] == "alice"

    def test_exception_captured(self, manager):
        try:
            raise ValueError("inner")
        except ValueError:
            get_logger("minidao.test").exception("failed")

        assert manager.get_handler("memory").get_logs()[-1]["level"] == "error"

    def test_memory_handler_config(self):
        config = LogConfig(handlers=["memory"])
        config.add_handler_config("memory", {"max_size": 1})
        manager = LogManager(config)
        log = manager.get_logger("minidao.test")

        log.info("first")
        log.info("second")

        assert [entry["message"] for entry in manager.get_handler("memory").get_logs()] == ["second"]

    def test_memory_handler_only_when_configured(self):
        assert LogManager(LogConfig()).get_handler("memory") is None
        assert LogManager(LogConfig(handlers=["console", "memory"])).get_handler("memory") is not None

        config = LogConfig()
        config.add_handler_config("memory", {"max_size": 5})
        assert LogManager(config).get_handler("memory") is not None

    def test_proxy_follows_setup(self):
        proxy = get_logger("minidao.proxy")
        first = setup_logging(LogConfig(handlers=["memory"]))
        proxy.info("one")
        second = setup_logging(LogConfig(handlers=["memory"]))
        proxy.info("two")
        messages = [entry["message"] for entry in second.get_handler("memory").get_logs()]
        shutdown_logging()

        assert first is not second
        assert messages == ["two"]
