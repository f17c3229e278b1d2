"""Tests for structured logging configuration."""

import json
import logging

from contentgate.app.core.config import settings
from contentgate.app.core.logging import (
    ContextFilter,
    JSONFormatter,
    bind_request_context,
    clear_request_context,
    get_log_context,
    get_logger,
    get_logging_config,
)


def _record(msg: str = "Test message") -> logging.LogRecord:
    return logging.LogRecord(
        name="test",
        level=logging.INFO,
        pathname="test.py",
        lineno=1,
        msg=msg,
        args=(),
        exc_info=None,
    )


class TestJSONFormatter:
    """Test JSON formatter for structured logging."""

    def test_basic_json_format(self):
        data = json.loads(JSONFormatter().format(_record()))

        assert data["level"] == "INFO"
        assert data["logger"] == "test"
        assert data["message"] == "Test message"
        assert "timestamp" in data
        assert data["source"]["file"] == "test.py"
        assert data["source"]["line"] == 1

    def test_context_fields_are_top_level(self):
        record = _record("Article served")
        record.request_id = "req-1"
        record.identity = "anon:abc"
        record.role = "ANONYMOUS"

        data = json.loads(JSONFormatter().format(record))

        assert data["request_id"] == "req-1"
        assert data["identity"] == "anon:abc"
        assert data["role"] == "ANONYMOUS"

    def test_other_fields_go_under_extra(self):
        record = _record()
        record.lock_reason = "limit_reached"

        data = json.loads(JSONFormatter().format(record))

        assert data["extra"]["lock_reason"] == "limit_reached"

    def test_exception_is_included(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            import sys
            record = _record("failed")
            record.exc_info = sys.exc_info()

        data = json.loads(JSONFormatter().format(record))

        assert any("RuntimeError: boom" in line for line in data["exception"])


class TestContextFilter:

    def test_adds_missing_fields(self):
        record = _record()
        assert ContextFilter().filter(record) is True
        assert record.request_id is None
        assert record.identity is None

    def test_keeps_existing_fields(self):
        record = _record()
        record.request_id = "req-2"
        ContextFilter().filter(record)
        assert record.request_id == "req-2"

    def test_reads_bound_request_context(self):
        bind_request_context(request_id="req-3", path="/api/articles/by-slug/x")
        try:
            record = _record()
            ContextFilter().filter(record)
        finally:
            clear_request_context()
        assert record.request_id == "req-3"
        assert record.path == "/api/articles/by-slug/x"
        assert record.identity is None

    def test_explicit_extra_wins_over_bound_context(self):
        bind_request_context(request_id="req-bound")
        try:
            record = _record()
            record.request_id = "req-explicit"
            ContextFilter().filter(record)
        finally:
            clear_request_context()
        assert record.request_id == "req-explicit"


class TestLoggingConfig:

    def test_json_format(self, monkeypatch):
        monkeypatch.setattr(settings, "log_format", "json")
        config = get_logging_config()
        assert config["handlers"]["console"]["formatter"] == "json"
        assert "json" in config["formatters"]

    def test_text_format(self, monkeypatch):
        monkeypatch.setattr(settings, "log_format", "text")
        assert get_logging_config()["handlers"]["console"]["formatter"] == "text"

    def test_structured_format(self, monkeypatch):
        monkeypatch.setattr(settings, "log_format", "structured")
        assert get_logging_config()["handlers"]["console"]["formatter"] == "structured"

    def test_level_follows_settings(self, monkeypatch):
        monkeypatch.setattr(settings, "log_level", "debug")
        assert get_logging_config()["loggers"]["contentgate"]["level"] == "DEBUG"


def test_get_logger_default_name():
    assert get_logger().name == "contentgate"


def test_get_log_context_drops_none():
    context = get_log_context(request_id="req-1", identity=None, role="FREE_USER", views=4)
    assert context == {"request_id": "req-1", "role": "FREE_USER", "views": 4}
