"""Tests for structured (JSON) logging output.

Log pipelines filter on the top-level keys, so a field that silently
stops being lifted (or a formatter that stops emitting JSON) breaks
every saved query.
"""

from __future__ import annotations

import json
import logging
import sys

from app.core.logging import _ContainerFormatter, _JsonFormatter


def _record(msg: str = "test message", level: int = logging.INFO, **extra):
    record = logging.LogRecord(
        name="app.services.progress_service",
        level=level,
        pathname="progress_service.py",
        lineno=1,
        msg=msg,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_produces_valid_json() -> None:
    formatter = _JsonFormatter()
    record = logging.LogRecord(
        name="test.logger",
        level=logging.INFO,
        pathname="test.py",
        lineno=42,
        msg="Hello %s",
        args=("world",),
        exc_info=None,
    )
    parsed = json.loads(formatter.format(record))
    assert parsed["level"] == "INFO"
    assert parsed["logger"] == "test.logger"
    assert parsed["message"] == "Hello world"
    assert "timestamp" in parsed


def test_json_formatter_includes_request_fields() -> None:
    record = _record(
        request_id="abc-123", method="GET", path="/health", duration_ms=12.5
    )
    parsed = json.loads(_JsonFormatter().format(record))
    assert parsed["request_id"] == "abc-123"
    assert parsed["method"] == "GET"
    assert parsed["path"] == "/health"
    assert parsed["duration_ms"] == 12.5


def test_json_formatter_lifts_progress_coordinates() -> None:
    record = _record(
        "Lesson completed",
        user_id="user-1",
        language_slug="rust",
        series_slug="rust-series",
        section_id=1,
        lesson_id=2,
    )
    parsed = json.loads(_JsonFormatter().format(record))
    assert parsed["user_id"] == "user-1"
    assert parsed["language_slug"] == "rust"
    assert parsed["series_slug"] == "rust-series"
    assert parsed["section_id"] == 1
    assert parsed["lesson_id"] == 2


def test_json_formatter_omits_absent_fields() -> None:
    parsed = json.loads(_JsonFormatter().format(_record(user_id="user-1")))
    assert "series_slug" not in parsed
    assert "certificate_id" not in parsed


def test_json_formatter_includes_exception_info() -> None:
    formatter = _JsonFormatter()
    try:
        raise ValueError("test error")
    except ValueError:
        record = logging.LogRecord(
            name="test",
            level=logging.ERROR,
            pathname="test.py",
            lineno=1,
            msg="Something failed",
            args=(),
            exc_info=sys.exc_info(),
        )
        output = formatter.format(record)

    parsed = json.loads(output)
    assert "ValueError: test error" in parsed["exception"]


def test_container_formatter_is_not_json() -> None:
    output = _ContainerFormatter().format(_record("server started"))
    assert "INFO" in output
    assert "server started" in output
    try:
        json.loads(output)
        raise AssertionError("Container format should not be valid JSON")
    except json.JSONDecodeError:
        pass
