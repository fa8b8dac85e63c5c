"""
Tests for logging configuration.

Verifies that formatted records never carry the API key or user IDs, that
Motion URLs become endpoint templates and that JSON output is one object
per line.
"""

from __future__ import annotations

import io
import json
import logging
from collections.abc import Iterator

import pytest

from motionsdk.logging_config import (
    BLOCKED_FIELDS,
    JsonFormatter,
    SimpleFormatter,
    endpoint_template,
    filter_fields,
    mask_limiter_key,
    sanitize_text,
    setup_logging,
)


@pytest.fixture
def restore_root_logger() -> Iterator[None]:
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


def make_record(msg: str, level: int = logging.INFO, **extra: object) -> logging.LogRecord:
    record = logging.LogRecord(
        name="motionsdk.client",
        level=level,
        pathname=__file__,
        lineno=10,
        msg=msg,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestFilterFields:
    """Tests for credential and body field filtering."""

    def test_api_key_fields_dropped(self) -> None:
        filtered = filter_fields({"api_key": "k", "X-API-Key": "k", "queue_depth": 2})
        assert filtered == {"queue_depth": 2}

    def test_partial_matches_dropped(self) -> None:
        filtered = filter_fields(
            {"motion_api_key": "k", "assignee_email": "a@b.co", "request_headers": {}}
        )
        assert filtered == {}

    def test_limiter_key_loses_user_id(self) -> None:
        filtered = filter_fields({"limiter_key": "user_u-42:overruns"})
        assert filtered == {"limiter_key": "user_[ID]:overruns"}

    def test_url_becomes_endpoint_template(self) -> None:
        filtered = filter_fields({"url": "https://api.usemotion.com/v1/tasks/t-9?workspaceId=w1"})
        assert filtered == {"endpoint": "/v1/tasks/{id}"}

    def test_bodies_redacted(self) -> None:
        filtered = filter_fields({"json": {"name": "secret task"}, "params": {"limit": "5"}})
        assert filtered == {"json": "[BODY]", "params": "[PARAMS]"}

    def test_scalars_pass_through(self) -> None:
        fields = {"waited_ms": 120, "open": False, "reason": None, "ratio": 0.5}
        assert filter_fields(fields) == fields

    def test_other_values_stringified_and_scrubbed(self) -> None:
        filtered = filter_fields({"error": ValueError("owner ops@example.com not found")})
        assert filtered == {"error": "owner [EMAIL] not found"}

    def test_blocked_fields_cover_header(self) -> None:
        assert "x-api-key" in BLOCKED_FIELDS


class TestEndpointTemplate:
    """Tests for Motion URL templating."""

    @pytest.mark.parametrize(
        ("url", "expected"),
        [
            ("https://api.usemotion.com/v1/tasks", "/v1/tasks"),
            ("https://api.usemotion.com/v1/tasks/abc123", "/v1/tasks/{id}"),
            ("https://api.usemotion.com/v1/tasks/abc123/move", "/v1/tasks/{id}/move"),
            ("https://api.usemotion.com/v1/recurring-tasks/r1", "/v1/recurring-tasks/{id}"),
            ("https://api.usemotion.com/v1/users/me", "/v1/users/me"),
            ("https://api.usemotion.com/v1/projects/p1/tasks/t1", "/v1/projects/{id}/tasks/{id}"),
            ("https://api.usemotion.com", "/"),
        ],
    )
    def test_templates(self, url: str, expected: str) -> None:
        assert endpoint_template(url) == expected

    def test_mask_limiter_key(self) -> None:
        assert mask_limiter_key("user_null:requests") == "user_[ID]:requests"
        assert mask_limiter_key("limiter") == "limiter"


class TestSanitizeText:
    """Tests for free text scrubbing."""

    def test_header_repr(self) -> None:
        text = "headers: {'X-API-Key': 'abc123', 'Accept': 'application/json'}"
        result = sanitize_text(text)
        assert "abc123" not in result
        assert "application/json" in result

    def test_api_key_assignment(self) -> None:
        assert "abc123" not in sanitize_text("api_key=abc123 failed")

    def test_environment_variable(self) -> None:
        result = sanitize_text("started with MOTION_API_KEY=abc123")
        assert result == "started with MOTION_API_KEY=[REDACTED]"

    def test_limiter_key_in_message(self) -> None:
        assert sanitize_text("full: user_42:requests") == "full: user_[ID]:requests"

    def test_url_query_dropped(self) -> None:
        result = sanitize_text("GET https://api.usemotion.com/v1/tasks?assigneeId=u1 failed")
        assert result == "GET /v1/tasks failed"

    def test_empty(self) -> None:
        assert sanitize_text("") == ""


class TestFormatters:
    """Tests for JsonFormatter and SimpleFormatter."""

    def test_json_output(self) -> None:
        record = make_record("Request failed", logging.WARNING, limiter_key="user_1:requests")
        entry = json.loads(JsonFormatter().format(record))

        assert entry["level"] == "WARNING"
        assert entry["logger"] == "motionsdk.client"
        assert entry["msg"] == "Request failed"
        assert entry["limiter_key"] == "user_[ID]:requests"
        assert entry["line"] == 10

    def test_json_drops_api_key(self) -> None:
        record = make_record("Request failed", api_key="abc123", url="https://x.test/v1/a?k=1")
        output = JsonFormatter().format(record)
        assert "abc123" not in output
        assert json.loads(output)["endpoint"] == "/v1/a"

    def test_info_has_no_location(self) -> None:
        entry = json.loads(JsonFormatter().format(make_record("Client closed")))
        assert "file" not in entry

    def test_simple_output(self) -> None:
        record = make_record("Client closed", reason="done", api_key="abc123")
        line = SimpleFormatter().format(record)
        assert line.startswith("INFO     motionsdk.client: Client closed")
        assert "reason=done" in line
        assert "abc123" not in line


class TestSetupLogging:
    """Tests for setup_logging."""

    @pytest.mark.usefixtures("restore_root_logger")
    def test_json_to_stream(self) -> None:
        stream = io.StringIO()
        setup_logging(level=logging.DEBUG, stream=stream)

        logging.getLogger("motionsdk.test").debug("hello", extra={"queue_depth": 3})

        entry = json.loads(stream.getvalue().strip())
        assert entry["msg"] == "hello"
        assert entry["queue_depth"] == 3

    @pytest.mark.usefixtures("restore_root_logger")
    def test_single_handler(self) -> None:
        setup_logging(stream=io.StringIO())
        setup_logging(stream=io.StringIO(), json_format=False)

        root = logging.getLogger()
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, SimpleFormatter)
        assert logging.getLogger("aiohttp").level == logging.WARNING
