"""
Structured logging for motionsdk.

The library itself only calls logging.getLogger(__name__); applications that
want its records as JSON call setup_logging() once at startup.

What motionsdk logs, and how each part is scrubbed:
- The API key never appears: credential fields are dropped, and X-API-Key
  headers, api_key=... and MOTION_API_KEY=... are masked in free text.
- Request URLs become endpoint templates: no query string, and Motion
  resource IDs replaced, so "/v1/tasks/abc?workspaceId=w" logs as
  "/v1/tasks/{id}".
- Limiter keys keep their kind but lose the user ID: "user_[ID]:requests".
- Email addresses (assignees, creators) in error text become [EMAIL].
- Request bodies and query parameters are never written.

Usage:
    from motionsdk.logging_config import setup_logging

    setup_logging(level="DEBUG", json_format=False)
"""

from __future__ import annotations

import json
import logging
import re
import sys
from datetime import UTC, datetime
from typing import Any
from urllib.parse import urlsplit

from motionsdk.config import REDACTED_ENV_VARS

_URL_PATTERN = re.compile(r"(https?://[^\s\"'<>]+)")

# Collections whose next path segment is a resource ID
MOTION_RESOURCES: tuple[str, ...] = (
    "tasks",
    "recurring-tasks",
    "projects",
    "workspaces",
    "users",
    "comments",
    "schedules",
    "statuses",
    "custom-fields",
)
_RESOURCE_ID = re.compile(
    r"/(" + "|".join(re.escape(r) for r in MOTION_RESOURCES) + r")/(?!me(?:/|$))[^/]+"
)
_LIMITER_KEY = re.compile(r"\buser_[^:\s]+:(requests|overruns)\b")

_SENSITIVE_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    # Header echoed in reprs, e.g. "'X-API-Key': 'abc'"
    (re.compile(r"x-api-key['\"]?\s*[=:,]\s*['\"]?[\w\-\.=+/]+['\"]?", re.I), "[API_KEY]"),
    (re.compile(r"\b(api[_-]?key|apikey)[=:]\s*['\"]?[\w\-\.=+/]+['\"]?", re.I), "[API_KEY]"),
    (
        re.compile(r"\b(" + "|".join(sorted(REDACTED_ENV_VARS)) + r")=\S+"),
        r"\1=[REDACTED]",
    ),
    (re.compile(r"\b[\w\.-]+@[\w\.-]+\.\w+\b"), "[EMAIL]"),
]

# Dropped when the field name equals or contains any of these
BLOCKED_FIELDS: frozenset[str] = frozenset(
    {
        "api_key",
        "apikey",
        "x-api-key",
        "authorization",
        "password",
        "secret",
        "headers",
        "email",
    }
)

# Never written; a placeholder keeps the field visible
REDACTED_FIELDS: dict[str, str] = {
    "json": "[BODY]",
    "data": "[BODY]",
    "body": "[BODY]",
    "params": "[PARAMS]",
}

# Attributes every LogRecord has; everything else came in through `extra`
_RECORD_ATTRS: frozenset[str] = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "exc_info",
        "exc_text",
        "thread",
        "threadName",
        "message",
        "taskName",
    }
)


def endpoint_template(url: str) -> str:
    """Path of a Motion URL with resource IDs replaced by {id}."""
    path = urlsplit(url).path or "/"
    return _RESOURCE_ID.sub(r"/\1/{id}", path)


def mask_limiter_key(key: str) -> str:
    """user_<id>:requests -> user_[ID]:requests."""
    return _LIMITER_KEY.sub(r"user_[ID]:\1", key)


def _replace_url(match: re.Match[str]) -> str:
    path = endpoint_template(match.group(1))
    return path if path != "/" else "[URL]"


def sanitize_text(text: str) -> str:
    """Template URLs, mask limiter keys and hide credentials in free text."""
    if not text:
        return text

    result = _URL_PATTERN.sub(_replace_url, text)
    result = mask_limiter_key(result)
    for pattern, replacement in _SENSITIVE_PATTERNS:
        result = pattern.sub(replacement, result)
    return result


def filter_fields(fields: dict[str, Any]) -> dict[str, Any]:
    """Scrub the `extra` fields of one record."""
    filtered: dict[str, Any] = {}
    for key, value in fields.items():
        key_lower = key.lower()

        if any(blocked in key_lower for blocked in BLOCKED_FIELDS):
            continue

        if key_lower in REDACTED_FIELDS:
            filtered[key] = REDACTED_FIELDS[key_lower]
        elif key_lower == "url":
            filtered["endpoint"] = endpoint_template(str(value))
        elif isinstance(value, (int, float, bool, type(None))):
            filtered[key] = value
        else:
            filtered[key] = sanitize_text(str(value))

    return filtered


def _extra_fields(record: logging.LogRecord) -> dict[str, Any]:
    return {k: v for k, v in record.__dict__.items() if k not in _RECORD_ATTRS}


class JsonFormatter(logging.Formatter):
    """
    One JSON object per line.

    {"ts":"2026-01-01T00:00:00.000+00:00","level":"INFO","logger":"motionsdk.client","msg":"..."}
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "msg": sanitize_text(record.getMessage()),
        }

        if record.levelno >= logging.WARNING:
            entry["file"] = record.filename
            entry["line"] = record.lineno

        if record.exc_info:
            entry["exc"] = sanitize_text(self.formatException(record.exc_info))

        extra = _extra_fields(record)
        if extra:
            entry.update(filter_fields(extra))

        return json.dumps(entry, default=str, ensure_ascii=False)


class SimpleFormatter(logging.Formatter):
    """Human-readable single line, for development."""

    def format(self, record: logging.LogRecord) -> str:
        line = f"{record.levelname:8s} {record.name}: {sanitize_text(record.getMessage())}"

        extra = filter_fields(_extra_fields(record))
        if extra:
            line = f"{line} | " + " ".join(f"{k}={v}" for k, v in extra.items())
        return line


def setup_logging(
    *,
    level: int | str = logging.INFO,
    json_format: bool = True,
    stream: Any = None,
) -> None:
    """
    Route all logging through a single scrubbed stream handler.

    Args:
        level: Root log level.
        json_format: JsonFormatter if True, SimpleFormatter otherwise.
        stream: Output stream (default stderr).
    """
    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setFormatter(JsonFormatter() if json_format else SimpleFormatter())

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    root.addHandler(handler)

    # aiohttp.access/client log full URLs at DEBUG
    logging.getLogger("aiohttp").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)
