"""
Client configuration.

Identity and credential are plain configuration: the client never reads the
environment itself. ClientConfig.from_env() is the one place that does.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from motionsdk.constants import (
    DEFAULT_QUEUE_SIZE,
    DEFAULT_REQUEST_TIMEOUT_MS,
    MOTION_BASE_URL,
)

if TYPE_CHECKING:
    from collections.abc import Mapping

# Never echo these in logs or error messages
REDACTED_ENV_VARS = frozenset({
    "MOTION_API_KEY",
})


@dataclass
class ClientConfig:
    """
    Motion client configuration.

    Attributes:
        user_id: Motion user the API key belongs to. Keys the rate limiters.
        api_key: Motion API key.
        base_url: API base URL that bare paths are resolved against.
        max_queue_size: Requests allowed to wait for admission, per key.
        request_timeout_ms: Total timeout for one HTTP request.

    A missing user_id or api_key is not rejected here. The client built from
    such a config starts closed, with an ArgumentError as the cause.
    """

    user_id: str | None = None
    api_key: str | None = None
    base_url: str = MOTION_BASE_URL
    max_queue_size: int = DEFAULT_QUEUE_SIZE
    request_timeout_ms: int = DEFAULT_REQUEST_TIMEOUT_MS

    def __post_init__(self) -> None:
        if not self.base_url:
            raise ValueError("base_url must not be empty")
        if self.max_queue_size < 0:
            raise ValueError(f"max_queue_size must be >= 0, got {self.max_queue_size}")
        if self.request_timeout_ms <= 0:
            raise ValueError(f"request_timeout_ms must be > 0, got {self.request_timeout_ms}")

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        **overrides: Any,
    ) -> ClientConfig:
        """
        Build a config from MOTION_* environment variables.

        Reads MOTION_USER_ID, MOTION_API_KEY, MOTION_BASE_URL and
        MOTION_MAX_QUEUE_SIZE. Explicit keyword overrides take precedence.

        Args:
            environ: Variables to read (default os.environ).
            **overrides: Field values that win over the environment.

        Raises:
            ValueError: MOTION_MAX_QUEUE_SIZE is not an integer, or a value
                fails validation.
        """
        env = os.environ if environ is None else environ

        values: dict[str, Any] = {
            "user_id": env.get("MOTION_USER_ID") or None,
            "api_key": env.get("MOTION_API_KEY") or None,
        }
        if env.get("MOTION_BASE_URL"):
            values["base_url"] = env["MOTION_BASE_URL"]
        if env.get("MOTION_MAX_QUEUE_SIZE"):
            raw = env["MOTION_MAX_QUEUE_SIZE"]
            try:
                values["max_queue_size"] = int(raw)
            except ValueError:
                raise ValueError(f"MOTION_MAX_QUEUE_SIZE must be an integer, got {raw!r}") from None

        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
