"""Tests for ClientConfig."""

from __future__ import annotations

import pytest

from motionsdk.config import REDACTED_ENV_VARS, ClientConfig
from motionsdk.constants import MOTION_BASE_URL


class TestClientConfig:
    """Tests for ClientConfig defaults and validation."""

    def test_defaults(self) -> None:
        config = ClientConfig()
        assert config.user_id is None
        assert config.api_key is None
        assert config.base_url == MOTION_BASE_URL
        assert config.max_queue_size == 20
        assert config.request_timeout_ms == 10000

    def test_missing_identity_is_allowed(self) -> None:
        """Missing credentials are handled by the client, not by validation."""
        ClientConfig(user_id=None, api_key=None)

    @pytest.mark.parametrize(
        ("kwargs", "match"),
        [
            ({"max_queue_size": -1}, "max_queue_size"),
            ({"request_timeout_ms": 0}, "request_timeout_ms"),
            ({"base_url": ""}, "base_url"),
        ],
    )
    def test_invalid_values(self, kwargs: dict[str, object], match: str) -> None:
        with pytest.raises(ValueError, match=match):
            ClientConfig(**kwargs)  # type: ignore[arg-type]

    def test_zero_queue_size_is_valid(self) -> None:
        assert ClientConfig(max_queue_size=0).max_queue_size == 0


class TestFromEnv:
    """Tests for ClientConfig.from_env."""

    def test_reads_motion_variables(self) -> None:
        config = ClientConfig.from_env(
            {
                "MOTION_USER_ID": "user-1",
                "MOTION_API_KEY": "key-1",
                "MOTION_BASE_URL": "http://localhost:8080/v1",
                "MOTION_MAX_QUEUE_SIZE": "5",
            }
        )
        assert config.user_id == "user-1"
        assert config.api_key == "key-1"
        assert config.base_url == "http://localhost:8080/v1"
        assert config.max_queue_size == 5

    def test_empty_environment(self) -> None:
        config = ClientConfig.from_env({})
        assert config.user_id is None
        assert config.api_key is None
        assert config.base_url == MOTION_BASE_URL

    def test_empty_strings_are_missing(self) -> None:
        config = ClientConfig.from_env({"MOTION_USER_ID": "", "MOTION_API_KEY": ""})
        assert config.user_id is None
        assert config.api_key is None

    def test_overrides_win(self) -> None:
        config = ClientConfig.from_env(
            {"MOTION_USER_ID": "from-env", "MOTION_API_KEY": "env-key"},
            user_id="explicit",
            request_timeout_ms=500,
        )
        assert config.user_id == "explicit"
        assert config.api_key == "env-key"
        assert config.request_timeout_ms == 500

    def test_none_override_keeps_environment(self) -> None:
        config = ClientConfig.from_env({"MOTION_USER_ID": "from-env"}, user_id=None)
        assert config.user_id == "from-env"

    def test_bad_queue_size(self) -> None:
        with pytest.raises(ValueError, match="MOTION_MAX_QUEUE_SIZE must be an integer"):
            ClientConfig.from_env({"MOTION_MAX_QUEUE_SIZE": "lots"})

    def test_defaults_to_process_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("MOTION_USER_ID", "process-user")
        monkeypatch.delenv("MOTION_API_KEY", raising=False)
        config = ClientConfig.from_env()
        assert config.user_id == "process-user"
        assert config.api_key is None

    def test_api_key_is_redacted(self) -> None:
        assert "MOTION_API_KEY" in REDACTED_ENV_VARS
