"""Tests for engine and room service configuration."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from watchsync.config import SyncConfig
from watchsync.service.config import HTTPRoomServiceConfig


class TestSyncConfig:
    def test_defaults(self) -> None:
        config = SyncConfig()
        assert config.suppression_window_seconds == 0.1
        assert config.drift_threshold_seconds == 1.5
        assert config.poll_interval_seconds == 1.0
        assert config.heartbeat_interval_seconds == 30.0
        assert config.stable_connection_seconds == 5.0
        assert config.resync_interval_seconds is None
        assert config.push_enabled is True

    def test_reconnect_schedule(self) -> None:
        assert SyncConfig().reconnect.delays() == [1.0, 2.0, 4.0, 8.0, 16.0]

    def test_send_retries_at_least_once(self) -> None:
        assert SyncConfig().send_retry.max_retries >= 1

    def test_instances_do_not_share_policies(self) -> None:
        a, b = SyncConfig(), SyncConfig()
        assert a.reconnect is not b.reconnect

    @pytest.mark.parametrize(
        "field",
        ["suppression_window_seconds", "poll_interval_seconds", "send_timeout_seconds"],
    )
    def test_non_positive_durations_rejected(self, field: str) -> None:
        with pytest.raises(ValidationError):
            SyncConfig(**{field: 0})

    def test_zero_coalesce_window_allowed(self) -> None:
        assert SyncConfig(coalesce_window_seconds=0).coalesce_window_seconds == 0


class TestHTTPRoomServiceConfig:
    def test_ws_url_derived_from_https(self) -> None:
        config = HTTPRoomServiceConfig(base_url="https://party.example.com/api/")
        assert config.base_url == "https://party.example.com/api"
        assert config.ws_url == "wss://party.example.com/api"

    def test_ws_url_derived_from_http(self) -> None:
        config = HTTPRoomServiceConfig(base_url="http://localhost:4000")
        assert config.ws_url == "ws://localhost:4000"

    def test_explicit_ws_url(self) -> None:
        config = HTTPRoomServiceConfig(
            base_url="https://api.example.com", ws_url="wss://push.example.com/"
        )
        assert config.ws_url == "wss://push.example.com"

    @pytest.mark.parametrize("url", ["ftp://example.com", "example.com", "https://"])
    def test_invalid_base_url(self, url: str) -> None:
        with pytest.raises(ValidationError):
            HTTPRoomServiceConfig(base_url=url)

    def test_invalid_ws_url(self) -> None:
        with pytest.raises(ValidationError):
            HTTPRoomServiceConfig(base_url="https://a.example.com", ws_url="https://b.example.com")

    def test_api_key_is_secret(self) -> None:
        config = HTTPRoomServiceConfig(base_url="https://a.example.com", api_key="s3cret")
        assert "s3cret" not in repr(config)
        assert config.api_key is not None
        assert config.api_key.get_secret_value() == "s3cret"
