"""Tunable constants for the playback synchronization engine."""

from __future__ import annotations

from pydantic import BaseModel, Field

from watchsync.core.retry import RetryPolicy


def _default_send_retry() -> RetryPolicy:
    return RetryPolicy(max_retries=1, base_delay_seconds=0.25, max_delay_seconds=1.0)


def _default_reconnect() -> RetryPolicy:
    return RetryPolicy(max_retries=5, base_delay_seconds=1.0, max_delay_seconds=16.0)


class SyncConfig(BaseModel):
    """Engine configuration.

    The thresholds are heuristics rather than exact values; every one of them
    can be tuned per deployment. All durations are in seconds.
    """

    suppression_window_seconds: float = Field(default=0.1, gt=0.0)
    coalesce_window_seconds: float = Field(default=0.5, ge=0.0)
    drift_threshold_seconds: float = Field(default=1.5, ge=0.0)
    poll_interval_seconds: float = Field(default=1.0, gt=0.0)
    poll_failure_threshold: int = Field(default=3, ge=1)
    handshake_timeout_seconds: float = Field(default=10.0, gt=0.0)
    send_timeout_seconds: float = Field(default=2.0, gt=0.0)
    send_retry: RetryPolicy = Field(default_factory=_default_send_retry)
    reconnect: RetryPolicy = Field(default_factory=_default_reconnect)
    stable_connection_seconds: float = Field(default=5.0, ge=0.0)
    heartbeat_interval_seconds: float = Field(default=30.0, gt=0.0)
    resync_interval_seconds: float | None = Field(default=None, gt=0.0)
    push_enabled: bool = True
