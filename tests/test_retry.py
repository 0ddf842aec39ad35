"""Tests for retry with exponential backoff."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from watchsync.core.errors import RoomServiceError, UpdateRejectedError
from watchsync.core.retry import RetryPolicy, retry_with_backoff


class TestRetryPolicy:
    def test_defaults(self) -> None:
        policy = RetryPolicy()
        assert policy.max_retries == 3
        assert policy.base_delay_seconds == 1.0

    def test_exponential_schedule_capped(self) -> None:
        policy = RetryPolicy(max_retries=6, base_delay_seconds=1.0, max_delay_seconds=16.0)
        assert policy.delays() == [1.0, 2.0, 4.0, 8.0, 16.0, 16.0]

    def test_jitter_bounds(self) -> None:
        policy = RetryPolicy(base_delay_seconds=1.0, jitter_seconds=0.5)
        for _ in range(20):
            assert 1.0 <= policy.delay_for(0) <= 1.5

    def test_negative_retries_rejected(self) -> None:
        with pytest.raises(ValueError):
            RetryPolicy(max_retries=-1)


class TestRetryWithBackoff:
    async def test_returns_first_success(self) -> None:
        fn = AsyncMock(return_value="ok")
        assert await retry_with_backoff(fn, RetryPolicy(), "a", key="b") == "ok"
        fn.assert_awaited_once_with("a", key="b")

    async def test_retries_then_succeeds(self) -> None:
        delays: list[float] = []

        async def tracking_sleep(seconds: float) -> None:
            delays.append(seconds)

        fn = AsyncMock(side_effect=[RoomServiceError("down"), RoomServiceError("down"), "ok"])
        policy = RetryPolicy(max_retries=3, base_delay_seconds=0.5)

        with patch("watchsync.core.retry.asyncio.sleep", tracking_sleep):
            result = await retry_with_backoff(fn, policy)

        assert result == "ok"
        assert delays == [0.5, 1.0]

    async def test_raises_last_error_when_exhausted(self) -> None:
        delays: list[float] = []

        async def tracking_sleep(seconds: float) -> None:
            delays.append(seconds)

        fn = AsyncMock(side_effect=RoomServiceError("down"))

        with (
            patch("watchsync.core.retry.asyncio.sleep", tracking_sleep),
            pytest.raises(RoomServiceError),
        ):
            await retry_with_backoff(fn, RetryPolicy(max_retries=2))

        assert fn.await_count == 3
        assert len(delays) == 2

    async def test_non_retryable_raised_immediately(self) -> None:
        fn = AsyncMock(side_effect=UpdateRejectedError("bad"))

        with pytest.raises(UpdateRejectedError):
            await retry_with_backoff(
                fn,
                RetryPolicy(max_retries=5),
                retryable=lambda exc: not isinstance(exc, UpdateRejectedError),
            )

        fn.assert_awaited_once()
