"""Retry with exponential backoff for room service operations."""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Callable, Coroutine
from typing import Any, TypeVar

from pydantic import BaseModel, Field

logger = logging.getLogger("watchsync.retry")

__all__ = ["RetryPolicy", "retry_with_backoff"]

T = TypeVar("T")


class RetryPolicy(BaseModel):
    """Configures retry behaviour for sends and reconnects."""

    max_retries: int = Field(default=3, ge=0)
    base_delay_seconds: float = Field(default=1.0, gt=0.0)
    max_delay_seconds: float = Field(default=60.0, gt=0.0)
    exponential_base: float = Field(default=2.0, gt=0.0)
    jitter_seconds: float = Field(default=0.0, ge=0.0)

    def delay_for(self, attempt: int) -> float:
        """Delay before retry number *attempt* (0-based)."""
        delay = min(
            self.base_delay_seconds * (self.exponential_base**attempt),
            self.max_delay_seconds,
        )
        if self.jitter_seconds:
            delay += random.uniform(0.0, self.jitter_seconds)  # noqa: S311  # nosec B311
        return delay

    def delays(self) -> list[float]:
        """The full delay schedule, one entry per retry."""
        return [self.delay_for(attempt) for attempt in range(self.max_retries)]


async def retry_with_backoff(
    fn: Callable[..., Coroutine[Any, Any, T]],
    policy: RetryPolicy,
    *args: Any,
    retryable: Callable[[Exception], bool] | None = None,
    **kwargs: Any,
) -> T:
    """Execute *fn* with exponential backoff retry.

    Exceptions for which *retryable* returns False are raised immediately.
    Raises the last exception if all retries are exhausted.
    """
    last_exc: Exception | None = None
    for attempt in range(1 + policy.max_retries):
        try:
            return await fn(*args, **kwargs)
        except Exception as exc:
            last_exc = exc
            if retryable is not None and not retryable(exc):
                raise
            if attempt >= policy.max_retries:
                break
            delay = policy.delay_for(attempt)
            logger.warning(
                "Attempt %d/%d failed (%s), retrying in %.2fs",
                attempt + 1,
                policy.max_retries + 1,
                exc,
                delay,
                extra={"attempt": attempt + 1, "delay": delay},
            )
            await asyncio.sleep(delay)

    assert last_exc is not None
    raise last_exc
