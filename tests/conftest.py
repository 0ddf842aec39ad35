"""Shared test fixtures and helpers."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Coroutine
from typing import Any

import pytest

from watchsync.config import SyncConfig
from watchsync.core.retry import RetryPolicy
from watchsync.models.enums import PlaybackAction, SessionRole
from watchsync.models.room import Session
from watchsync.models.update import PlaybackUpdate
from watchsync.player.mock import MockVideoPlayer
from watchsync.service.memory import InMemoryRoomService


@pytest.fixture
def advance() -> Callable[[int], Coroutine[Any, Any, None]]:
    """Yield control to let pending tasks run without real delay.

    Replaces ``await asyncio.sleep(0.05)`` patterns with zero-delay
    event loop yields::

        await advance()       # 5 yields (default)
        await advance(10)     # 10 yields for heavier workloads
    """

    async def _advance(n: int = 5) -> None:
        for _ in range(n):
            await asyncio.sleep(0)

    return _advance


@pytest.fixture
def service() -> InMemoryRoomService:
    return InMemoryRoomService()


@pytest.fixture
def player() -> MockVideoPlayer:
    return MockVideoPlayer()


@pytest.fixture
def session() -> Session:
    return Session(id="me", room_id="room-1", role=SessionRole.GUEST)


@pytest.fixture
def fast_config() -> SyncConfig:
    """Config with short windows so tests run in milliseconds."""
    return SyncConfig(
        coalesce_window_seconds=0.02,
        poll_interval_seconds=0.01,
        send_timeout_seconds=0.5,
        handshake_timeout_seconds=0.5,
        stable_connection_seconds=0.0,
        send_retry=RetryPolicy(max_retries=1, base_delay_seconds=0.001),
        reconnect=RetryPolicy(max_retries=5, base_delay_seconds=1.0, max_delay_seconds=16.0),
    )


def make_update(
    action: PlaybackAction = PlaybackAction.PLAY,
    position: float = 0.0,
    *,
    room_id: str = "room-1",
    origin_id: str = "peer",
    created_at: float = 1000.0,
    **kwargs: Any,
) -> PlaybackUpdate:
    return PlaybackUpdate(
        room_id=room_id,
        origin_id=origin_id,
        action=action,
        position=position,
        created_at=created_at,
        **kwargs,
    )


async def wait_for_condition(
    predicate: Callable[[], bool], timeout: float = 1.0, interval: float = 0.005
) -> None:
    """Poll *predicate* until it holds, failing the test after *timeout*."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(interval)
