"""Base abstraction for inbound update delivery strategies."""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel

from watchsync.models.enums import ConnectionState, DeliveryKind
from watchsync.models.update import PlaybackUpdate
from watchsync.service.base import RoomService

# Type alias for the emit callback
UpdateCallback = Callable[[PlaybackUpdate], Awaitable[Any]]


class TransportHealth(BaseModel):
    """Health information for a transport."""

    state: ConnectionState = ConnectionState.DISCONNECTED
    strategy: DeliveryKind | None = None
    connected_at: datetime | None = None
    last_update_at: datetime | None = None
    updates_received: int = 0
    updates_sent: int = 0
    send_failures: int = 0
    reconnect_attempts: int = 0
    error: str | None = None


class DeliveryStrategy(ABC):
    """One way of receiving a room's updates from the room service.

    Lifecycle:
        1. ``connect()`` performs the handshake and raises if it fails
        2. ``run(emit)`` delivers updates until ``stop()`` is called or the
           channel drops (by raising or returning)
        3. ``stop()`` releases the channel; the strategy is not reused
    """

    @property
    @abstractmethod
    def kind(self) -> DeliveryKind: ...

    @property
    def name(self) -> str:
        return str(self.kind)

    @abstractmethod
    async def connect(self) -> None:
        """Establish the channel. Raises on failure or timeout."""
        ...

    @abstractmethod
    async def run(self, emit: UpdateCallback) -> None:
        """Deliver updates to *emit* until stopped or disconnected."""
        ...

    @abstractmethod
    async def stop(self) -> None:
        """Signal ``run()`` to exit and close the channel."""
        ...


class BaseDeliveryStrategy(DeliveryStrategy):
    """Convenience base class with common strategy functionality.

    Provides:
    - Stop signal via asyncio.Event
    - Update counting and timestamps
    """

    def __init__(self, service: RoomService, room_id: str) -> None:
        self._service = service
        self._room_id = room_id
        self._stop_event = asyncio.Event()
        self._updates_received = 0
        self._last_update_at: datetime | None = None

    @property
    def name(self) -> str:
        return f"{self.kind}:{self._room_id}"

    @property
    def updates_received(self) -> int:
        return self._updates_received

    @property
    def last_update_at(self) -> datetime | None:
        return self._last_update_at

    async def stop(self) -> None:
        self._stop_event.set()

    def _should_stop(self) -> bool:
        return self._stop_event.is_set()

    def _record_update(self) -> None:
        self._updates_received += 1
        self._last_update_at = datetime.now(UTC)
