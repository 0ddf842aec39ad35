"""In-memory room service using asyncio queues."""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass, field

from watchsync.core.errors import (
    RoomAlreadyExistsError,
    RoomNotFoundError,
    UpdateRejectedError,
)
from watchsync.models.enums import SessionRole
from watchsync.models.room import Room, RoomHandle
from watchsync.models.update import PlaybackUpdate
from watchsync.service.base import RoomService, UpdateSubscription

logger = logging.getLogger("watchsync.service.memory")


@dataclass
class _Member:
    origin_id: str
    room_id: str
    role: SessionRole
    display_name: str | None = None
    last_seen: float = field(default_factory=time.monotonic)


class InMemoryRoomService(RoomService):
    """In-process room service for single-process use and tests.

    Mirrors the reference room server: the first participant of a room is
    its host, a room disappears once its last participant leaves, and each
    room keeps a bounded history of recent updates for pollers and late
    joiners.
    """

    def __init__(
        self,
        *,
        push: bool = True,
        history_size: int = 50,
        max_queue_size: int = 100,
    ) -> None:
        """Initialize the in-memory room service.

        Args:
            push: Advertise push support (``subscribe_updates``).
            history_size: Number of updates kept per room.
            max_queue_size: Maximum number of updates queued per subscription.
                Older updates are dropped when the queue is full.
        """
        self._push = push
        self._history_size = history_size
        self._max_queue_size = max_queue_size
        self._rooms: dict[str, Room] = {}
        self._history: dict[str, deque[PlaybackUpdate]] = {}
        self._members: dict[str, _Member] = {}
        self._subscriptions: dict[str, set[_MemorySubscription]] = {}

    @property
    def supports_push(self) -> bool:
        return self._push

    # Room operations

    async def create_room(
        self, room_id: str, origin_id: str, *, display_name: str | None = None
    ) -> RoomHandle:
        if room_id in self._rooms:
            raise RoomAlreadyExistsError(room_id)
        self._rooms[room_id] = Room(id=room_id)
        self._history[room_id] = deque(maxlen=self._history_size)
        logger.info("Room %s created", room_id)
        return self._add_member(room_id, origin_id, display_name)

    async def join_room(
        self, room_id: str, origin_id: str, *, display_name: str | None = None
    ) -> RoomHandle:
        if room_id not in self._rooms:
            raise RoomNotFoundError(room_id)
        return self._add_member(room_id, origin_id, display_name)

    async def leave_room(self, room_id: str, origin_id: str) -> None:
        member = self._members.get(origin_id)
        if member is None or member.room_id != room_id:
            return
        self._remove_member(member)

    async def post_update(self, update: PlaybackUpdate) -> None:
        member = self._members.get(update.origin_id)
        if member is None or member.room_id != update.room_id:
            raise UpdateRejectedError(
                f"{update.origin_id} is not a participant of room {update.room_id}"
            )
        member.last_seen = time.monotonic()
        self._history[update.room_id].append(update)
        for sub in list(self._subscriptions.get(update.room_id, ())):
            if sub.exclude_origin != update.origin_id:
                sub.enqueue(update)

    async def subscribe_updates(
        self, room_id: str, *, exclude_origin: str | None = None
    ) -> UpdateSubscription:
        if not self._push:
            return await super().subscribe_updates(room_id, exclude_origin=exclude_origin)
        if room_id not in self._rooms:
            raise RoomNotFoundError(room_id)
        sub = _MemorySubscription(
            room_id=room_id,
            exclude_origin=exclude_origin,
            max_queue_size=self._max_queue_size,
            on_close=self._discard_subscription,
        )
        self._subscriptions.setdefault(room_id, set()).add(sub)
        return sub

    async def query_updates_since(self, room_id: str, since: float) -> list[PlaybackUpdate]:
        history = self._history.get(room_id)
        if history is None:
            raise RoomNotFoundError(room_id)
        return sorted((u for u in history if u.created_at >= since), key=lambda u: u.created_at)

    async def heartbeat(self, origin_id: str) -> bool:
        member = self._members.get(origin_id)
        if member is None:
            return False
        member.last_seen = time.monotonic()
        return True

    async def close(self) -> None:
        """End all subscriptions and forget all rooms."""
        for subs in list(self._subscriptions.values()):
            for sub in list(subs):
                await sub.close()
        self._subscriptions.clear()
        self._rooms.clear()
        self._history.clear()
        self._members.clear()

    # Service-side maintenance

    async def evict_inactive(self, max_idle_seconds: float) -> list[str]:
        """Remove sessions without activity for *max_idle_seconds*.

        Returns:
            The evicted origin ids.
        """
        now = time.monotonic()
        stale = [m for m in self._members.values() if now - m.last_seen > max_idle_seconds]
        for member in stale:
            logger.info("Removing inactive session %s", member.origin_id)
            self._remove_member(member)
        return [m.origin_id for m in stale]

    async def disconnect_subscribers(self, room_id: str) -> int:
        """Close every push subscription of *room_id*, as a dropped channel would."""
        subs = list(self._subscriptions.get(room_id, ()))
        for sub in subs:
            await sub.close()
        return len(subs)

    def get_room(self, room_id: str) -> Room | None:
        room = self._rooms.get(room_id)
        return room.model_copy(deep=True) if room is not None else None

    @property
    def subscription_count(self) -> int:
        return sum(len(subs) for subs in self._subscriptions.values())

    # Internal helpers

    def _add_member(self, room_id: str, origin_id: str, display_name: str | None) -> RoomHandle:
        room = self._rooms[room_id]
        existing = self._members.get(origin_id)
        if existing is not None and existing.room_id != room_id:
            self._remove_member(existing)
            existing = None
        if existing is None:
            role = SessionRole.HOST if not room.participants else SessionRole.GUEST
            existing = _Member(
                origin_id=origin_id, room_id=room_id, role=role, display_name=display_name
            )
            self._members[origin_id] = existing
            room.participants.add(origin_id)
            logger.info(
                "%s joined room %s (%d participants)",
                origin_id,
                room_id,
                len(room.participants),
            )
        existing.last_seen = time.monotonic()

        history = self._history[room_id]
        return RoomHandle(
            room_id=room_id,
            origin_id=origin_id,
            role=existing.role,
            participants=sorted(room.participants),
            created_at=room.created_at,
            latest_update=history[-1] if history else None,
        )

    def _remove_member(self, member: _Member) -> None:
        self._members.pop(member.origin_id, None)
        room = self._rooms.get(member.room_id)
        if room is None:
            return
        room.participants.discard(member.origin_id)
        if not room.participants:
            del self._rooms[member.room_id]
            self._history.pop(member.room_id, None)
            for sub in self._subscriptions.pop(member.room_id, set()):
                sub.terminate()
            logger.info("Room %s deleted (empty)", member.room_id)

    def _discard_subscription(self, sub: _MemorySubscription) -> None:
        subs = self._subscriptions.get(sub.room_id)
        if subs is not None:
            subs.discard(sub)
            if not subs:
                del self._subscriptions[sub.room_id]


class _MemorySubscription(UpdateSubscription):
    """Bounded per-subscriber queue, oldest update dropped when full."""

    def __init__(
        self,
        room_id: str,
        exclude_origin: str | None,
        max_queue_size: int,
        on_close: Callable[[_MemorySubscription], None],
    ) -> None:
        self.room_id = room_id
        self.exclude_origin = exclude_origin
        self._queue: deque[PlaybackUpdate] = deque(maxlen=max_queue_size)
        self._event = asyncio.Event()
        self._closed = False
        self._on_close = on_close

    def enqueue(self, update: PlaybackUpdate) -> None:
        if self._closed:
            return
        self._queue.append(update)
        self._event.set()

    def terminate(self) -> None:
        """End iteration without notifying the service."""
        self._closed = True
        self._event.set()

    async def close(self) -> None:
        if self._closed:
            return
        self.terminate()
        self._on_close(self)

    def __aiter__(self) -> AsyncIterator[PlaybackUpdate]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[PlaybackUpdate]:
        while True:
            while self._queue:
                yield self._queue.popleft()
            if self._closed:
                return
            self._event.clear()
            await self._event.wait()
