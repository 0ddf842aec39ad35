"""Tests for the in-memory room service."""

from __future__ import annotations

import asyncio

import pytest

from watchsync.core.errors import (
    PushNotSupportedError,
    RoomAlreadyExistsError,
    RoomNotFoundError,
    UpdateRejectedError,
)
from watchsync.models.enums import PlaybackAction, SessionRole
from watchsync.service.memory import InMemoryRoomService
from tests.conftest import make_update


class TestRooms:
    async def test_first_joiner_is_host(self, service: InMemoryRoomService) -> None:
        host = await service.create_room("r1", "a", display_name="Happy1234")
        guest = await service.join_room("r1", "b")

        assert host.role == SessionRole.HOST
        assert guest.role == SessionRole.GUEST
        assert guest.participants == ["a", "b"]

    async def test_create_existing_room_fails(self, service: InMemoryRoomService) -> None:
        await service.create_room("r1", "a")
        with pytest.raises(RoomAlreadyExistsError):
            await service.create_room("r1", "b")

    async def test_join_unknown_room_fails(self, service: InMemoryRoomService) -> None:
        with pytest.raises(RoomNotFoundError):
            await service.join_room("nope", "a")

    async def test_rejoin_keeps_role(self, service: InMemoryRoomService) -> None:
        await service.create_room("r1", "a")
        await service.join_room("r1", "b")

        again = await service.join_room("r1", "a")

        assert again.role == SessionRole.HOST
        assert again.participants == ["a", "b"]

    async def test_joining_another_room_leaves_the_first(
        self, service: InMemoryRoomService
    ) -> None:
        await service.create_room("r1", "a")
        await service.join_room("r1", "b")
        await service.create_room("r2", "c")

        await service.join_room("r2", "b")

        room = service.get_room("r1")
        assert room is not None
        assert room.participants == {"a"}

    async def test_room_deleted_when_empty(self, service: InMemoryRoomService) -> None:
        await service.create_room("r1", "a")
        await service.join_room("r1", "b")

        await service.leave_room("r1", "a")
        assert service.get_room("r1") is not None
        await service.leave_room("r1", "b")

        assert service.get_room("r1") is None
        with pytest.raises(RoomNotFoundError):
            await service.join_room("r1", "c")

    async def test_leave_unknown_is_noop(self, service: InMemoryRoomService) -> None:
        await service.leave_room("r1", "ghost")

    async def test_handle_carries_latest_update(self, service: InMemoryRoomService) -> None:
        await service.create_room("room-1", "host")
        latest = make_update(PlaybackAction.PAUSE, 42.0, origin_id="host")
        await service.post_update(latest)

        handle = await service.join_room("room-1", "late")

        assert handle.latest_update == latest


class TestUpdates:
    async def test_post_from_non_member_rejected(self, service: InMemoryRoomService) -> None:
        await service.create_room("room-1", "host")
        with pytest.raises(UpdateRejectedError):
            await service.post_update(make_update(origin_id="stranger"))

    async def test_query_since_is_ordered_and_inclusive(
        self, service: InMemoryRoomService
    ) -> None:
        await service.create_room("room-1", "peer")
        for created_at in (3.0, 0.5, 1.0, 2.0):
            await service.post_update(make_update(created_at=created_at))

        updates = await service.query_updates_since("room-1", 1.0)

        assert [u.created_at for u in updates] == [1.0, 2.0, 3.0]

    async def test_query_unknown_room_fails(self, service: InMemoryRoomService) -> None:
        with pytest.raises(RoomNotFoundError):
            await service.query_updates_since("nope", 0.0)

    async def test_history_is_capped(self) -> None:
        service = InMemoryRoomService(history_size=50)
        await service.create_room("room-1", "peer")
        for i in range(60):
            await service.post_update(make_update(created_at=float(i)))

        updates = await service.query_updates_since("room-1", -1.0)

        assert len(updates) == 50
        assert updates[0].created_at == 10.0


class TestSubscriptions:
    async def test_fan_out_excludes_origin(self, service: InMemoryRoomService) -> None:
        await service.create_room("room-1", "a")
        await service.join_room("room-1", "b")
        sub_a = await service.subscribe_updates("room-1", exclude_origin="a")
        sub_b = await service.subscribe_updates("room-1", exclude_origin="b")

        update = make_update(origin_id="a")
        await service.post_update(update)

        assert await asyncio.wait_for(anext(aiter(sub_b)), timeout=1.0) == update
        with pytest.raises(TimeoutError):
            await asyncio.wait_for(anext(aiter(sub_a)), timeout=0.02)

        await sub_a.close()
        await sub_b.close()
        assert service.subscription_count == 0

    async def test_iteration_ends_when_room_deleted(self, service: InMemoryRoomService) -> None:
        await service.create_room("room-1", "a")
        sub = await service.subscribe_updates("room-1")

        await service.leave_room("room-1", "a")

        received = [u async for u in sub]
        assert received == []

    async def test_disconnect_subscribers(self, service: InMemoryRoomService) -> None:
        await service.create_room("room-1", "a")
        sub = await service.subscribe_updates("room-1")

        assert await service.disconnect_subscribers("room-1") == 1

        assert [u async for u in sub] == []

    async def test_bounded_queue_drops_oldest(self) -> None:
        service = InMemoryRoomService(max_queue_size=2)
        await service.create_room("room-1", "peer")
        sub = await service.subscribe_updates("room-1")
        for i in range(3):
            await service.post_update(make_update(created_at=float(i)))
        await service.disconnect_subscribers("room-1")

        received = [u.created_at async for u in sub]

        assert received == [1.0, 2.0]

    async def test_subscribe_unknown_room_fails(self, service: InMemoryRoomService) -> None:
        with pytest.raises(RoomNotFoundError):
            await service.subscribe_updates("nope")

    async def test_push_disabled(self) -> None:
        service = InMemoryRoomService(push=False)
        await service.create_room("room-1", "a")

        assert service.supports_push is False
        with pytest.raises(PushNotSupportedError):
            await service.subscribe_updates("room-1")


class TestSessions:
    async def test_heartbeat(self, service: InMemoryRoomService) -> None:
        await service.create_room("room-1", "a")
        assert await service.heartbeat("a") is True
        assert await service.heartbeat("ghost") is False

    async def test_evict_inactive(self, service: InMemoryRoomService) -> None:
        await service.create_room("room-1", "a")
        await service.join_room("room-1", "b")
        service._members["a"].last_seen -= 120.0

        evicted = await service.evict_inactive(60.0)

        assert evicted == ["a"]
        room = service.get_room("room-1")
        assert room is not None
        assert room.participants == {"b"}

    async def test_close_ends_everything(self, service: InMemoryRoomService) -> None:
        await service.create_room("room-1", "a")
        sub = await service.subscribe_updates("room-1")

        await service.close()

        assert [u async for u in sub] == []
        assert service.get_room("room-1") is None
