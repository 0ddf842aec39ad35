"""watchsync quickstart: a host and a guest watching in sync.

Both sides share one in-memory room service and drive mock players, so the
example runs without a network. Swap ``InMemoryRoomService`` for
``HTTPRoomService`` to talk to a real room server.

Run with:
    uv run python examples/quickstart.py
"""

from __future__ import annotations

import asyncio
import logging

from watchsync import (
    EngineEvent,
    EngineEventType,
    InMemoryRoomService,
    MockVideoPlayer,
    RoomSessionManager,
    SyncConfig,
)

logging.basicConfig(level=logging.INFO, format="%(name)s %(levelname)s %(message)s")


async def main() -> None:
    service = InMemoryRoomService()
    config = SyncConfig(coalesce_window_seconds=0.1, poll_interval_seconds=0.25)

    host_player = MockVideoPlayer(playing=True)
    guest_player = MockVideoPlayer(playing=True)
    host = RoomSessionManager(service, host_player, config=config)
    guest = RoomSessionManager(service, guest_player, config=config)

    @guest.on(EngineEventType.REMOTE_UPDATE_APPLIED)
    async def on_applied(event: EngineEvent) -> None:
        print(f"{guest.display_name} applied {event.data['action']} at {event.data['position']}")

    async with host, guest:
        # --- Create and share a room -------------------------------------
        session = await host.create_room()
        invite = host.invite_url("https://www.netflix.com/watch/80057281")
        print(f"{host.display_name} created room {session.room_id}: {invite}")

        await guest.join_from_url(invite)
        await asyncio.sleep(0.2)

        # --- The host pauses at 42s --------------------------------------
        host_player.position = 42.0
        await host_player.pause()
        await asyncio.sleep(0.3)

        print(f"Guest position={guest_player.position} playing={guest_player.playing}")
        print(f"Guest updates sent: {guest.capture.sent_count if guest.capture else 0}")


if __name__ == "__main__":
    asyncio.run(main())
