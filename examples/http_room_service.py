"""Join a watch party hosted on a remote room server.

Reads the server location from the environment and joins the room named
in an invite URL. The player here is a mock; a real integration wraps the
page's video element in a ``VideoPlayer``.

Run with:
    WATCHSYNC_BASE_URL=https://party.example.com/api \
    uv run python examples/http_room_service.py "https://www.netflix.com/watch/1?id=K3J9QX2A"
"""

from __future__ import annotations

import asyncio
import logging
import os
import sys

from watchsync import (
    EngineEvent,
    EngineEventType,
    HTTPRoomService,
    HTTPRoomServiceConfig,
    MockVideoPlayer,
    RoomSessionManager,
    SyncConfig,
)

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(message)s")


async def main(invite_url: str) -> None:
    config = HTTPRoomServiceConfig(
        base_url=os.environ.get("WATCHSYNC_BASE_URL", "http://localhost:3000/api"),
        api_key=os.environ.get("WATCHSYNC_API_KEY"),
    )
    service = HTTPRoomService(config)
    manager = RoomSessionManager(service, MockVideoPlayer(), config=SyncConfig())

    @manager.on(EngineEventType.CONNECTION_STATE_CHANGED)
    async def on_state(event: EngineEvent) -> None:
        print(f"connection: {event.data['state']}")

    @manager.on(EngineEventType.SYNC_FAILED)
    async def on_failed(event: EngineEvent) -> None:
        print(f"sync failed: {event.data['error']}; call retry() to reconnect")

    try:
        async with manager:
            session = await manager.join_from_url(invite_url)
            if session is None:
                print("Invite URL has no room id")
                return
            print(f"Joined {session.room_id} as {session.display_name} ({session.role})")
            await asyncio.sleep(60)
    finally:
        await service.close()


if __name__ == "__main__":
    if len(sys.argv) != 2:
        sys.exit("usage: http_room_service.py <invite-url>")
    asyncio.run(main(sys.argv[1]))
