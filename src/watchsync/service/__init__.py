"""Room service clients."""

from typing import Any

from watchsync.service.base import RoomService, UpdateSubscription
from watchsync.service.codec import parse_handle, parse_update, parse_updates, update_to_wire
from watchsync.service.memory import InMemoryRoomService

__all__ = [
    "InMemoryRoomService",
    "RoomService",
    "UpdateSubscription",
    "parse_handle",
    "parse_update",
    "parse_updates",
    "update_to_wire",
    # Lazy imports for the network client
    "HTTPRoomService",
    "HTTPRoomServiceConfig",
]


def __getattr__(name: str) -> Any:
    """Lazy import for the HTTP room service."""
    if name == "HTTPRoomService":
        from watchsync.service.http import HTTPRoomService

        return HTTPRoomService
    if name == "HTTPRoomServiceConfig":
        from watchsync.service.config import HTTPRoomServiceConfig

        return HTTPRoomServiceConfig
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
