"""watchsync - Pure async playback synchronization for watch parties."""

from typing import Any

from watchsync._version import __version__
from watchsync.config import SyncConfig
from watchsync.core.capture import LocalCapture
from watchsync.core.errors import (
    ConnectionLostError,
    JoinCancelledError,
    PushNotSupportedError,
    RoomAlreadyExistsError,
    RoomNotFoundError,
    RoomServiceError,
    SessionStateError,
    UpdateRejectedError,
    WatchSyncError,
)
from watchsync.core.reconciler import RemoteReconciler
from watchsync.core.retry import RetryPolicy, retry_with_backoff
from watchsync.core.session import EngineEventHandler, RoomSessionManager
from watchsync.core.suppressor import EchoSuppressor
from watchsync.invite import (
    build_invite_url,
    generate_display_name,
    generate_room_id,
    room_id_from_url,
)
from watchsync.models.engine_event import EngineEvent
from watchsync.models.enums import (
    ConnectionState,
    DeliveryKind,
    EngineEventType,
    PlaybackAction,
    SessionRole,
    SessionState,
)
from watchsync.models.room import Room, RoomHandle, Session
from watchsync.models.update import PlaybackUpdate, PlayerEvent
from watchsync.player import MockVideoPlayer, PlayerEventCallback, VideoPlayer
from watchsync.service import InMemoryRoomService, RoomService, UpdateSubscription
from watchsync.transport import (
    DeliveryStrategy,
    PollStrategy,
    PushStrategy,
    Transport,
    TransportHealth,
)


def __getattr__(name: str) -> Any:
    """Lazy import for the network room service."""
    if name == "HTTPRoomService":
        from watchsync.service.http import HTTPRoomService

        return HTTPRoomService
    if name == "HTTPRoomServiceConfig":
        from watchsync.service.config import HTTPRoomServiceConfig

        return HTTPRoomServiceConfig
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "__version__",
    # Engine
    "RoomSessionManager",
    "EngineEventHandler",
    "SyncConfig",
    "EchoSuppressor",
    "LocalCapture",
    "RemoteReconciler",
    # Errors
    "WatchSyncError",
    "RoomNotFoundError",
    "RoomAlreadyExistsError",
    "RoomServiceError",
    "UpdateRejectedError",
    "PushNotSupportedError",
    "ConnectionLostError",
    "JoinCancelledError",
    "SessionStateError",
    # Retry
    "RetryPolicy",
    "retry_with_backoff",
    # Models
    "PlaybackUpdate",
    "PlayerEvent",
    "Room",
    "RoomHandle",
    "Session",
    "EngineEvent",
    "PlaybackAction",
    "ConnectionState",
    "SessionRole",
    "SessionState",
    "DeliveryKind",
    "EngineEventType",
    # Player
    "VideoPlayer",
    "PlayerEventCallback",
    "MockVideoPlayer",
    # Room service
    "RoomService",
    "UpdateSubscription",
    "InMemoryRoomService",
    "HTTPRoomService",
    "HTTPRoomServiceConfig",
    # Transport
    "Transport",
    "TransportHealth",
    "DeliveryStrategy",
    "PushStrategy",
    "PollStrategy",
    # Invites
    "generate_room_id",
    "generate_display_name",
    "build_invite_url",
    "room_id_from_url",
]
