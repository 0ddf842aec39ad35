"""All string enums for watchsync."""

from __future__ import annotations

from enum import StrEnum, unique


@unique
class PlaybackAction(StrEnum):
    PLAY = "play"
    PAUSE = "pause"
    SEEK = "seek"


@unique
class ConnectionState(StrEnum):
    """Connection state of the update channel, owned by the Transport."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    # Push channel unavailable, updates obtained by polling
    DEGRADED = "degraded"
    ERROR = "error"


@unique
class SessionRole(StrEnum):
    HOST = "host"
    GUEST = "guest"


@unique
class SessionState(StrEnum):
    IDLE = "idle"
    JOINING = "joining"
    ACTIVE = "active"
    LEAVING = "leaving"
    ERROR = "error"


@unique
class DeliveryKind(StrEnum):
    PUSH = "push"
    POLL = "poll"


@unique
class EngineEventType(StrEnum):
    CONNECTION_STATE_CHANGED = "connection_state_changed"
    ROOM_JOINED = "room_joined"
    ROOM_LEFT = "room_left"
    REMOTE_UPDATE_APPLIED = "remote_update_applied"
    SYNC_FAILED = "sync_failed"
