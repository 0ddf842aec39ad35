"""Exception hierarchy for watchsync."""

from __future__ import annotations


class WatchSyncError(Exception):
    """Base exception for all watchsync errors."""


class RoomNotFoundError(WatchSyncError):
    """Room does not exist (usually a mistyped room id)."""


class RoomAlreadyExistsError(WatchSyncError):
    """A room with the requested id already exists."""


class RoomServiceError(WatchSyncError):
    """The room service could not be reached or failed the request."""


class UpdateRejectedError(RoomServiceError):
    """The room service refused a posted playback update."""


class PushNotSupportedError(RoomServiceError):
    """The room service has no push channel; updates must be polled."""


class ConnectionLostError(RoomServiceError):
    """An established update channel dropped."""


class JoinCancelledError(WatchSyncError):
    """A join finished after a newer join or leave superseded it."""


class SessionStateError(WatchSyncError):
    """Operation not valid in the current session state."""
