"""Video player interface."""

from watchsync.player.base import PlayerEventCallback, VideoPlayer
from watchsync.player.mock import MockVideoPlayer

__all__ = [
    "MockVideoPlayer",
    "PlayerEventCallback",
    "VideoPlayer",
]
