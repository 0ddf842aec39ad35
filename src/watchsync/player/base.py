"""Abstract interface to the native video element."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable

from watchsync.models.update import PlayerEvent

PlayerEventCallback = Callable[[PlayerEvent], None]


class VideoPlayer(ABC):
    """The local video element the engine observes and drives.

    Implementations fire ``PlayerEvent`` notifications to every registered
    listener whenever the native element plays, pauses or finishes a seek,
    regardless of who caused the change. The engine tells its own changes
    apart from user changes through the echo suppressor, not through the
    player.
    """

    @abstractmethod
    def get_position(self) -> float:
        """Current playback position in seconds."""
        ...

    @abstractmethod
    def is_playing(self) -> bool: ...

    @abstractmethod
    async def play(self) -> None:
        """Start playback. May raise if the environment blocks autoplay."""
        ...

    @abstractmethod
    async def pause(self) -> None: ...

    @abstractmethod
    async def seek_to(self, position: float) -> None: ...

    @abstractmethod
    def add_listener(self, callback: PlayerEventCallback) -> None: ...

    @abstractmethod
    def remove_listener(self, callback: PlayerEventCallback) -> None: ...
