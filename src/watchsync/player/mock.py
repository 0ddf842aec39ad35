"""Mock video player for testing."""

from __future__ import annotations

import logging

from watchsync.models.enums import PlaybackAction
from watchsync.models.update import PlayerEvent
from watchsync.player.base import PlayerEventCallback, VideoPlayer

logger = logging.getLogger("watchsync.player")


class MockVideoPlayer(VideoPlayer):
    """In-process player that records mutations and dispatches native events.

    Events are delivered synchronously to listeners, after the state change,
    the same way a media element reports ``play``/``pause``/``seeked``.
    Set ``play_error`` to make ``play()`` fail like a blocked autoplay.
    """

    def __init__(self, position: float = 0.0, playing: bool = False) -> None:
        self.position = position
        self.playing = playing
        self.calls: list[tuple[str, float | None]] = []
        self.play_error: Exception | None = None
        self._listeners: list[PlayerEventCallback] = []

    def get_position(self) -> float:
        return self.position

    def is_playing(self) -> bool:
        return self.playing

    async def play(self) -> None:
        self.calls.append(("play", None))
        if self.play_error is not None:
            raise self.play_error
        self.playing = True
        self._dispatch(PlaybackAction.PLAY)

    async def pause(self) -> None:
        self.calls.append(("pause", None))
        self.playing = False
        self._dispatch(PlaybackAction.PAUSE)

    async def seek_to(self, position: float) -> None:
        self.calls.append(("seek", position))
        self.position = position
        self._dispatch(PlaybackAction.SEEK)

    def add_listener(self, callback: PlayerEventCallback) -> None:
        if callback not in self._listeners:
            self._listeners.append(callback)

    def remove_listener(self, callback: PlayerEventCallback) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    @property
    def mutation_count(self) -> int:
        return len(self.calls)

    def _dispatch(self, kind: PlaybackAction) -> None:
        event = PlayerEvent(kind=kind, time=self.position)
        for callback in list(self._listeners):
            try:
                callback(event)
            except Exception:
                logger.exception("Player listener failed for %s event", kind)
