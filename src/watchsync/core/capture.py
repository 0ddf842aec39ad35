"""Turns native player events into outbound playback updates."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any

from watchsync.core.suppressor import EchoSuppressor
from watchsync.models.enums import PlaybackAction
from watchsync.models.room import Session
from watchsync.models.update import PlaybackUpdate, PlayerEvent
from watchsync.player.base import VideoPlayer

logger = logging.getLogger("watchsync.capture")

SendFn = Callable[[PlaybackUpdate], Awaitable[Any]]


class LocalCapture:
    """Listens to the player and forwards user-made changes outward.

    Events observed while the echo suppressor is armed are the engine's own
    mutations and are dropped, not queued.

    Outbound updates are coalesced: there is a single pending slot and one
    sender task. The first update goes out immediately; updates produced
    within *coalesce_window* of the previous send replace each other, and
    only the latest is sent when the window closes. Updates reach *send* in
    the order they were produced.
    """

    def __init__(
        self,
        player: VideoPlayer,
        suppressor: EchoSuppressor,
        session: Session,
        send: SendFn,
        *,
        coalesce_window: float = 0.5,
        resync_interval: float | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._player = player
        self._suppressor = suppressor
        self._session = session
        self._send = send
        self._coalesce_window = coalesce_window
        self._resync_interval = resync_interval
        self._clock = clock
        self._pending: PlaybackUpdate | None = None
        self._wakeup = asyncio.Event()
        self._last_sent_at: float | None = None
        self._sender_task: asyncio.Task[None] | None = None
        self._resync_task: asyncio.Task[None] | None = None
        self._running = False
        self._sent_count = 0
        self._suppressed_count = 0
        self._coalesced_count = 0

    @property
    def running(self) -> bool:
        return self._running

    @property
    def pending(self) -> PlaybackUpdate | None:
        return self._pending

    @property
    def sent_count(self) -> int:
        return self._sent_count

    @property
    def suppressed_count(self) -> int:
        return self._suppressed_count

    @property
    def coalesced_count(self) -> int:
        return self._coalesced_count

    def start(self) -> None:
        """Attach to the player and start the sender."""
        if self._running:
            return
        self._running = True
        self._player.add_listener(self._on_player_event)
        self._sender_task = asyncio.create_task(self._send_loop())
        if self._resync_interval is not None:
            self._resync_task = asyncio.create_task(self._resync_loop(self._resync_interval))
        logger.debug("Capturing player events for room %s", self._session.room_id)

    async def stop(self) -> None:
        """Detach from the player and drop any unsent update."""
        self._running = False
        self._player.remove_listener(self._on_player_event)
        self._pending = None
        for task in (self._sender_task, self._resync_task):
            if task is not None:
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
        self._sender_task = None
        self._resync_task = None

    def _on_player_event(self, event: PlayerEvent) -> None:
        if not self._running:
            return
        if self._suppressor.is_suppressed():
            self._suppressed_count += 1
            logger.debug("Suppressed echo of %s at %.2fs", event.kind, event.time)
            return
        self._enqueue(self._build(event.kind))

    def _build(self, action: PlaybackAction) -> PlaybackUpdate:
        return PlaybackUpdate(
            room_id=self._session.room_id,
            origin_id=self._session.id,
            action=action,
            position=max(0.0, self._player.get_position()),
            playing=self._player.is_playing(),
            created_at=self._clock(),
        )

    def _enqueue(self, update: PlaybackUpdate) -> None:
        if self._pending is not None:
            self._coalesced_count += 1
        self._pending = update
        self._wakeup.set()

    async def _send_loop(self) -> None:
        loop = asyncio.get_running_loop()
        while True:
            await self._wakeup.wait()
            if self._last_sent_at is not None:
                wait = self._last_sent_at + self._coalesce_window - loop.time()
                if wait > 0:
                    await asyncio.sleep(wait)
            self._wakeup.clear()

            update, self._pending = self._pending, None
            if update is None:
                continue
            self._last_sent_at = loop.time()
            try:
                await self._send(update)
                self._sent_count += 1
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Failed to hand off update %s", update.id)

    async def _resync_loop(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            if self._suppressor.is_suppressed():
                continue
            action = PlaybackAction.PLAY if self._player.is_playing() else PlaybackAction.PAUSE
            self._enqueue(self._build(action))
