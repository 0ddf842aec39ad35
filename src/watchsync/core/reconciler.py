"""Applies remote playback updates to the local player."""

from __future__ import annotations

import logging
from collections.abc import Callable, Coroutine
from typing import Any

from watchsync.core.suppressor import EchoSuppressor
from watchsync.models.enums import PlaybackAction
from watchsync.models.room import Session
from watchsync.models.update import PlaybackUpdate
from watchsync.player.base import VideoPlayer

logger = logging.getLogger("watchsync.reconciler")

AppliedCallback = Callable[[PlaybackUpdate], Coroutine[Any, Any, None]]


class RemoteReconciler:
    """Decides whether and how an inbound update changes the local player.

    Rules, in order:

    * updates for another room or produced by this session are ignored
    * updates older than the newest one seen (by ``created_at``) are stale;
      equal timestamps are accepted in arrival order
    * the position is corrected only when drift exceeds the threshold
    * play/pause is applied only when the play state differs

    ``apply()`` never raises: a bad update or a failing player call is logged
    and the next update is processed normally.
    """

    def __init__(
        self,
        player: VideoPlayer,
        suppressor: EchoSuppressor,
        session: Session,
        *,
        drift_threshold: float = 1.5,
        on_applied: AppliedCallback | None = None,
    ) -> None:
        self._player = player
        self._suppressor = suppressor
        self._session = session
        self._drift_threshold = drift_threshold
        self._on_applied = on_applied
        self._latest_at: float | None = None
        self._applied_count = 0
        self._dropped_count = 0

    @property
    def latest_applied_at(self) -> float | None:
        """``created_at`` of the newest update accepted or produced locally."""
        return self._latest_at

    @property
    def applied_count(self) -> int:
        return self._applied_count

    @property
    def dropped_count(self) -> int:
        return self._dropped_count

    async def apply(self, update: PlaybackUpdate) -> bool:
        """Reconcile *update* against the player.

        Returns:
            True if the update was accepted (whether or not the player
            needed to change).
        """
        try:
            if not self._accept(update):
                self._dropped_count += 1
                return False
            mutated = await self._reconcile(update)
        except Exception:
            logger.exception("Failed to reconcile update %s", update.id)
            return False

        self._applied_count += 1
        logger.debug(
            "Applied %s from %s at %.2fs (mutated=%s)",
            update.action,
            update.origin_id,
            update.position,
            mutated,
        )
        if self._on_applied is not None:
            try:
                await self._on_applied(update)
            except Exception:
                logger.exception("Applied-update callback failed")
        return True

    def _accept(self, update: PlaybackUpdate) -> bool:
        if update.room_id != self._session.room_id:
            logger.debug("Dropping update %s for room %s", update.id, update.room_id)
            return False

        stale = self._latest_at is not None and update.created_at < self._latest_at
        if update.origin_id == self._session.id:
            # Our own change reflected by the service; it still counts as the
            # latest known state so older remote updates cannot undo it
            if not stale:
                self._latest_at = update.created_at
            logger.debug("Ignoring own update %s", update.id)
            return False

        if stale:
            logger.debug(
                "Dropping stale update %s (%.3f < %.3f)",
                update.id,
                update.created_at,
                self._latest_at,
            )
            return False

        self._latest_at = update.created_at
        return True

    async def _reconcile(self, update: PlaybackUpdate) -> bool:
        mutated = False

        drift = abs(self._player.get_position() - update.position)
        if drift > self._drift_threshold:
            mutated = await self._mutate("seek", self._player.seek_to, update.position)

        if update.action == PlaybackAction.SEEK:
            desired = update.playing
        else:
            desired = update.action == PlaybackAction.PLAY

        if desired is not None and self._player.is_playing() != desired:
            if desired:
                mutated = await self._mutate("play", self._player.play) or mutated
            else:
                mutated = await self._mutate("pause", self._player.pause) or mutated

        return mutated

    async def _mutate(
        self, name: str, fn: Callable[..., Coroutine[Any, Any, None]], *args: Any
    ) -> bool:
        self._suppressor.mark_local_change_start()
        try:
            await fn(*args)
        except Exception:
            # No native event will follow a failed call
            self._suppressor.mark_local_change_end()
            logger.warning("Player %s failed", name, exc_info=True)
            return False
        return True
