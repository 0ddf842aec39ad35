"""Poll delivery: periodically ask the room service for new updates."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable

from watchsync.core.errors import ConnectionLostError
from watchsync.models.enums import DeliveryKind
from watchsync.models.update import PlaybackUpdate
from watchsync.service.base import RoomService
from watchsync.transport.base import BaseDeliveryStrategy, UpdateCallback

logger = logging.getLogger("watchsync.transport.poll")


class PollStrategy(BaseDeliveryStrategy):
    """Queries "updates since the last one seen" on a fixed interval.

    Each query is bounded by the poll interval: a slow response is abandoned
    and superseded by the next scheduled poll rather than queued behind it.
    *failure_threshold* consecutive failed polls count as a dropped channel.
    Delivery order across polls is not causal, which is why the reconciler
    checks ``created_at``.

    The query is inclusive of the watermark so that a later update sharing
    its timestamp is still picked up. Ids already delivered at the watermark
    (*seen_ids* seeds them) are skipped.
    """

    def __init__(
        self,
        service: RoomService,
        room_id: str,
        *,
        interval: float = 1.0,
        since: float = 0.0,
        seen_ids: Iterable[str] = (),
        failure_threshold: int = 3,
    ) -> None:
        super().__init__(service, room_id)
        self._interval = interval
        self._since = since
        self._seen_ids = set(seen_ids)
        self._failure_threshold = failure_threshold
        self._consecutive_failures = 0

    @property
    def kind(self) -> DeliveryKind:
        return DeliveryKind.POLL

    @property
    def since(self) -> float:
        """Watermark: ``created_at`` of the newest update received."""
        return self._since

    async def connect(self) -> None:
        """Probe the service once; raises if it cannot be queried."""
        await asyncio.wait_for(
            self._service.query_updates_since(self._room_id, self._since),
            timeout=self._interval,
        )
        logger.info("Polling room %s every %.2fs", self._room_id, self._interval)

    async def run(self, emit: UpdateCallback) -> None:
        loop = asyncio.get_running_loop()
        while not self._should_stop():
            started = loop.time()
            await self._poll_once(emit)
            if self._should_stop():
                return
            remaining = self._interval - (loop.time() - started)
            if remaining > 0:
                await asyncio.sleep(remaining)

    async def _poll_once(self, emit: UpdateCallback) -> None:
        try:
            updates = await asyncio.wait_for(
                self._service.query_updates_since(self._room_id, self._since),
                timeout=self._interval,
            )
        except TimeoutError:
            logger.debug("Poll for room %s superseded by the next one", self._room_id)
            return
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            self._consecutive_failures += 1
            logger.warning(
                "Poll %d/%d for room %s failed: %s",
                self._consecutive_failures,
                self._failure_threshold,
                self._room_id,
                exc,
            )
            if self._consecutive_failures >= self._failure_threshold:
                raise ConnectionLostError(f"polling failed: {exc}") from exc
            return

        self._consecutive_failures = 0
        for update in updates:
            if self._should_stop():
                return
            if not self._advance(update):
                continue
            self._record_update()
            await emit(update)

    def _advance(self, update: PlaybackUpdate) -> bool:
        """Move the watermark past *update*; False if it was already delivered."""
        if update.created_at < self._since:
            return False
        if update.created_at > self._since:
            self._since = update.created_at
            self._seen_ids.clear()
        elif update.id in self._seen_ids:
            return False
        self._seen_ids.add(update.id)
        return True
