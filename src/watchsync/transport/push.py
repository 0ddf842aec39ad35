"""Push delivery: the room service streams updates as they happen."""

from __future__ import annotations

import asyncio
import contextlib
import logging

from watchsync.core.errors import ConnectionLostError
from watchsync.models.enums import DeliveryKind
from watchsync.service.base import RoomService, UpdateSubscription
from watchsync.transport.base import BaseDeliveryStrategy, UpdateCallback

logger = logging.getLogger("watchsync.transport.push")


class PushStrategy(BaseDeliveryStrategy):
    """Receives updates over the service's persistent subscription."""

    def __init__(
        self,
        service: RoomService,
        room_id: str,
        *,
        exclude_origin: str | None = None,
        handshake_timeout: float = 10.0,
    ) -> None:
        super().__init__(service, room_id)
        self._exclude_origin = exclude_origin
        self._handshake_timeout = handshake_timeout
        self._subscription: UpdateSubscription | None = None

    @property
    def kind(self) -> DeliveryKind:
        return DeliveryKind.PUSH

    async def connect(self) -> None:
        """Open the subscription.

        Raises:
            TimeoutError: If the handshake takes longer than the timeout.
            RoomServiceError: If the service refuses or lacks push support.
        """
        self._subscription = await asyncio.wait_for(
            self._service.subscribe_updates(self._room_id, exclude_origin=self._exclude_origin),
            timeout=self._handshake_timeout,
        )
        logger.info("Push subscription established for room %s", self._room_id)

    async def run(self, emit: UpdateCallback) -> None:
        if self._subscription is None:
            raise RuntimeError("connect() must succeed before run()")

        async for update in self._subscription:
            if self._should_stop():
                return
            self._record_update()
            await emit(update)

        if not self._should_stop():
            raise ConnectionLostError("push subscription ended")

    async def stop(self) -> None:
        await super().stop()
        if self._subscription is not None:
            with contextlib.suppress(Exception):
                await self._subscription.close()
            self._subscription = None
