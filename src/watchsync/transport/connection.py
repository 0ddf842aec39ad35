"""Transport: connection state machine over push and poll delivery."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable, Coroutine, Iterable
from datetime import UTC, datetime
from typing import Any

from watchsync.config import SyncConfig
from watchsync.core.errors import UpdateRejectedError
from watchsync.core.retry import retry_with_backoff
from watchsync.models.enums import ConnectionState, DeliveryKind
from watchsync.models.update import PlaybackUpdate
from watchsync.service.base import RoomService
from watchsync.transport.base import DeliveryStrategy, TransportHealth, UpdateCallback
from watchsync.transport.poll import PollStrategy
from watchsync.transport.push import PushStrategy

logger = logging.getLogger("watchsync.transport")

StateCallback = Callable[[ConnectionState], Coroutine[Any, Any, None]]


class Transport:
    """Delivers outbound updates and surfaces inbound ones for one room.

    A supervisor task drives the connection state machine::

        DISCONNECTED -> CONNECTING -> CONNECTED   push handshake succeeded
                                   -> DEGRADED    push failed/unavailable, polling
        CONNECTED | DEGRADED -> DISCONNECTED      channel dropped, reconnect
        DISCONNECTED -> ERROR                     reconnect budget exhausted

    Consecutive failed connection attempts back off per
    ``config.reconnect`` (1, 2, 4, 8, 16 s by default). A channel that drops
    before delivering an update or staying up ``stable_connection_seconds``
    counts as a failed attempt too. ``ERROR`` is terminal until ``start()``
    is called again.

    Every ``start()``/``stop()`` bumps a generation counter; updates delivered
    by a strategy of an older generation are discarded, so a late completion
    can never reach a room the engine has already left.

    Inbound updates reach *on_update* as ``PlaybackUpdate`` regardless of the
    strategy that delivered them.
    """

    def __init__(
        self,
        service: RoomService,
        room_id: str,
        origin_id: str,
        *,
        on_update: UpdateCallback,
        on_state_change: StateCallback | None = None,
        config: SyncConfig | None = None,
        since: float = 0.0,
        seen_ids: Iterable[str] = (),
    ) -> None:
        self._service = service
        self._room_id = room_id
        self._origin_id = origin_id
        self._on_update = on_update
        self._on_state_change = on_state_change
        self._config = config or SyncConfig()
        self._since = since
        self._seen_ids = set(seen_ids)

        self._state = ConnectionState.DISCONNECTED
        self._generation = 0
        self._task: asyncio.Task[None] | None = None
        self._strategy: DeliveryStrategy | None = None

        self._connected_at: datetime | None = None
        self._last_update_at: datetime | None = None
        self._updates_received = 0
        self._updates_sent = 0
        self._send_failures = 0
        self._reconnect_attempts = 0
        self._error: str | None = None

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def strategy_kind(self) -> DeliveryKind | None:
        return self._strategy.kind if self._strategy is not None else None

    @property
    def room_id(self) -> str:
        return self._room_id

    def health(self) -> TransportHealth:
        return TransportHealth(
            state=self._state,
            strategy=self.strategy_kind,
            connected_at=self._connected_at,
            last_update_at=self._last_update_at,
            updates_received=self._updates_received,
            updates_sent=self._updates_sent,
            send_failures=self._send_failures,
            reconnect_attempts=self._reconnect_attempts,
            error=self._error,
        )

    # -- Lifecycle --

    def start(self) -> None:
        """Start (or restart after ``ERROR``) the connection supervisor."""
        if self._task is not None and not self._task.done():
            return
        self._generation += 1
        self._reconnect_attempts = 0
        self._task = asyncio.create_task(self._supervise(self._generation))

    async def stop(self) -> None:
        """Tear down the channel and cancel pending poll/backoff timers."""
        self._generation += 1
        strategy, self._strategy = self._strategy, None
        if strategy is not None:
            with contextlib.suppress(Exception):
                await strategy.stop()
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        if self._state != ConnectionState.DISCONNECTED:
            await self._set_state(ConnectionState.DISCONNECTED)
        logger.info("Transport for room %s stopped", self._room_id)

    async def wait_closed(self) -> None:
        """Wait until the supervisor exits (after ``stop()`` or on ``ERROR``)."""
        if self._task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await asyncio.shield(self._task)

    # -- Outbound --

    async def send(self, update: PlaybackUpdate) -> bool:
        """Post *update* to the room service.

        Never raises. Transient failures are retried per ``config.send_retry``;
        a rejected update is dropped; a persistent failure drops the current
        channel so the supervisor reconnects.

        Returns:
            True if the service accepted the update.
        """
        if self._state == ConnectionState.ERROR:
            logger.debug("Dropping update %s, transport is in error state", update.id)
            return False

        try:
            await retry_with_backoff(
                self._post_once,
                self._config.send_retry,
                update,
                retryable=lambda exc: not isinstance(exc, UpdateRejectedError),
            )
        except asyncio.CancelledError:
            raise
        except UpdateRejectedError as exc:
            logger.warning("Room service rejected update %s: %s", update.id, exc)
            return False
        except Exception as exc:
            self._send_failures += 1
            logger.warning("Dropping update %s after retries: %s", update.id, exc)
            await self._request_reconnect(str(exc))
            return False

        self._updates_sent += 1
        return True

    async def _post_once(self, update: PlaybackUpdate) -> None:
        await asyncio.wait_for(
            self._service.post_update(update),
            timeout=self._config.send_timeout_seconds,
        )

    async def _request_reconnect(self, reason: str) -> None:
        strategy = self._strategy
        if strategy is None:
            return
        logger.info("Reconnecting room %s after send failure (%s)", self._room_id, reason)
        self._error = reason
        # run() returns once stopped, which the supervisor treats as a drop
        await strategy.stop()

    # -- Supervisor --

    async def _supervise(self, generation: int) -> None:
        loop = asyncio.get_running_loop()
        failures = 0
        while self._is_current(generation):
            await self._set_state(ConnectionState.CONNECTING)
            try:
                strategy = await self._establish()
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                if not self._is_current(generation):
                    return
                failures += 1
                self._error = str(exc) or type(exc).__name__
                if not await self._back_off(failures):
                    return
                continue

            if not self._is_current(generation):
                await strategy.stop()
                return

            self._strategy = strategy
            self._connected_at = datetime.now(UTC)
            connected_at = loop.time()
            received_before = self._updates_received
            if strategy.kind == DeliveryKind.PUSH:
                await self._set_state(ConnectionState.CONNECTED)
            else:
                await self._set_state(ConnectionState.DEGRADED)

            try:
                await strategy.run(lambda update: self._deliver(generation, update))
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                self._error = str(exc) or type(exc).__name__
            finally:
                with contextlib.suppress(Exception):
                    await strategy.stop()
                if self._strategy is strategy:
                    self._strategy = None

            if not self._is_current(generation):
                return
            uptime = loop.time() - connected_at
            stable = (
                self._updates_received > received_before
                or uptime >= self._config.stable_connection_seconds
            )
            if stable:
                failures = 0
                logger.warning(
                    "Update channel for room %s lost (%s)", self._room_id, self._error
                )
                await self._set_state(ConnectionState.DISCONNECTED)
                continue

            # Dropped before proving itself; counts against the budget
            failures += 1
            self._error = self._error or "channel closed"
            logger.warning(
                "Update channel for room %s dropped after %.2fs (%s)",
                self._room_id,
                uptime,
                self._error,
            )
            if not await self._back_off(failures):
                return

    async def _back_off(self, failures: int) -> bool:
        """Sleep before the next attempt, or enter ``ERROR`` when out of budget.

        Returns:
            False if the retry budget is exhausted.
        """
        policy = self._config.reconnect
        if failures > policy.max_retries:
            logger.error(
                "Giving up on room %s after %d connection attempts: %s",
                self._room_id,
                failures,
                self._error,
            )
            await self._set_state(ConnectionState.ERROR)
            return False
        delay = policy.delay_for(failures - 1)
        self._reconnect_attempts += 1
        await self._set_state(ConnectionState.DISCONNECTED)
        logger.warning(
            "Connection attempt %d/%d for room %s failed (%s), retrying in %.1fs",
            failures,
            policy.max_retries + 1,
            self._room_id,
            self._error,
            delay,
        )
        await asyncio.sleep(delay)
        return True

    async def _establish(self) -> DeliveryStrategy:
        """Connect with push if available, else fall back to polling."""
        if self._config.push_enabled and self._service.supports_push:
            push = PushStrategy(
                self._service,
                self._room_id,
                exclude_origin=self._origin_id,
                handshake_timeout=self._config.handshake_timeout_seconds,
            )
            try:
                await push.connect()
                return push
            except asyncio.CancelledError:
                await push.stop()
                raise
            except Exception as exc:
                await push.stop()
                logger.warning(
                    "Push handshake for room %s failed (%s), falling back to polling",
                    self._room_id,
                    str(exc) or type(exc).__name__,
                )

        poll = PollStrategy(
            self._service,
            self._room_id,
            interval=self._config.poll_interval_seconds,
            since=self._since,
            seen_ids=self._seen_ids,
            failure_threshold=self._config.poll_failure_threshold,
        )
        await poll.connect()
        return poll

    async def _deliver(self, generation: int, update: PlaybackUpdate) -> None:
        if not self._is_current(generation):
            logger.debug("Discarding update %s from a stale connection", update.id)
            return
        if update.room_id != self._room_id:
            logger.debug("Discarding update %s for room %s", update.id, update.room_id)
            return
        if update.created_at > self._since:
            self._since = update.created_at
            self._seen_ids = {update.id}
        elif update.created_at == self._since:
            self._seen_ids.add(update.id)
        self._updates_received += 1
        self._last_update_at = datetime.now(UTC)
        try:
            await self._on_update(update)
        except Exception:
            logger.exception("Inbound update handler failed for %s", update.id)

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation

    async def _set_state(self, state: ConnectionState) -> None:
        if state == self._state:
            return
        previous, self._state = self._state, state
        logger.info("Room %s connection %s -> %s", self._room_id, previous, state)
        if self._on_state_change is not None:
            try:
                await self._on_state_change(state)
            except Exception:
                logger.exception("Connection state handler failed")
