"""Room session manager: the engine's public entry point."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import uuid
from collections.abc import Callable, Coroutine
from datetime import UTC, datetime
from functools import partial
from typing import Any

from watchsync.config import SyncConfig
from watchsync.core.capture import LocalCapture
from watchsync.core.errors import JoinCancelledError, SessionStateError
from watchsync.core.reconciler import RemoteReconciler
from watchsync.core.suppressor import EchoSuppressor
from watchsync.invite import (
    build_invite_url,
    generate_display_name,
    generate_room_id,
    room_id_from_url,
)
from watchsync.models.engine_event import EngineEvent
from watchsync.models.enums import ConnectionState, EngineEventType, SessionState
from watchsync.models.room import RoomHandle, Session
from watchsync.models.update import PlaybackUpdate
from watchsync.player.base import VideoPlayer
from watchsync.service.base import RoomService
from watchsync.transport.connection import Transport

logger = logging.getLogger("watchsync.session")

EngineEventHandler = Callable[[EngineEvent], Coroutine[Any, Any, None]]


class RoomSessionManager:
    """Creates, joins and leaves rooms and wires the sync components together.

    At most one session is active per manager. Lifecycle::

        IDLE -> JOINING -> ACTIVE -> LEAVING -> IDLE
                           ACTIVE -> ERROR      transport gave up reconnecting

    A generation counter increments on every join and leave. A join whose
    service call completes after a newer join or leave is discarded, so a
    late completion never activates a room the user already left.

    UI collaborators subscribe with :meth:`on`::

        manager = RoomSessionManager(service, player)

        @manager.on(EngineEventType.SYNC_FAILED)
        async def show_error(event: EngineEvent) -> None:
            ...

        await manager.join_room("K3X9QZ2A")
    """

    def __init__(
        self,
        service: RoomService,
        player: VideoPlayer,
        *,
        config: SyncConfig | None = None,
        origin_id: str | None = None,
        display_name: str | None = None,
    ) -> None:
        self._service = service
        self._player = player
        self._config = config or SyncConfig()
        self._origin_id = origin_id or uuid.uuid4().hex
        self._display_name = display_name or generate_display_name()

        self._state = SessionState.IDLE
        self._generation = 0
        self._session: Session | None = None
        self._suppressor: EchoSuppressor | None = None
        self._reconciler: RemoteReconciler | None = None
        self._capture: LocalCapture | None = None
        self._transport: Transport | None = None
        self._heartbeat_task: asyncio.Task[None] | None = None
        self._failure_reported = False
        self._event_handlers: list[tuple[EngineEventType, EngineEventHandler]] = []

    # -- Properties --

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def origin_id(self) -> str:
        return self._origin_id

    @property
    def display_name(self) -> str:
        return self._display_name

    @property
    def session(self) -> Session | None:
        return self._session

    @property
    def room_id(self) -> str | None:
        return self._session.room_id if self._session is not None else None

    @property
    def connection_state(self) -> ConnectionState:
        if self._transport is None:
            return ConnectionState.DISCONNECTED
        return self._transport.state

    @property
    def transport(self) -> Transport | None:
        return self._transport

    @property
    def reconciler(self) -> RemoteReconciler | None:
        return self._reconciler

    @property
    def capture(self) -> LocalCapture | None:
        return self._capture

    @property
    def suppressor(self) -> EchoSuppressor | None:
        return self._suppressor

    # -- Event handlers --

    def on(self, event_type: EngineEventType) -> Callable[..., Any]:
        """Decorator to register a UI event handler filtered by type."""

        def decorator(fn: EngineEventHandler) -> EngineEventHandler:
            self._event_handlers.append((event_type, fn))
            return fn

        return decorator

    async def _emit_event(
        self,
        event_type: EngineEventType,
        room_id: str | None = None,
        data: dict[str, Any] | None = None,
    ) -> None:
        event = EngineEvent(
            type=event_type,
            room_id=room_id or self.room_id,
            origin_id=self._origin_id,
            data=data or {},
        )
        for filter_type, handler in list(self._event_handlers):
            if filter_type == event.type:
                try:
                    await handler(event)
                except Exception:
                    logger.exception(
                        "Engine event handler failed",
                        extra={"event_type": event.type, "room_id": event.room_id},
                    )

    # -- Room lifecycle --

    async def create_room(self, room_id: str | None = None) -> Session:
        """Create a room and join it as host.

        Args:
            room_id: Room id to create. A random 8-character id is used if omitted.

        Raises:
            RoomAlreadyExistsError: If the id is taken.
            RoomServiceError: If the room service is unreachable.
            JoinCancelledError: If a newer join or leave superseded this call.
        """
        return await self._enter(room_id or generate_room_id(), create=True)

    async def join_room(self, room_id: str) -> Session:
        """Join an existing room.

        Joining the room that is already active is a no-op. Joining a
        different room leaves the current one first.

        Raises:
            RoomNotFoundError: If the room does not exist.
            RoomServiceError: If the room service is unreachable.
            JoinCancelledError: If a newer join or leave superseded this call.
        """
        if not room_id:
            raise ValueError("room_id must not be empty")
        return await self._enter(room_id, create=False)

    async def join_from_url(self, url: str) -> Session | None:
        """Join the room named by an invite link's ``id`` parameter.

        Returns:
            The session, or ``None`` if the URL carries no room id.
        """
        room_id = room_id_from_url(url)
        if room_id is None:
            logger.debug("No room id in %s", url)
            return None
        return await self.join_room(room_id)

    def invite_url(self, base_url: str) -> str:
        """Return a shareable link to the current room."""
        if self._session is None:
            raise SessionStateError("not in a room")
        return build_invite_url(base_url, self._session.room_id)

    async def leave_room(self) -> None:
        """Leave the current room.

        Stops capture, heartbeats and the transport (including any pending
        poll or backoff timer), then tells the room service, best effort.
        Calling it while idle or already leaving is a no-op; calling it during
        a join cancels the join.
        """
        if self._state in (SessionState.IDLE, SessionState.LEAVING):
            return
        self._generation += 1
        generation = self._generation
        if self._state == SessionState.JOINING:
            logger.info("Join cancelled by leave")
            self._state = SessionState.IDLE
            return

        session = self._session
        self._state = SessionState.LEAVING
        await self._teardown()
        if session is not None:
            try:
                await self._service.leave_room(session.room_id, self._origin_id)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.warning("Leaving room %s on the service failed: %s", session.room_id, exc)
        if generation == self._generation:
            self._session = None
            self._state = SessionState.IDLE
        if session is not None:
            logger.info("Left room %s", session.room_id)
            await self._emit_event(EngineEventType.ROOM_LEFT, room_id=session.room_id)

    async def retry(self) -> Session:
        """Rejoin the current room after the transport gave up.

        Raises:
            SessionStateError: If the session is not in the error state.
        """
        if self._state != SessionState.ERROR or self._session is None:
            raise SessionStateError(f"retry() is only valid in the error state, not {self._state}")
        room_id = self._session.room_id
        logger.info("Retrying room %s", room_id)
        await self._teardown()
        self._session = None
        self._state = SessionState.IDLE
        return await self.join_room(room_id)

    async def close(self) -> None:
        """Leave any active room. The room service is not closed."""
        await self.leave_room()

    async def __aenter__(self) -> RoomSessionManager:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    # -- Internals --

    async def _enter(self, room_id: str, *, create: bool) -> Session:
        if (
            self._state == SessionState.ACTIVE
            and self._session is not None
            and self._session.room_id == room_id
        ):
            logger.debug("Already in room %s", room_id)
            return self._session
        if self._state != SessionState.IDLE:
            await self.leave_room()

        self._generation += 1
        generation = self._generation
        self._state = SessionState.JOINING
        try:
            if create:
                handle = await self._service.create_room(
                    room_id, self._origin_id, display_name=self._display_name
                )
            else:
                handle = await self._service.join_room(
                    room_id, self._origin_id, display_name=self._display_name
                )
        except BaseException:
            if generation == self._generation:
                self._state = SessionState.IDLE
            raise

        if generation != self._generation:
            logger.info("Discarding superseded join of room %s", room_id)
            try:
                await self._service.leave_room(handle.room_id, self._origin_id)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.warning("Leaving superseded room %s failed: %s", handle.room_id, exc)
            raise JoinCancelledError(room_id)

        return await self._activate(handle, generation)

    async def _activate(self, handle: RoomHandle, generation: int) -> Session:
        config = self._config
        session = Session(
            id=self._origin_id,
            room_id=handle.room_id,
            role=handle.role,
            display_name=self._display_name,
        )
        suppressor = EchoSuppressor(config.suppression_window_seconds)
        reconciler = RemoteReconciler(
            self._player,
            suppressor,
            session,
            drift_threshold=config.drift_threshold_seconds,
            on_applied=self._on_remote_applied,
        )
        latest = handle.latest_update
        transport = Transport(
            self._service,
            handle.room_id,
            self._origin_id,
            on_update=reconciler.apply,
            on_state_change=partial(self._on_connection_state, generation),
            config=config,
            since=latest.created_at if latest is not None else 0.0,
            seen_ids=[latest.id] if latest is not None else (),
        )
        capture = LocalCapture(
            self._player,
            suppressor,
            session,
            transport.send,
            coalesce_window=config.coalesce_window_seconds,
            resync_interval=config.resync_interval_seconds,
        )

        self._session = session
        self._suppressor = suppressor
        self._reconciler = reconciler
        self._transport = transport
        self._capture = capture
        self._failure_reported = False

        transport.start()
        capture.start()
        self._heartbeat_task = asyncio.create_task(self._heartbeat_loop(generation))
        self._state = SessionState.ACTIVE
        logger.info(
            "Joined room %s as %s (%d participants)",
            handle.room_id,
            handle.role,
            len(handle.participants),
        )
        await self._emit_event(
            EngineEventType.ROOM_JOINED,
            data={"role": str(handle.role), "participants": list(handle.participants)},
        )

        if latest is not None and generation == self._generation:
            await reconciler.apply(latest)
        return session

    async def _teardown(self) -> None:
        heartbeat, self._heartbeat_task = self._heartbeat_task, None
        if heartbeat is not None:
            heartbeat.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await heartbeat
        capture, self._capture = self._capture, None
        if capture is not None:
            await capture.stop()
        transport, self._transport = self._transport, None
        if transport is not None:
            await transport.stop()
        self._reconciler = None
        self._suppressor = None

    async def _heartbeat_loop(self, generation: int) -> None:
        interval = self._config.heartbeat_interval_seconds
        while generation == self._generation:
            await asyncio.sleep(interval)
            try:
                alive = await self._service.heartbeat(self._origin_id)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.warning("Heartbeat failed: %s", exc)
                continue
            if alive and self._session is not None:
                self._session.last_seen_at = datetime.now(UTC)
            elif not alive:
                logger.warning("Room service no longer knows session %s", self._origin_id)

    async def _on_connection_state(self, generation: int, state: ConnectionState) -> None:
        await self._emit_event(
            EngineEventType.CONNECTION_STATE_CHANGED, data={"state": str(state)}
        )
        if state != ConnectionState.ERROR or generation != self._generation:
            return
        if self._state != SessionState.ACTIVE or self._failure_reported:
            return
        self._state = SessionState.ERROR
        self._failure_reported = True
        error = self._transport.health().error if self._transport is not None else None
        logger.error("Sync failed for room %s: %s", self.room_id, error)
        await self._emit_event(EngineEventType.SYNC_FAILED, data={"error": error})

    async def _on_remote_applied(self, update: PlaybackUpdate) -> None:
        await self._emit_event(
            EngineEventType.REMOTE_UPDATE_APPLIED,
            room_id=update.room_id,
            data={
                "action": str(update.action),
                "position": update.position,
                "origin_id": update.origin_id,
            },
        )
