"""Room service client over HTTP with a WebSocket push channel."""

from __future__ import annotations

import contextlib
import json
import logging
from collections.abc import AsyncIterator
from typing import Any
from urllib.parse import quote, urlencode

import httpx
import websockets
from pydantic import ValidationError
from websockets import ClientConnection
from websockets.exceptions import ConnectionClosedError, WebSocketException

from watchsync.core.errors import (
    ConnectionLostError,
    RoomAlreadyExistsError,
    RoomNotFoundError,
    RoomServiceError,
    UpdateRejectedError,
)
from watchsync.models.room import RoomHandle
from watchsync.models.update import PlaybackUpdate
from watchsync.service.base import RoomService, UpdateSubscription
from watchsync.service.codec import parse_handle, parse_update, parse_updates
from watchsync.service.config import HTTPRoomServiceConfig

logger = logging.getLogger("watchsync.service.http")


class HTTPRoomService(RoomService):
    """Room service reached over JSON HTTP, with WebSocket push updates.

    Endpoints (relative to ``base_url``)::

        POST /rooms                         create
        POST /rooms/{room}/join             join (404 when unknown)
        POST /rooms/{room}/leave            leave
        POST /rooms/{room}/updates          post an update
        GET  /rooms/{room}/updates?since=   updates at or after a timestamp
        POST /sessions/{origin}/heartbeat   keep a session alive
        WS   {ws_url}/rooms/{room}/updates?exclude={origin}

    Example:
        service = HTTPRoomService(
            HTTPRoomServiceConfig(base_url="https://party.example.com/api")
        )
        handle = await service.join_room("K3J9QX2A", origin_id)
    """

    def __init__(
        self,
        config: HTTPRoomServiceConfig,
        *,
        client: httpx.AsyncClient | None = None,
        push: bool = True,
    ) -> None:
        self._config = config
        self._push = push
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=config.base_url,
            timeout=config.timeout,
            headers=self._build_headers(),
        )

    @property
    def supports_push(self) -> bool:
        return self._push

    async def create_room(
        self, room_id: str, origin_id: str, *, display_name: str | None = None
    ) -> RoomHandle:
        resp = await self._request(
            "POST",
            "/rooms",
            json={"roomId": room_id, "originId": origin_id, "displayName": display_name},
        )
        if resp.status_code == 409:
            raise RoomAlreadyExistsError(room_id)
        return self._handle_from(resp)

    async def join_room(
        self, room_id: str, origin_id: str, *, display_name: str | None = None
    ) -> RoomHandle:
        resp = await self._request(
            "POST",
            f"/rooms/{quote(room_id, safe='')}/join",
            json={"originId": origin_id, "displayName": display_name},
        )
        if resp.status_code == 404:
            raise RoomNotFoundError(room_id)
        return self._handle_from(resp)

    async def leave_room(self, room_id: str, origin_id: str) -> None:
        resp = await self._request(
            "POST",
            f"/rooms/{quote(room_id, safe='')}/leave",
            json={"originId": origin_id},
        )
        if resp.status_code != 404:
            self._raise_for_status(resp)

    async def post_update(self, update: PlaybackUpdate) -> None:
        resp = await self._request(
            "POST",
            f"/rooms/{quote(update.room_id, safe='')}/updates",
            content=json.dumps(update.to_wire()),
            headers={"Content-Type": "application/json"},
        )
        if 400 <= resp.status_code < 500 and resp.status_code not in (408, 429):
            raise UpdateRejectedError(f"http_{resp.status_code}")
        self._raise_for_status(resp)

    async def subscribe_updates(
        self, room_id: str, *, exclude_origin: str | None = None
    ) -> UpdateSubscription:
        if not self._push:
            return await super().subscribe_updates(room_id, exclude_origin=exclude_origin)

        uri = f"{self._config.ws_url}/rooms/{quote(room_id, safe='')}/updates"
        if exclude_origin is not None:
            uri += "?" + urlencode({"exclude": exclude_origin})

        connect_kwargs: dict[str, Any] = {"uri": uri}
        headers = self._build_headers()
        if headers:
            connect_kwargs["additional_headers"] = headers

        try:
            ws = await websockets.connect(**connect_kwargs)
        except (OSError, WebSocketException) as exc:
            raise RoomServiceError(f"push handshake failed: {exc}") from exc
        logger.info("Push channel open for room %s", room_id)
        return _WebSocketSubscription(ws, room_id, exclude_origin)

    async def query_updates_since(self, room_id: str, since: float) -> list[PlaybackUpdate]:
        resp = await self._request(
            "GET",
            f"/rooms/{quote(room_id, safe='')}/updates",
            params={"since": repr(since)},
        )
        if resp.status_code == 404:
            raise RoomNotFoundError(room_id)
        self._raise_for_status(resp)
        return parse_updates(self._json(resp), room_id=room_id)

    async def heartbeat(self, origin_id: str) -> bool:
        resp = await self._request("POST", f"/sessions/{quote(origin_id, safe='')}/heartbeat")
        if resp.status_code == 404:
            return False
        self._raise_for_status(resp)
        data = self._json(resp)
        return bool(data.get("ok", True)) if isinstance(data, dict) else True

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # Internal helpers

    def _build_headers(self) -> dict[str, str]:
        headers = dict(self._config.headers)
        if self._config.api_key is not None:
            headers["x-api-key"] = self._config.api_key.get_secret_value()
        return headers

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            return await self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as exc:
            raise RoomServiceError(f"timeout: {method} {path}") from exc
        except httpx.HTTPError as exc:
            raise RoomServiceError(str(exc) or type(exc).__name__) from exc

    @staticmethod
    def _raise_for_status(resp: httpx.Response) -> None:
        if resp.status_code >= 400:
            raise RoomServiceError(f"http_{resp.status_code}")

    @staticmethod
    def _json(resp: httpx.Response) -> Any:
        try:
            return resp.json()
        except ValueError as exc:
            raise RoomServiceError("invalid JSON in room service response") from exc

    def _handle_from(self, resp: httpx.Response) -> RoomHandle:
        self._raise_for_status(resp)
        data = self._json(resp)
        if not isinstance(data, dict):
            raise RoomServiceError("unexpected room handle payload")
        try:
            return parse_handle(data)
        except ValidationError as exc:
            raise RoomServiceError(f"invalid room handle: {exc}") from exc


class _WebSocketSubscription(UpdateSubscription):
    """Push subscription backed by one WebSocket connection."""

    def __init__(self, ws: ClientConnection, room_id: str, exclude_origin: str | None) -> None:
        self._ws = ws
        self._room_id = room_id
        self._exclude_origin = exclude_origin

    def __aiter__(self) -> AsyncIterator[PlaybackUpdate]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[PlaybackUpdate]:
        try:
            async for raw in self._ws:
                update = parse_update(raw, room_id=self._room_id)
                if update is None:
                    # Pings, acks and other non-update frames
                    continue
                if update.origin_id == self._exclude_origin:
                    continue
                yield update
        except ConnectionClosedError as exc:
            raise ConnectionLostError(f"push channel closed: {exc}") from exc

    async def close(self) -> None:
        with contextlib.suppress(Exception):
            await self._ws.close()
