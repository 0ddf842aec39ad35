"""Normalization of room service payloads into engine models."""

from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any

from watchsync.models.enums import PlaybackAction
from watchsync.models.room import RoomHandle
from watchsync.models.update import PlaybackUpdate

logger = logging.getLogger("watchsync.service.codec")

# Key spellings seen across room service backends, first match wins
_ORIGIN_KEYS = ("originId", "origin_id", "sessionId", "session_id")
_POSITION_KEYS = ("position", "currentTime", "current_time")
_CREATED_KEYS = ("createdAt", "created_at", "timestamp", "updatedAt")
_ACTION_ALIASES = {
    "play": PlaybackAction.PLAY,
    "playing": PlaybackAction.PLAY,
    "pause": PlaybackAction.PAUSE,
    "paused": PlaybackAction.PAUSE,
    "seek": PlaybackAction.SEEK,
    "seeked": PlaybackAction.SEEK,
}


def _first(data: dict[str, Any], keys: tuple[str, ...]) -> Any:
    for key in keys:
        if data.get(key) is not None:
            return data[key]
    return None


def _parse_timestamp(value: Any) -> float | None:
    if value is None:
        return None
    if isinstance(value, bool):
        raise TypeError("timestamp must not be a boolean")
    if isinstance(value, int | float):
        # Millisecond epochs are common on the wire
        return value / 1000.0 if value > 1e11 else float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return datetime.fromisoformat(value).timestamp()
    raise TypeError(f"unsupported timestamp {value!r}")


def _parse_action(data: dict[str, Any]) -> PlaybackAction:
    raw = data.get("action") or data.get("event")
    if raw is not None:
        return _ACTION_ALIASES[str(raw).lower()]
    playing = data.get("isPlaying")
    if isinstance(playing, bool):
        return PlaybackAction.PLAY if playing else PlaybackAction.PAUSE
    raise KeyError("action")


def parse_update(
    raw: str | bytes | dict[str, Any], *, room_id: str | None = None
) -> PlaybackUpdate | None:
    """Normalize an inbound payload into a ``PlaybackUpdate``.

    Accepts the engine's own camelCase shape as well as the legacy
    ``{sessionId, currentTime, isPlaying, timestamp}`` player-event shape.
    *room_id* fills in the room when the payload omits it.

    Returns:
        The update, or None when the payload is not a usable update.
    """
    try:
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        data = json.loads(raw) if isinstance(raw, str) else raw

        if not isinstance(data, dict):
            return None

        origin = _first(data, _ORIGIN_KEYS)
        position = _first(data, _POSITION_KEYS)
        if origin is None or position is None:
            return None

        playing = data.get("playing", data.get("isPlaying"))
        fields: dict[str, Any] = {
            "room_id": data.get("roomId") or data.get("room_id") or room_id,
            "origin_id": str(origin),
            "action": _parse_action(data),
            "position": float(position),
            "playing": playing if isinstance(playing, bool) else None,
        }
        created_at = _parse_timestamp(_first(data, _CREATED_KEYS))
        if created_at is not None:
            fields["created_at"] = created_at
        if data.get("id") is not None:
            fields["id"] = str(data["id"])
        return PlaybackUpdate(**fields)
    except (json.JSONDecodeError, UnicodeDecodeError, KeyError, TypeError, ValueError) as e:
        # ValidationError is a ValueError subclass
        logger.debug("Failed to parse playback update: %s", e)
        return None


def parse_updates(raw: Any, *, room_id: str | None = None) -> list[PlaybackUpdate]:
    """Parse a list payload, dropping malformed entries, oldest first."""
    if isinstance(raw, dict):
        raw = raw.get("updates", [])
    if not isinstance(raw, list):
        return []
    updates = [u for u in (parse_update(item, room_id=room_id) for item in raw) if u is not None]
    updates.sort(key=lambda u: u.created_at)
    return updates


def update_to_wire(update: PlaybackUpdate) -> dict[str, Any]:
    return update.to_wire()


def parse_handle(data: dict[str, Any]) -> RoomHandle:
    """Build a ``RoomHandle`` from a create/join response.

    Raises:
        ValidationError: If required fields are missing.
    """
    latest = data.get("latestUpdate") or data.get("latest_update")
    payload = {k: v for k, v in data.items() if k not in ("latestUpdate", "latest_update")}
    handle = RoomHandle.model_validate(payload)
    if latest is not None:
        handle.latest_update = parse_update(latest, room_id=handle.room_id)
    return handle


__all__ = [
    "parse_handle",
    "parse_update",
    "parse_updates",
    "update_to_wire",
]
