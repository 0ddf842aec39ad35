"""Room, room handle and session models."""

from __future__ import annotations

import time
from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from watchsync.models.enums import SessionRole
from watchsync.models.update import PlaybackUpdate


class Room(BaseModel):
    """A watch-party room as tracked by a room service."""

    id: str
    participants: set[str] = Field(default_factory=set)
    created_at: float = Field(default_factory=time.time)


class RoomHandle(BaseModel):
    """Result of a successful create or join."""

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    room_id: str
    origin_id: str
    role: SessionRole = SessionRole.GUEST
    participants: list[str] = Field(default_factory=list)
    created_at: float = Field(default_factory=time.time)
    latest_update: PlaybackUpdate | None = None


class Session(BaseModel):
    """This engine's membership in a room."""

    id: str
    room_id: str
    role: SessionRole = SessionRole.GUEST
    display_name: str | None = None
    joined_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    last_seen_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
