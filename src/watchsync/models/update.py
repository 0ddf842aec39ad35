"""Playback update and native player event models."""

from __future__ import annotations

import time
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from watchsync.models.enums import PlaybackAction


class PlaybackUpdate(BaseModel):
    """A play/pause/seek change produced by one participant of a room.

    Serialized with camelCase keys (``roomId``, ``originId``, ``createdAt``);
    snake_case names are accepted on input as well.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)

    id: str = Field(default_factory=lambda: uuid4().hex)
    room_id: str
    origin_id: str
    action: PlaybackAction
    position: float = Field(ge=0.0, allow_inf_nan=False)
    created_at: float = Field(default_factory=time.time, allow_inf_nan=False)
    # Play state at capture time; lets a coalesced seek still carry it
    playing: bool | None = None

    def to_wire(self) -> dict[str, object]:
        """Convert to a JSON-serializable dictionary with camelCase keys."""
        return self.model_dump(mode="json", by_alias=True)


class PlayerEvent(BaseModel):
    """A native state change reported by the video element."""

    model_config = ConfigDict(frozen=True)

    kind: PlaybackAction
    time: float = Field(ge=0.0)
