"""Engine-to-UI notification model."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field

from watchsync.models.enums import EngineEventType


class EngineEvent(BaseModel):
    """A fire-and-forget status notification for UI collaborators."""

    type: EngineEventType
    room_id: str | None = None
    origin_id: str | None = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    data: dict[str, Any] = Field(default_factory=dict)
