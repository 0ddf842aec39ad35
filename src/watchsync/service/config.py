"""HTTP room service configuration."""

from __future__ import annotations

from urllib.parse import urlparse

from pydantic import BaseModel, Field, SecretStr, field_validator, model_validator


class HTTPRoomServiceConfig(BaseModel):
    """Configuration for the HTTP/WebSocket room service client."""

    base_url: str
    ws_url: str | None = None
    api_key: SecretStr | None = None
    timeout: float = Field(default=10.0, gt=0.0)
    headers: dict[str, str] = Field(default_factory=dict)

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        parsed = urlparse(v)
        if parsed.scheme not in ("http", "https") or not parsed.hostname:
            raise ValueError(f"base_url must be an http(s) URL with a host, got {v!r}")
        return v.rstrip("/")

    @field_validator("ws_url")
    @classmethod
    def validate_ws_url(cls, v: str | None) -> str | None:
        if v is None:
            return v
        parsed = urlparse(v)
        if parsed.scheme not in ("ws", "wss") or not parsed.hostname:
            raise ValueError(f"ws_url must be a ws(s) URL with a host, got {v!r}")
        return v.rstrip("/")

    @model_validator(mode="after")
    def derive_ws_url(self) -> HTTPRoomServiceConfig:
        """Default the push endpoint to the base URL with a ws scheme."""
        if self.ws_url is None:
            if self.base_url.startswith("https://"):
                self.ws_url = "wss://" + self.base_url.removeprefix("https://")
            else:
                self.ws_url = "ws://" + self.base_url.removeprefix("http://")
        return self
