"""Request bodies accepted by the local HTTP API."""

from __future__ import annotations

from pydantic import Field

from .common import CamelModel


class ConnectivityUpdate(CamelModel):
    """Network state reported by the UI process."""

    online: bool


class RetryRequest(CamelModel):
    """Failed messages to re-queue; all of them when ``ids`` is omitted."""

    ids: list[str] | None = None


class TypingRequest(CamelModel):
    user_name: str = Field(default="Anonymous")


class MarkReadRequest(CamelModel):
    user_id: str = Field(..., min_length=1)


class MarkAllReadRequest(CamelModel):
    user_id: str = Field(..., min_length=1)
    last_message_timestamp: int | None = None
