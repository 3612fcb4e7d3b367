# src/thryve_sync/schemas/message.py
"""Message-related Pydantic schemas."""

from __future__ import annotations

import base64
import binascii
from datetime import datetime
from typing import Literal

from pydantic import Field, field_serializer, model_validator

from thryve_sync.db.time import datetime_to_ms

from .common import CamelModel


class ImageData(CamelModel):
    """Inline image captured at compose time, before any upload."""

    base64: str = Field(..., description="Base64 payload, optionally as a data: URL")
    mime_type: str = Field(..., description="MIME type such as image/png")
    file_name: str = Field(..., description="Original file name")

    @model_validator(mode="after")
    def _check_payload(self) -> ImageData:
        self.to_bytes()
        return self

    def to_bytes(self) -> bytes:
        """Decode the payload, stripping a ``data:<mime>;base64,`` prefix if present."""
        payload = self.base64
        if payload.startswith("data:"):
            _, _, payload = payload.partition(",")
        try:
            return base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise ValueError(f"Image {self.file_name!r} is not valid base64") from exc


class ReplyReference(CamelModel):
    """Snapshot of the message being replied to, copied by value."""

    id: str
    message: str = ""
    users: str = ""
    image_url: str | None = None


class MessageInput(CamelModel):
    """Schema for a freshly composed message."""

    room_id: str = Field(..., min_length=1)
    user_id: str = Field(..., min_length=1)
    users: str = Field(default="Anonymous", description="Author display name")
    user_image: str = ""
    message: str = ""
    image_data: ImageData | None = None
    reply_to: ReplyReference | None = None
    client_timestamp: int | None = Field(
        default=None,
        description="Capture time in epoch milliseconds; defaults to the time of queueing",
    )

    @model_validator(mode="after")
    def _require_body(self) -> MessageInput:
        self.message = self.message.strip()
        if not self.message and self.image_data is None:
            raise ValueError("A message needs text, an image, or both")
        return self


class RemoteMessage(CamelModel):
    """Record written to the remote store for one delivered message."""

    message: str
    timestamp: datetime
    users: str
    user_image: str
    user_id: str
    image_url: str | None = None
    reply_to: ReplyReference | None = None

    @field_serializer("timestamp")
    def serialize_timestamp(self, value: datetime) -> int:
        """The remote store keeps time as epoch milliseconds."""
        return datetime_to_ms(value)


class ReadReceipt(CamelModel):
    """One reader's acknowledgement of a message."""

    user_id: str
    read_at: int


class StoredMessage(CamelModel):
    """Message document as read back from the remote store."""

    id: str
    message: str = ""
    timestamp: int
    users: str = ""
    user_image: str = ""
    user_id: str = ""
    image_url: str | None = None
    reply_to: ReplyReference | None = None
    read_by: list[ReadReceipt] = Field(default_factory=list)

    def is_read_by(self, user_id: str) -> bool:
        """Return True if ``user_id`` has a receipt on this message."""
        return any(receipt.user_id == user_id for receipt in self.read_by)


class UploadResult(CamelModel):
    """Response of the media upload service."""

    url: str
    id: str | None = None
    width: int | None = None
    height: int | None = None


class SyncResult(CamelModel):
    """Tally of one drain."""

    synced: int = 0
    failed: int = 0


class SendReceipt(CamelModel):
    """Outcome of the compose path: delivered directly or queued locally."""

    status: Literal["sent", "queued"]
    id: str
    pending_count: int
