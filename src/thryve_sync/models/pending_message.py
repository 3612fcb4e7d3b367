"""SQLAlchemy model for messages composed offline and not yet delivered."""

from typing import Any

from sqlalchemy import JSON, VARCHAR, BigInteger, Index, SmallInteger, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from thryve_sync.db.session import Base

# Delivery states
STATUS_PENDING = "pending"
STATUS_UPLOADING = "uploading"
STATUS_SENT = "sent"
STATUS_FAILED = "failed"

MESSAGE_STATUSES = frozenset({STATUS_PENDING, STATUS_UPLOADING, STATUS_SENT, STATUS_FAILED})


class PendingMessage(Base):
    """A composed chat message waiting for delivery to the remote store.

    ``sent`` is never persisted: delivered entries are deleted instead.
    """

    __tablename__ = "pending_message"
    __table_args__ = (Index("ix_pending_message_room_ts", "room_id", "client_timestamp"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    room_id: Mapped[str] = mapped_column(Text, nullable=False)
    user_id: Mapped[str] = mapped_column(Text, nullable=False)
    users: Mapped[str] = mapped_column(Text, nullable=False)  # author display name
    user_image: Mapped[str] = mapped_column(Text, nullable=False, default="")

    message: Mapped[str] = mapped_column(Text, nullable=False, default="")
    # {"base64": ..., "mime_type": ..., "file_name": ...}
    image_data: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    uploaded_image_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    # {"id": ..., "message": ..., "users": ..., "image_url": ...}
    reply_to: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    client_timestamp: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    status: Mapped[str] = mapped_column(VARCHAR(20), nullable=False, default=STATUS_PENDING)
    retry_count: Mapped[int] = mapped_column(SmallInteger, nullable=False, default=0)
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False)

    def __repr__(self) -> str:
        return (
            f"PendingMessage(id={self.id!r}, room_id={self.room_id!r}, "
            f"status={self.status!r}, retry_count={self.retry_count})"
        )
