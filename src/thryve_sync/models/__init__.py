# src/thryve_sync/models/__init__.py
"""SQLAlchemy models for the local delivery queue."""

from .pending_message import (
    MESSAGE_STATUSES,
    STATUS_FAILED,
    STATUS_PENDING,
    STATUS_SENT,
    STATUS_UPLOADING,
    PendingMessage,
)

__all__ = [
    "PendingMessage",
    "MESSAGE_STATUSES",
    "STATUS_PENDING", "STATUS_UPLOADING", "STATUS_SENT", "STATUS_FAILED",
]
