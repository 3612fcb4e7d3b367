# src/thryve_sync/schemas/__init__.py
"""Pydantic schemas for queued, remote and presence records."""

from .message import (
    ImageData,
    MessageInput,
    ReadReceipt,
    RemoteMessage,
    ReplyReference,
    SendReceipt,
    StoredMessage,
    SyncResult,
    UploadResult,
)
from .presence import TypingState

__all__ = [
    "ImageData",
    "MessageInput",
    "ReadReceipt",
    "RemoteMessage",
    "ReplyReference",
    "SendReceipt",
    "StoredMessage",
    "SyncResult",
    "TypingState",
    "UploadResult",
]
