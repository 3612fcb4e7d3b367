# src/thryve_sync/services/__init__.py
"""Delivery, presence and receipt services."""

from .connectivity import ConnectivityMonitor
from .media_upload import MediaUploadClient, MediaUploadError
from .pending_store import PendingMessageStore, PendingStoreError
from .read_receipts import ReadReceiptTracker
from .remote_store import RemoteMessageStore, RemoteStoreError
from .sender import MessageSender
from .sync_engine import ImageFailurePolicy, SyncEngine
from .typing_tracker import TypingPresenceTracker, format_typing_text

__all__ = [
    "ConnectivityMonitor",
    "ImageFailurePolicy",
    "MediaUploadClient",
    "MediaUploadError",
    "MessageSender",
    "PendingMessageStore",
    "PendingStoreError",
    "ReadReceiptTracker",
    "RemoteMessageStore",
    "RemoteStoreError",
    "SyncEngine",
    "TypingPresenceTracker",
    "format_typing_text",
]
