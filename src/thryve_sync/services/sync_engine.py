"""Drains the local pending-message queue into the remote message store.

This module provides the SyncEngine class, which delivers queued messages one
at a time in compose order. It handles:

- Single-flight drains (a second call while one runs is a no-op)
- Retry accounting with a terminal ``failed`` state
- Media upload caching so a retried message never uploads twice
- Early stop when connectivity drops mid-drain
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from enum import Enum

from thryve_sync.db.time import ms_to_datetime
from thryve_sync.models import STATUS_FAILED, STATUS_PENDING, STATUS_UPLOADING, PendingMessage
from thryve_sync.schemas import ImageData, RemoteMessage, ReplyReference, SyncResult
from thryve_sync.services.connectivity import ConnectivityMonitor
from thryve_sync.services.media_upload import MediaUploadClient, MediaUploadError
from thryve_sync.services.pending_store import PendingMessageStore, PendingStoreError
from thryve_sync.services.remote_store import RemoteMessageStore, RemoteStoreError

# Configure logger for this module
logger = logging.getLogger(__name__)

DEFAULT_MAX_RETRIES = 3

SyncCompleteCallback = Callable[[SyncResult], object]


class ImageUploadFailed(RuntimeError):
    """Raised when a failed upload should fail the whole delivery attempt."""


class ImageFailurePolicy(str, Enum):
    """What a drain does when a queued message's image cannot be uploaded.

    DEGRADE_TO_TEXT sends the message without its image.
    RETRY_MESSAGE counts the attempt as a delivery failure so the message,
    image included, is retried on a later drain.
    """

    DEGRADE_TO_TEXT = "degrade"
    RETRY_MESSAGE = "retry"

    def on_upload_failure(self, message_id: str, exc: Exception) -> None:
        if self is ImageFailurePolicy.RETRY_MESSAGE:
            raise ImageUploadFailed(f"Image upload failed for {message_id}: {exc}") from exc
        logger.warning(
            "Image upload failed for message %s; sending without image: %s", message_id, exc
        )


class SyncEngine:
    """Delivers every queued message to ``sent`` (removed) or terminal ``failed``."""

    def __init__(
        self,
        store: PendingMessageStore,
        remote: RemoteMessageStore,
        uploader: MediaUploadClient,
        connectivity: ConnectivityMonitor,
        *,
        max_retries: int = DEFAULT_MAX_RETRIES,
        image_failure_policy: ImageFailurePolicy = ImageFailurePolicy.DEGRADE_TO_TEXT,
    ) -> None:
        self._store = store
        self._remote = remote
        self._uploader = uploader
        self._connectivity = connectivity
        self._max_retries = max_retries
        self._image_failure_policy = image_failure_policy
        self._syncing = False
        self._on_sync_complete: SyncCompleteCallback | None = None

    @property
    def is_syncing(self) -> bool:
        return self._syncing

    def set_on_sync_complete(self, callback: SyncCompleteCallback | None) -> None:
        """Register the single completion callback, replacing any previous one."""
        self._on_sync_complete = callback

    async def sync_pending_messages(self) -> SyncResult:
        """Run one drain over the queue.

        Returns:
            Counts of messages delivered and delivery attempts that failed in
            this drain. ``SyncResult(0, 0)`` without doing any work when a drain
            is already running or the agent is offline.
        """
        if self._syncing or not self._connectivity.is_online:
            return SyncResult()

        self._syncing = True
        synced = 0
        failed = 0

        try:
            pending = self._store.list()
            logger.debug("Found %d queued message(s)", len(pending))

            for entry in sorted(pending, key=lambda item: item.client_timestamp):
                if not self._connectivity.is_online:
                    logger.info("Connectivity lost during drain; deferring remaining messages")
                    break

                if entry.status == STATUS_FAILED:
                    continue

                delivered = await self._deliver(entry)
                if delivered is True:
                    synced += 1
                elif delivered is False:
                    failed += 1
        except PendingStoreError as exc:
            logger.error("Drain aborted, queue could not be read: %s", exc)
        finally:
            self._syncing = False
            result = SyncResult(synced=synced, failed=failed)
            if synced or failed:
                logger.info("Drain finished: %d synced, %d failed", synced, failed)
            await self._notify(result)

        return result

    async def _deliver(self, entry: PendingMessage) -> bool | None:
        """Deliver one entry.

        Returns:
            True when written remotely, False when the attempt failed and was
            re-queued or marked failed, None when the local store faulted
            before any remote I/O.
        """
        logger.debug("Delivering message %s (attempt %d)", entry.id, entry.retry_count + 1)
        try:
            self._store.update_status(entry.id, STATUS_UPLOADING, entry.retry_count)
        except PendingStoreError:
            logger.error("Skipping message %s: could not mark it in flight", entry.id)
            return None

        try:
            image_url = await self._resolve_image_url(entry)
            record = self._build_record(entry, image_url)
            await self._remote.create_message(entry.room_id, record)
        except (RemoteStoreError, ImageUploadFailed, OSError, TimeoutError) as exc:
            logger.warning("Delivery of message %s failed: %s", entry.id, exc)
            self._record_failure(entry)
            return False
        except (ValueError, TypeError, KeyError) as exc:
            logger.error(
                "Data error while delivering message %s: %s", entry.id, exc, exc_info=True
            )
            self._record_failure(entry)
            return False

        try:
            self._store.remove(entry.id)
        except PendingStoreError:
            # Already written remotely; a later drain may deliver it again.
            logger.error("Message %s delivered but still queued locally", entry.id)
        return True

    async def _resolve_image_url(self, entry: PendingMessage) -> str | None:
        if entry.uploaded_image_url:
            return entry.uploaded_image_url
        if not entry.image_data:
            return None

        image = ImageData.model_validate(entry.image_data)
        try:
            result = await self._uploader.upload(image.to_bytes(), image.file_name, image.mime_type)
        except (MediaUploadError, ValueError, OSError) as exc:
            self._image_failure_policy.on_upload_failure(entry.id, exc)
            return None

        try:
            self._store.update_uploaded_url(entry.id, result.url)
        except PendingStoreError:
            logger.error("Could not cache uploaded image URL for message %s", entry.id)
        entry.uploaded_image_url = result.url
        return result.url

    def _build_record(self, entry: PendingMessage, image_url: str | None) -> RemoteMessage:
        return RemoteMessage(
            message=entry.message,
            timestamp=ms_to_datetime(entry.client_timestamp),
            users=entry.users,
            user_image=entry.user_image,
            user_id=entry.user_id,
            image_url=image_url,
            reply_to=ReplyReference.model_validate(entry.reply_to) if entry.reply_to else None,
        )

    def _record_failure(self, entry: PendingMessage) -> None:
        retry_count = entry.retry_count + 1
        status = STATUS_FAILED if retry_count >= self._max_retries else STATUS_PENDING
        try:
            self._store.update_status(entry.id, status, retry_count)
        except PendingStoreError:
            logger.error("Could not record failed attempt for message %s", entry.id)
            return
        if status == STATUS_FAILED:
            logger.warning("Message %s failed %d times; giving up", entry.id, retry_count)

    async def _notify(self, result: SyncResult) -> None:
        callback = self._on_sync_complete
        if callback is None:
            return
        try:
            outcome = callback(result)
            if asyncio.iscoroutine(outcome):
                await outcome
        except Exception as exc:
            logger.error("Sync completion callback failed: %s", exc, exc_info=True)
