"""Compose path: send directly when online, otherwise queue locally."""

from __future__ import annotations

import logging
from collections.abc import Callable

from thryve_sync.db.time import ms_to_datetime, now_ms
from thryve_sync.schemas import MessageInput, RemoteMessage, SendReceipt
from thryve_sync.services.connectivity import ConnectivityMonitor
from thryve_sync.services.media_upload import MediaUploadClient, MediaUploadError
from thryve_sync.services.pending_store import PendingMessageStore
from thryve_sync.services.remote_store import RemoteMessageStore, RemoteStoreError

logger = logging.getLogger(__name__)


class MessageSender:
    """Entry point for newly composed messages."""

    def __init__(
        self,
        store: PendingMessageStore,
        remote: RemoteMessageStore,
        uploader: MediaUploadClient,
        connectivity: ConnectivityMonitor,
        *,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._store = store
        self._remote = remote
        self._uploader = uploader
        self._connectivity = connectivity
        self._clock = clock

    async def send(self, message: MessageInput) -> SendReceipt:
        """Deliver ``message`` now, or queue it when offline or when delivery fails.

        Local queue failures propagate to the caller as ``PendingStoreError``.
        """
        if not self._connectivity.is_online:
            logger.info("Offline: queueing message for room %s", message.room_id)
            return self._queue(message)

        image_url: str | None = None
        try:
            if message.image_data is not None:
                image = message.image_data
                result = await self._uploader.upload(
                    image.to_bytes(), image.file_name, image.mime_type
                )
                image_url = result.url

            record = RemoteMessage(
                message=message.message,
                timestamp=ms_to_datetime(self._clock()),
                users=message.users,
                user_image=message.user_image,
                user_id=message.user_id,
                image_url=image_url,
                reply_to=message.reply_to,
            )
            remote_id = await self._remote.create_message(message.room_id, record)
        except (RemoteStoreError, MediaUploadError, OSError) as exc:
            logger.warning("Send failed, adding message to offline queue: %s", exc)
            return self._queue(message, uploaded_image_url=image_url)

        return SendReceipt(status="sent", id=remote_id, pending_count=self._store.count())

    def _queue(self, message: MessageInput, *, uploaded_image_url: str | None = None) -> SendReceipt:
        pending_id = self._store.add(message)
        if uploaded_image_url:
            self._store.update_uploaded_url(pending_id, uploaded_image_url)
        return SendReceipt(status="queued", id=pending_id, pending_count=self._store.count())
