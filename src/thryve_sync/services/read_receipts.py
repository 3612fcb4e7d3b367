"""Read receipts and unread counts.

Receipts are best-effort: a lost receipt only makes a badge slightly wrong,
so write failures are logged and returned as ``Failed`` instead of raised.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from typing import Any

from thryve_sync.db.time import now_ms
from thryve_sync.schemas import ReadReceipt, StoredMessage
from thryve_sync.services.outcome import DELIVERED, Failed, Outcome
from thryve_sync.services.remote_store import RemoteMessageStore, RemoteStoreError
from thryve_sync.services.subscriptions import (
    PollingSubscription,
    Subscription,
    SubscriptionGroup,
)

logger = logging.getLogger(__name__)

UNREAD_MAX_ROOMS = 10
UNREAD_WINDOW_SIZE = 50

UnreadCallback = Callable[[dict[str, int]], Any]


def count_unread(
    messages: Sequence[StoredMessage],
    user_id: str,
    last_read_timestamp: int | None = None,
) -> int:
    """Count messages from other users that ``user_id`` has not read."""
    return sum(
        1
        for message in messages
        if message.user_id != user_id
        and not message.is_read_by(user_id)
        and (last_read_timestamp is None or message.timestamp > last_read_timestamp)
    )


class ReadReceiptTracker:
    """Records receipts and derives per-room unread counts."""

    def __init__(
        self,
        remote: RemoteMessageStore,
        *,
        max_rooms: int = UNREAD_MAX_ROOMS,
        window_size: int = UNREAD_WINDOW_SIZE,
        poll_interval_seconds: float = 2.0,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._remote = remote
        self._max_rooms = max_rooms
        self._window_size = window_size
        self._poll_interval = poll_interval_seconds
        self._clock = clock
        self._subscription: Subscription | None = None

    async def mark_as_read(self, room_id: str, message_id: str, user_id: str) -> Outcome:
        """Add the user's receipt to a message; repeating it is harmless."""
        receipt = ReadReceipt(user_id=user_id, read_at=self._clock())
        try:
            await self._remote.add_read_receipt(room_id, message_id, receipt)
        except (RemoteStoreError, OSError) as exc:
            logger.warning("Error marking message %s as read: %s", message_id, exc)
            return Failed(exc)
        return DELIVERED

    async def mark_all_as_read(
        self,
        room_id: str,
        user_id: str,
        last_message_timestamp: int | None = None,
    ) -> Outcome:
        """Move the user's room read cursor to ``last_message_timestamp`` (default: now)."""
        timestamp = last_message_timestamp if last_message_timestamp is not None else self._clock()
        try:
            await self._remote.set_read_cursor(room_id, user_id, timestamp)
        except (RemoteStoreError, OSError) as exc:
            logger.warning("Error marking room %s as read: %s", room_id, exc)
            return Failed(exc)
        return DELIVERED

    async def get_unread_count(self, room_id: str, user_id: str, last_read_timestamp: int) -> int:
        """Count messages newer than ``last_read_timestamp`` not written by ``user_id``.

        Returns 0 when the store cannot be reached.
        """
        try:
            messages = await self._remote.list_messages(room_id, after=last_read_timestamp)
        except (RemoteStoreError, OSError) as exc:
            logger.warning("Error getting unread count for room %s: %s", room_id, exc)
            return 0
        return sum(
            1
            for message in messages
            if message.timestamp > last_read_timestamp and message.user_id != user_id
        )

    def listen_for_unread_counts(
        self,
        user_id: str,
        room_ids: Sequence[str],
        callback: UnreadCallback,
    ) -> Subscription:
        """Watch unread counts for up to ``max_rooms`` rooms.

        Rooms past the cap are ignored. Each change in any watched room
        recomputes that room's count from its newest messages and delivers a
        copy of the whole ``{room_id: count}`` mapping.
        """
        self.stop_listening()

        watched = list(room_ids)[: self._max_rooms]
        if len(room_ids) > len(watched):
            logger.debug("Watching unread counts for %d of %d rooms", len(watched), len(room_ids))

        counts: dict[str, int] = {}

        def watch(room_id: str) -> Subscription:
            async def fetch() -> tuple[list[StoredMessage], int | None]:
                messages = await self._remote.list_messages(room_id, limit=self._window_size)
                cursors = await self._remote.get_read_cursors(room_id)
                return messages, cursors.get(user_id)

            def deliver(snapshot: tuple[list[StoredMessage], int | None]) -> Any:
                messages, last_read = snapshot
                counts[room_id] = count_unread(messages, user_id, last_read)
                return callback(dict(counts))

            return PollingSubscription(
                fetch,
                deliver,
                interval_seconds=self._poll_interval,
                name=f"unread:{room_id}",
            )

        self._subscription = SubscriptionGroup(watch(room_id) for room_id in watched)
        return self._subscription

    def stop_listening(self) -> None:
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None

    async def dispose(self) -> None:
        subscription = self._subscription
        self._subscription = None
        if subscription is not None:
            await subscription.stop()
