"""Durable local persistence for messages that have not reached the remote store.

The store is a CRUD primitive: it never decides ordering or retry policy.
Each call runs in its own short session, so a drain reading the queue and the
compose path adding new entries do not share transactional state.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager
from uuid import uuid4

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from thryve_sync.db.time import now_ms
from thryve_sync.models import (
    MESSAGE_STATUSES,
    STATUS_FAILED,
    STATUS_PENDING,
    STATUS_SENT,
    PendingMessage,
)
from thryve_sync.schemas import MessageInput

logger = logging.getLogger(__name__)


class PendingStoreError(RuntimeError):
    """Raised when the local queue cannot be read or written."""


class PendingMessageStore:
    """Queue of composed-but-undelivered messages keyed by a local id."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        *,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock

    @contextmanager
    def _session(self, action: str) -> Iterator[Session]:
        try:
            with self._session_factory() as db:
                yield db
        except SQLAlchemyError as exc:
            logger.error("Pending store failed to %s: %s", action, exc, exc_info=True)
            raise PendingStoreError(f"Could not {action}: {exc}") from exc

    def add(self, message: MessageInput) -> str:
        """Persist a new entry as ``pending`` with no retries and return its id."""
        now = self._clock()
        entry = PendingMessage(
            id=str(uuid4()),
            room_id=message.room_id,
            user_id=message.user_id,
            users=message.users,
            user_image=message.user_image,
            message=message.message,
            image_data=message.image_data.model_dump() if message.image_data else None,
            reply_to=message.reply_to.model_dump() if message.reply_to else None,
            client_timestamp=(
                message.client_timestamp if message.client_timestamp is not None else now
            ),
            status=STATUS_PENDING,
            retry_count=0,
            created_at=now,
        )
        with self._session("add pending message") as db:
            db.add(entry)
            db.commit()
        logger.debug("Queued message %s for room %s", entry.id, entry.room_id)
        return entry.id

    def list(self) -> list[PendingMessage]:
        """Return every entry regardless of status, in no particular order."""
        with self._session("list pending messages") as db:
            return db.query(PendingMessage).all()

    def list_for_room(self, room_id: str) -> list[PendingMessage]:
        """Return the entries of one room in compose order."""
        with self._session("list pending messages for room") as db:
            return (
                db.query(PendingMessage)
                .filter(PendingMessage.room_id == room_id)
                .order_by(PendingMessage.client_timestamp)
                .all()
            )

    def get(self, message_id: str) -> PendingMessage | None:
        with self._session("load pending message") as db:
            return db.get(PendingMessage, message_id)

    def update_status(self, message_id: str, status: str, retry_count: int) -> None:
        """Set status and retry count; silently ignores unknown ids."""
        if status not in MESSAGE_STATUSES or status == STATUS_SENT:
            raise ValueError(f"Cannot store pending message with status {status!r}")

        with self._session("update message status") as db:
            entry = db.get(PendingMessage, message_id)
            if entry is None:
                return
            entry.status = status
            entry.retry_count = retry_count
            db.commit()

    def update_uploaded_url(self, message_id: str, url: str) -> None:
        """Cache the media URL obtained for this entry."""
        with self._session("update uploaded image url") as db:
            entry = db.get(PendingMessage, message_id)
            if entry is None:
                return
            entry.uploaded_image_url = url
            db.commit()

    def remove(self, message_id: str) -> None:
        """Delete an entry. Removing a missing id is not an error."""
        with self._session("remove pending message") as db:
            db.query(PendingMessage).filter(PendingMessage.id == message_id).delete()
            db.commit()

    def count(self) -> int:
        with self._session("count pending messages") as db:
            return int(db.query(func.count(PendingMessage.id)).scalar() or 0)

    def reset_failed(self, message_ids: Iterable[str] | None = None) -> int:
        """Make ``failed`` entries eligible for delivery again.

        Args:
            message_ids: Restrict the reset to these ids; all failed entries otherwise.

        Returns:
            Number of entries moved back to ``pending``.
        """
        with self._session("reset failed messages") as db:
            query = db.query(PendingMessage).filter(PendingMessage.status == STATUS_FAILED)
            if message_ids is not None:
                query = query.filter(PendingMessage.id.in_(list(message_ids)))
            updated = query.update(
                {PendingMessage.status: STATUS_PENDING, PendingMessage.retry_count: 0},
                synchronize_session=False,
            )
            db.commit()
        if updated:
            logger.info("Reset %d failed message(s) for retry", updated)
        return int(updated)

    def clear_all(self) -> int:
        """Drop every queued entry. Returns the number removed."""
        with self._session("clear pending messages") as db:
            removed = db.query(PendingMessage).delete()
            db.commit()
        logger.warning("Cleared %d pending message(s)", removed)
        return int(removed)
