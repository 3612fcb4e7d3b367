"""Composition root: builds and owns every delivery component.

The runtime is created once per process (or per test) and passed to whatever
needs it; nothing here is module-level state.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from thryve_sync.core.settings import Settings, settings
from thryve_sync.db.session import build_engine, build_session_factory, create_tables
from thryve_sync.services.connectivity import ConnectivityMonitor
from thryve_sync.services.media_upload import MediaUploadClient, load_media_upload_config
from thryve_sync.services.pending_store import PendingMessageStore
from thryve_sync.services.read_receipts import ReadReceiptTracker
from thryve_sync.services.remote_store import RemoteMessageStore, load_remote_store_config
from thryve_sync.services.sender import MessageSender
from thryve_sync.services.sync_engine import ImageFailurePolicy, SyncEngine
from thryve_sync.services.typing_tracker import TypingPresenceTracker

logger = logging.getLogger(__name__)


@dataclass
class SyncRuntime:
    """Every long-lived component of the delivery agent, wired together."""

    settings: Settings
    store: PendingMessageStore
    remote: RemoteMessageStore
    uploader: MediaUploadClient
    connectivity: ConnectivityMonitor
    sync_engine: SyncEngine
    typing: TypingPresenceTracker
    receipts: ReadReceiptTracker
    sender: MessageSender
    db_engine: Engine | None = None

    @classmethod
    def create(
        cls,
        config: Settings | None = None,
        *,
        session_factory: sessionmaker[Session] | None = None,
        remote: RemoteMessageStore | None = None,
        uploader: MediaUploadClient | None = None,
        online: bool = True,
    ) -> SyncRuntime:
        """Build a runtime from settings, accepting pre-built collaborators."""
        config = config or settings

        db_engine: Engine | None = None
        if session_factory is None:
            db_engine = build_engine(config.database_url, echo=config.sql_debug)
            session_factory = build_session_factory(db_engine)

        store = PendingMessageStore(session_factory)
        if remote is None:
            remote = RemoteMessageStore(load_remote_store_config(config))
        if uploader is None:
            uploader = MediaUploadClient(load_media_upload_config(config))
        connectivity = ConnectivityMonitor(
            remote,
            online=online,
            check_interval_seconds=config.connectivity_check_interval_seconds,
        )
        sync_engine = SyncEngine(
            store,
            remote,
            uploader,
            connectivity,
            max_retries=config.sync_max_retries,
            image_failure_policy=ImageFailurePolicy(config.sync_image_failure_policy),
        )
        connectivity.add_restore_listener(sync_engine.sync_pending_messages)

        return cls(
            settings=config,
            store=store,
            remote=remote,
            uploader=uploader,
            connectivity=connectivity,
            sync_engine=sync_engine,
            typing=TypingPresenceTracker(
                remote,
                throttle_ms=config.typing_throttle_ms,
                expire_ms=config.typing_expire_ms,
                poll_interval_seconds=config.presence_poll_interval_seconds,
            ),
            receipts=ReadReceiptTracker(
                remote,
                max_rooms=config.unread_max_rooms,
                window_size=config.unread_window_size,
                poll_interval_seconds=config.presence_poll_interval_seconds,
            ),
            sender=MessageSender(store, remote, uploader, connectivity),
            db_engine=db_engine,
        )

    async def start(self) -> None:
        """Prepare local storage, start probing, and drain anything left from last run."""
        if self.db_engine is not None:
            create_tables(self.db_engine)
        await self.connectivity.start()
        if self.connectivity.is_online:
            result = await self.sync_engine.sync_pending_messages()
            logger.info(
                "Startup drain: %d synced, %d failed, %d still queued",
                result.synced,
                result.failed,
                self.store.count(),
            )

    async def dispose(self) -> None:
        """Cancel subscriptions and timers and release network and database resources."""
        await self.typing.dispose()
        await self.receipts.dispose()
        await self.connectivity.stop()
        await self.remote.close()
        await self.uploader.close()
        if self.db_engine is not None:
            self.db_engine.dispose()
