# tests/conftest.py
from __future__ import annotations

import base64
from collections.abc import Iterator
from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from thryve_sync.core.settings import Settings
from thryve_sync.db.session import Base
from thryve_sync.main import app as fastapi_app
from thryve_sync.runtime import SyncRuntime
from thryve_sync.schemas import UploadResult
from thryve_sync.services.connectivity import ConnectivityMonitor
from thryve_sync.services.media_upload import MediaUploadClient
from thryve_sync.services.pending_store import PendingMessageStore
from thryve_sync.services.remote_store import RemoteMessageStore

TEST_DB_URL = "sqlite://"

IMAGE_BYTES = b"\x89PNG\r\n\x1a\nnot-really-a-png"
IMAGE_B64 = base64.b64encode(IMAGE_BYTES).decode()


@pytest.fixture()
def engine() -> Iterator[Engine]:
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


@pytest.fixture()
def store(session_factory: sessionmaker[Session]) -> PendingMessageStore:
    return PendingMessageStore(session_factory)


@pytest.fixture()
def mock_remote() -> AsyncMock:
    remote = AsyncMock(spec=RemoteMessageStore)
    remote.create_message.return_value = "remote-1"
    remote.list_messages.return_value = []
    remote.get_read_cursors.return_value = {}
    remote.list_typing.return_value = []
    remote.ping.return_value = True
    return remote


@pytest.fixture()
def mock_uploader() -> AsyncMock:
    uploader = AsyncMock(spec=MediaUploadClient)
    uploader.upload.return_value = UploadResult(url="https://cdn/x.jpg", id="x")
    return uploader


@pytest.fixture()
def connectivity() -> ConnectivityMonitor:
    return ConnectivityMonitor(online=True)


@pytest.fixture()
def test_settings() -> Settings:
    """Settings isolated from the developer's environment and .env file."""
    return Settings(
        _env_file=None,
        DATABASE_URL=TEST_DB_URL,
        CONNECTIVITY_CHECK_INTERVAL_SECONDS=0,
    )


@pytest.fixture()
def runtime(
    test_settings: Settings,
    session_factory: sessionmaker[Session],
    mock_remote: AsyncMock,
    mock_uploader: AsyncMock,
) -> SyncRuntime:
    return SyncRuntime.create(
        test_settings,
        session_factory=session_factory,
        remote=mock_remote,
        uploader=mock_uploader,
    )


@pytest.fixture()
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture()
def client(app: FastAPI, runtime: SyncRuntime) -> Iterator[TestClient]:
    app.state.runtime = runtime
    try:
        with TestClient(app, base_url="http://test") as test_client:
            yield test_client
    finally:
        app.state.runtime = None


@pytest.fixture()
def image_payload() -> dict[str, str]:
    """Inline image as the UI sends it."""
    return {"base64": IMAGE_B64, "mimeType": "image/png", "fileName": "photo.png"}
