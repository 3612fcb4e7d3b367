import asyncio
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from thryve_sync.models import STATUS_FAILED, STATUS_PENDING, STATUS_UPLOADING
from thryve_sync.schemas import MessageInput, SyncResult
from thryve_sync.services.media_upload import (
    MediaUploadClient,
    MediaUploadConfig,
    MediaUploadError,
)
from thryve_sync.services.remote_store import (
    RemoteMessageStore,
    RemoteStoreConfig,
    RemoteStoreError,
)
from thryve_sync.services.sync_engine import ImageFailurePolicy, SyncEngine


def _queue(store, text: str, client_timestamp: int, *, room_id: str = "general", **extra) -> str:
    return store.add(
        MessageInput(
            room_id=room_id,
            user_id="u1",
            users="Ada",
            message=text,
            client_timestamp=client_timestamp,
            **extra,
        )
    )


def _queue_with_image(store, image_payload, client_timestamp: int = 1000) -> str:
    return store.add(
        MessageInput.model_validate(
            {
                "roomId": "general",
                "userId": "u1",
                "message": "look",
                "imageData": image_payload,
                "clientTimestamp": client_timestamp,
            }
        )
    )


@pytest.fixture
def sync_engine(store, mock_remote, mock_uploader, connectivity) -> SyncEngine:
    return SyncEngine(store, mock_remote, mock_uploader, connectivity)


def _sent_texts(mock_remote: AsyncMock) -> list[str]:
    return [call.args[1].message for call in mock_remote.create_message.await_args_list]


@pytest.mark.asyncio
async def test_drain_delivers_in_compose_order(store, sync_engine, mock_remote):
    _queue(store, "B", 2000)
    _queue(store, "A", 1000)
    assert store.count() == 2

    result = await sync_engine.sync_pending_messages()

    assert result == SyncResult(synced=2, failed=0)
    assert _sent_texts(mock_remote) == ["A", "B"]
    assert store.count() == 0
    assert not sync_engine.is_syncing


@pytest.mark.asyncio
async def test_record_carries_compose_time_and_reply(store, sync_engine, mock_remote):
    store.add(
        MessageInput.model_validate(
            {
                "roomId": "general",
                "userId": "u1",
                "users": "Ada",
                "message": "reply",
                "replyTo": {"id": "m0", "message": "original", "users": "Bob"},
                "clientTimestamp": 1_704_067_200_000,
            }
        )
    )

    await sync_engine.sync_pending_messages()

    room_id, record = mock_remote.create_message.await_args.args
    document = record.to_document()
    assert room_id == "general"
    assert document["timestamp"] == 1_704_067_200_000
    assert document["replyTo"]["id"] == "m0"
    assert "imageUrl" not in document


@pytest.mark.asyncio
async def test_concurrent_drain_is_a_no_op(store, sync_engine, mock_remote):
    _queue(store, "A", 1000)
    started = asyncio.Event()
    release = asyncio.Event()

    async def slow_create(room_id, record):
        started.set()
        await release.wait()
        return "remote-1"

    mock_remote.create_message.side_effect = slow_create

    first = asyncio.create_task(sync_engine.sync_pending_messages())
    await started.wait()
    assert sync_engine.is_syncing

    second = await sync_engine.sync_pending_messages()
    assert second == SyncResult(synced=0, failed=0)

    release.set()
    assert await first == SyncResult(synced=1, failed=0)
    assert mock_remote.create_message.await_count == 1
    assert not sync_engine.is_syncing


@pytest.mark.asyncio
async def test_offline_drain_does_nothing(store, sync_engine, mock_remote, connectivity):
    _queue(store, "A", 1000)
    await connectivity.set_online(False)

    result = await sync_engine.sync_pending_messages()

    assert result == SyncResult()
    mock_remote.create_message.assert_not_awaited()
    assert store.count() == 1


@pytest.mark.asyncio
async def test_failed_attempt_increments_retry_and_requeues(store, sync_engine, mock_remote):
    message_id = _queue(store, "A", 1000)
    mock_remote.create_message.side_effect = RemoteStoreError("503")

    result = await sync_engine.sync_pending_messages()

    assert result == SyncResult(synced=0, failed=1)
    entry = store.get(message_id)
    assert entry.status == STATUS_PENDING
    assert entry.retry_count == 1


@pytest.mark.asyncio
async def test_retry_cap_marks_failed_and_stops_attempts(store, sync_engine, mock_remote):
    message_id = _queue(store, "A", 1000)
    mock_remote.create_message.side_effect = RemoteStoreError("503")

    for _ in range(3):
        await sync_engine.sync_pending_messages()

    entry = store.get(message_id)
    assert entry.status == STATUS_FAILED
    assert entry.retry_count == 3

    result = await sync_engine.sync_pending_messages()

    assert result == SyncResult()
    assert mock_remote.create_message.await_count == 3
    assert store.count() == 1


@pytest.mark.asyncio
async def test_reset_failed_entry_is_delivered_again(store, sync_engine, mock_remote):
    message_id = _queue(store, "A", 1000)
    store.update_status(message_id, STATUS_FAILED, 3)

    assert (await sync_engine.sync_pending_messages()).synced == 0

    store.reset_failed([message_id])
    assert (await sync_engine.sync_pending_messages()).synced == 1
    assert store.count() == 0


@pytest.mark.asyncio
async def test_interrupted_in_flight_entry_is_retried(store, sync_engine, mock_remote):
    message_id = _queue(store, "A", 1000)
    store.update_status(message_id, STATUS_UPLOADING, 1)

    result = await sync_engine.sync_pending_messages()

    assert result.synced == 1
    assert store.get(message_id) is None


@pytest.mark.asyncio
async def test_connectivity_loss_stops_drain(store, sync_engine, mock_remote, connectivity):
    _queue(store, "A", 1000)
    second = _queue(store, "B", 2000)

    async def create_then_drop(room_id, record):
        await connectivity.set_online(False)
        return "remote-1"

    mock_remote.create_message.side_effect = create_then_drop

    result = await sync_engine.sync_pending_messages()

    assert result == SyncResult(synced=1, failed=0)
    assert mock_remote.create_message.await_count == 1
    entry = store.get(second)
    assert entry.status == STATUS_PENDING
    assert entry.retry_count == 0


@pytest.mark.asyncio
async def test_uploaded_image_is_reused_on_retry(
    store, sync_engine, mock_remote, mock_uploader, image_payload
):
    message_id = _queue_with_image(store, image_payload)
    mock_remote.create_message.side_effect = [RemoteStoreError("timeout"), "remote-1"]

    first = await sync_engine.sync_pending_messages()

    assert first == SyncResult(synced=0, failed=1)
    entry = store.get(message_id)
    assert entry.uploaded_image_url == "https://cdn/x.jpg"
    assert entry.retry_count == 1

    second = await sync_engine.sync_pending_messages()

    assert second == SyncResult(synced=1, failed=0)
    assert mock_uploader.upload.await_count == 1
    record = mock_remote.create_message.await_args.args[1]
    assert record.image_url == "https://cdn/x.jpg"
    assert store.count() == 0


@pytest.mark.asyncio
async def test_upload_receives_decoded_image(store, sync_engine, mock_uploader, image_payload):
    _queue_with_image(store, image_payload)

    await sync_engine.sync_pending_messages()

    data, file_name, mime_type = mock_uploader.upload.await_args.args
    assert data.startswith(b"\x89PNG")
    assert file_name == "photo.png"
    assert mime_type == "image/png"


@pytest.mark.asyncio
async def test_upload_failure_degrades_to_text_by_default(
    store, sync_engine, mock_remote, mock_uploader, image_payload
):
    _queue_with_image(store, image_payload)
    mock_uploader.upload.side_effect = MediaUploadError("upload service down")

    result = await sync_engine.sync_pending_messages()

    assert result == SyncResult(synced=1, failed=0)
    record = mock_remote.create_message.await_args.args[1]
    assert record.message == "look"
    assert record.image_url is None


@pytest.mark.asyncio
async def test_upload_failure_retries_message_under_retry_policy(
    store, mock_remote, mock_uploader, connectivity, image_payload
):
    engine = SyncEngine(
        store,
        mock_remote,
        mock_uploader,
        connectivity,
        image_failure_policy=ImageFailurePolicy.RETRY_MESSAGE,
    )
    message_id = _queue_with_image(store, image_payload)
    mock_uploader.upload.side_effect = MediaUploadError("upload service down")

    result = await engine.sync_pending_messages()

    assert result == SyncResult(synced=0, failed=1)
    mock_remote.create_message.assert_not_awaited()
    entry = store.get(message_id)
    assert entry.status == STATUS_PENDING
    assert entry.retry_count == 1


@pytest.mark.asyncio
async def test_completion_callback_is_replaced(store, sync_engine):
    _queue(store, "A", 1000)
    first = MagicMock()
    second = MagicMock()

    sync_engine.set_on_sync_complete(first)
    sync_engine.set_on_sync_complete(second)
    await sync_engine.sync_pending_messages()

    first.assert_not_called()
    second.assert_called_once_with(SyncResult(synced=1, failed=0))


@pytest.mark.asyncio
async def test_completion_callback_can_be_cleared_and_may_be_async(store, sync_engine):
    callback = AsyncMock()
    sync_engine.set_on_sync_complete(callback)
    await sync_engine.sync_pending_messages()
    callback.assert_awaited_once_with(SyncResult())

    sync_engine.set_on_sync_complete(None)
    await sync_engine.sync_pending_messages()
    callback.assert_awaited_once()


@pytest.mark.asyncio
async def test_callback_errors_do_not_break_the_drain(store, sync_engine):
    _queue(store, "A", 1000)
    sync_engine.set_on_sync_complete(MagicMock(side_effect=RuntimeError("ui gone")))

    result = await sync_engine.sync_pending_messages()

    assert result.synced == 1
    assert not sync_engine.is_syncing


def _malformed_signer_uploader() -> MediaUploadClient:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/signature":
            return httpx.Response(200, json={"error": "nope"})
        return httpx.Response(200, json={"secure_url": "https://cdn/x.jpg"})

    config = MediaUploadConfig(
        upload_url="http://media.test/image/upload",
        signature_url="http://signer.test/signature",
        folder="chat-images",
        timeout_seconds=5,
    )
    return MediaUploadClient(config, transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_malformed_signature_reply_degrades_to_text(
    store, mock_remote, connectivity, image_payload
):
    uploader = _malformed_signer_uploader()
    engine = SyncEngine(store, mock_remote, uploader, connectivity)
    _queue_with_image(store, image_payload)

    result = await engine.sync_pending_messages()
    await uploader.close()

    assert result == SyncResult(synced=1, failed=0)
    record = mock_remote.create_message.await_args.args[1]
    assert record.message == "look"
    assert record.image_url is None
    assert store.count() == 0


@pytest.mark.asyncio
async def test_non_object_upload_reply_degrades_without_aborting_drain(
    store, mock_remote, connectivity, image_payload
):
    config = MediaUploadConfig(
        upload_url="http://media.test/image/upload",
        signature_url=None,
        folder="chat-images",
        timeout_seconds=5,
    )
    uploader = MediaUploadClient(
        config, transport=httpx.MockTransport(lambda request: httpx.Response(200, json=[1, 2]))
    )
    engine = SyncEngine(store, mock_remote, uploader, connectivity)
    _queue_with_image(store, image_payload, client_timestamp=1000)
    _queue(store, "after", 2000)

    result = await engine.sync_pending_messages()
    await uploader.close()

    assert result == SyncResult(synced=2, failed=0)
    assert _sent_texts(mock_remote) == ["look", "after"]
    assert store.count() == 0


@pytest.mark.asyncio
async def test_accepted_write_with_empty_body_is_not_resent(store, mock_uploader, connectivity):
    writes: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        writes.append(request)
        return httpx.Response(201)

    remote = RemoteMessageStore(
        RemoteStoreConfig(base_url="http://remote.test", api_token=None, timeout_seconds=5),
        transport=httpx.MockTransport(handler),
    )
    engine = SyncEngine(store, remote, mock_uploader, connectivity)
    _queue(store, "A", 1000)

    first = await engine.sync_pending_messages()
    second = await engine.sync_pending_messages()
    await remote.close()

    assert first == SyncResult(synced=1, failed=0)
    assert second == SyncResult()
    assert len(writes) == 1
    assert store.count() == 0
