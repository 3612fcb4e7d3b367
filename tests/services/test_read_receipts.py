import asyncio

import pytest
import pytest_asyncio

from thryve_sync.schemas import ReadReceipt, StoredMessage
from thryve_sync.services.outcome import DELIVERED, Failed
from thryve_sync.services.read_receipts import ReadReceiptTracker, count_unread
from thryve_sync.services.remote_store import RemoteStoreError

NOW = 1_700_000_000_000


def _stored(message_id: str, user_id: str, timestamp: int, read_by=()) -> StoredMessage:
    return StoredMessage(
        id=message_id,
        message=f"text {message_id}",
        timestamp=timestamp,
        user_id=user_id,
        read_by=[ReadReceipt(user_id=reader, read_at=timestamp + 1) for reader in read_by],
    )


@pytest_asyncio.fixture
async def receipts(mock_remote):
    tracker = ReadReceiptTracker(mock_remote, poll_interval_seconds=0.01, clock=lambda: NOW)
    yield tracker
    await tracker.dispose()


def test_count_unread_excludes_own_and_read_messages():
    messages = [
        _stored("m1", "u2", 100),
        _stored("m2", "u1", 200),
        _stored("m3", "u2", 300, read_by=["u1"]),
        _stored("m4", "u3", 400, read_by=["u2"]),
    ]

    assert count_unread(messages, "u1") == 2
    assert count_unread(messages, "u1", last_read_timestamp=100) == 1
    assert count_unread([], "u1") == 0


@pytest.mark.asyncio
async def test_mark_as_read_adds_receipt(receipts, mock_remote):
    assert await receipts.mark_as_read("general", "m1", "u1") == DELIVERED

    mock_remote.add_read_receipt.assert_awaited_once_with(
        "general", "m1", ReadReceipt(user_id="u1", read_at=NOW)
    )


@pytest.mark.asyncio
async def test_mark_as_read_failure_is_reported(receipts, mock_remote):
    mock_remote.add_read_receipt.side_effect = RemoteStoreError("denied")

    outcome = await receipts.mark_as_read("general", "m1", "u1")

    assert isinstance(outcome, Failed)


@pytest.mark.asyncio
async def test_mark_all_as_read_defaults_to_now(receipts, mock_remote):
    await receipts.mark_all_as_read("general", "u1")
    mock_remote.set_read_cursor.assert_awaited_with("general", "u1", NOW)

    await receipts.mark_all_as_read("general", "u1", 12345)
    mock_remote.set_read_cursor.assert_awaited_with("general", "u1", 12345)


@pytest.mark.asyncio
async def test_mark_all_as_read_failure_is_reported(receipts, mock_remote):
    mock_remote.set_read_cursor.side_effect = OSError("network unreachable")

    outcome = await receipts.mark_all_as_read("general", "u1")

    assert not outcome.ok


@pytest.mark.asyncio
async def test_get_unread_count_excludes_own_messages(receipts, mock_remote):
    mock_remote.list_messages.return_value = [
        _stored("m1", "u2", 1500),
        _stored("m2", "u1", 1600),
        _stored("m3", "u3", 1700),
        _stored("m0", "u2", 900),
    ]

    assert await receipts.get_unread_count("general", "u1", 1000) == 2
    mock_remote.list_messages.assert_awaited_once_with("general", after=1000)


@pytest.mark.asyncio
async def test_get_unread_count_returns_zero_on_error(receipts, mock_remote):
    mock_remote.list_messages.side_effect = RemoteStoreError("unreachable")

    assert await receipts.get_unread_count("general", "u1", 0) == 0


@pytest.mark.asyncio
async def test_unread_listener_watches_at_most_ten_rooms(receipts, mock_remote):
    rooms = [f"room-{index}" for index in range(12)]

    async def messages_for(room_id, *, after=None, limit=None):
        return [_stored(f"{room_id}-a", "u2", 100), _stored(f"{room_id}-b", "u1", 200)]

    mock_remote.list_messages.side_effect = messages_for
    snapshots: list[dict[str, int]] = []

    subscription = receipts.listen_for_unread_counts("u1", rooms, snapshots.append)
    await asyncio.sleep(0.1)

    assert len(subscription) == 10
    assert snapshots
    latest = snapshots[-1]
    assert set(latest) == set(rooms[:10])
    assert all(count == 1 for count in latest.values())
    watched = {call.args[0] for call in mock_remote.list_messages.await_args_list}
    assert watched == set(rooms[:10])
    assert all(
        call.kwargs["limit"] == 50 for call in mock_remote.list_messages.await_args_list
    )


@pytest.mark.asyncio
async def test_unread_listener_honours_room_read_cursor(receipts, mock_remote):
    mock_remote.list_messages.return_value = [
        _stored("m1", "u2", 100),
        _stored("m2", "u2", 300),
    ]
    mock_remote.get_read_cursors.return_value = {"u1": 200}
    snapshots: list[dict[str, int]] = []

    receipts.listen_for_unread_counts("u1", ["general"], snapshots.append)
    await asyncio.sleep(0.05)

    assert snapshots[-1] == {"general": 1}


@pytest.mark.asyncio
async def test_listening_again_cancels_previous_group(receipts):
    first = receipts.listen_for_unread_counts("u1", ["a", "b"], lambda counts: None)
    second = receipts.listen_for_unread_counts("u1", ["c"], lambda counts: None)

    assert first.cancelled
    assert not second.cancelled

    receipts.stop_listening()
    assert second.cancelled
