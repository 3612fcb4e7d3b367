# src/thryve_sync/api/v1/endpoints/pending.py
"""Inspection and manual retry of the offline queue."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Query, status

from thryve_sync.models import PendingMessage
from thryve_sync.schemas.requests import RetryRequest
from thryve_sync.services.pending_store import PendingStoreError

from ..dependencies import RuntimeDep, local_queue_unavailable

router = APIRouter(prefix="/pending", tags=["pending"])


def _serialize_pending(entry: PendingMessage) -> dict[str, Any]:
    """Serialize a queued entry for the UI, omitting the inline image payload."""
    return {
        "id": entry.id,
        "roomId": entry.room_id,
        "userId": entry.user_id,
        "users": entry.users,
        "userImage": entry.user_image,
        "message": entry.message,
        "hasImage": entry.image_data is not None,
        "uploadedImageUrl": entry.uploaded_image_url,
        "replyTo": entry.reply_to,
        "clientTimestamp": entry.client_timestamp,
        "status": entry.status,
        "retryCount": entry.retry_count,
    }


@router.get("")
async def list_pending(
    runtime: RuntimeDep,
    room_id: str | None = Query(default=None),
) -> list[dict[str, Any]]:
    """List queued messages, for one room in compose order or all of them."""
    try:
        if room_id is not None:
            entries = runtime.store.list_for_room(room_id)
        else:
            entries = sorted(runtime.store.list(), key=lambda item: item.client_timestamp)
    except PendingStoreError as exc:
        raise local_queue_unavailable(exc) from exc
    return [_serialize_pending(entry) for entry in entries]


@router.get("/count")
async def pending_count(runtime: RuntimeDep) -> dict[str, int]:
    """Number of queued messages, for the offline badge."""
    try:
        return {"count": runtime.store.count()}
    except PendingStoreError as exc:
        raise local_queue_unavailable(exc) from exc


@router.post("/retry")
async def retry_failed(body: RetryRequest, runtime: RuntimeDep) -> dict[str, int]:
    """Re-queue failed messages and start a drain if online."""
    try:
        reset = runtime.store.reset_failed(body.ids)
    except PendingStoreError as exc:
        raise local_queue_unavailable(exc) from exc

    result = await runtime.sync_engine.sync_pending_messages()
    return {"reset": reset, "synced": result.synced, "failed": result.failed}


@router.delete("/{message_id}", status_code=status.HTTP_204_NO_CONTENT)
async def discard_pending(message_id: str, runtime: RuntimeDep) -> None:
    """Drop a queued message without delivering it."""
    try:
        runtime.store.remove(message_id)
    except PendingStoreError as exc:
        raise local_queue_unavailable(exc) from exc
