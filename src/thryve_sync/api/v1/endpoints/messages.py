# src/thryve_sync/api/v1/endpoints/messages.py
"""Compose endpoint: deliver a new message or queue it for later."""

from __future__ import annotations

from fastapi import APIRouter, status

from thryve_sync.schemas import MessageInput, SendReceipt
from thryve_sync.services.pending_store import PendingStoreError

from ..dependencies import RuntimeDep, local_queue_unavailable

router = APIRouter(prefix="/messages", tags=["messages"])


@router.post("", status_code=status.HTTP_201_CREATED)
async def send_message(message: MessageInput, runtime: RuntimeDep) -> SendReceipt:
    """Send a message directly, falling back to the offline queue."""
    try:
        receipt = await runtime.sender.send(message)
    except PendingStoreError as exc:
        raise local_queue_unavailable(exc) from exc

    await runtime.typing.clear_typing(message.room_id, message.user_id)
    return receipt
