# src/thryve_sync/api/v1/endpoints/rooms.py
"""Typing indicators, read receipts and unread counts."""

from __future__ import annotations

from fastapi import APIRouter, Query, status

from thryve_sync.schemas.requests import MarkAllReadRequest, MarkReadRequest, TypingRequest
from thryve_sync.services.outcome import Outcome

from ..dependencies import RuntimeDep

router = APIRouter(prefix="/rooms", tags=["rooms"])


def _accepted(outcome: Outcome) -> dict[str, bool]:
    # Best-effort signals: report, never fail the request.
    return {"delivered": outcome.ok}


@router.put("/{room_id}/typing/{user_id}", status_code=status.HTTP_202_ACCEPTED)
async def set_typing(
    room_id: str, user_id: str, body: TypingRequest, runtime: RuntimeDep
) -> dict[str, bool]:
    return _accepted(await runtime.typing.set_typing(room_id, user_id, body.user_name))


@router.delete("/{room_id}/typing/{user_id}", status_code=status.HTTP_202_ACCEPTED)
async def clear_typing(room_id: str, user_id: str, runtime: RuntimeDep) -> dict[str, bool]:
    return _accepted(await runtime.typing.clear_typing(room_id, user_id))


@router.post("/{room_id}/messages/{message_id}/read", status_code=status.HTTP_202_ACCEPTED)
async def mark_message_read(
    room_id: str, message_id: str, body: MarkReadRequest, runtime: RuntimeDep
) -> dict[str, bool]:
    return _accepted(await runtime.receipts.mark_as_read(room_id, message_id, body.user_id))


@router.post("/{room_id}/read", status_code=status.HTTP_202_ACCEPTED)
async def mark_room_read(
    room_id: str, body: MarkAllReadRequest, runtime: RuntimeDep
) -> dict[str, bool]:
    return _accepted(
        await runtime.receipts.mark_all_as_read(
            room_id, body.user_id, body.last_message_timestamp
        )
    )


@router.get("/{room_id}/unread")
async def unread_count(
    room_id: str,
    runtime: RuntimeDep,
    user_id: str = Query(...),
    since: int = Query(0, ge=0),
) -> dict[str, int]:
    """Messages in the room newer than ``since`` and not written by ``user_id``."""
    return {"count": await runtime.receipts.get_unread_count(room_id, user_id, since)}
