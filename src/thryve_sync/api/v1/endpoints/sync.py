# src/thryve_sync/api/v1/endpoints/sync.py
"""Drain trigger and connectivity reporting."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter

from thryve_sync.runtime import SyncRuntime
from thryve_sync.schemas import SyncResult
from thryve_sync.schemas.requests import ConnectivityUpdate
from thryve_sync.services.pending_store import PendingStoreError

from ..dependencies import RuntimeDep, local_queue_unavailable

router = APIRouter(tags=["sync"])


def _connectivity_state(runtime: SyncRuntime) -> dict[str, Any]:
    try:
        pending_count = runtime.store.count()
    except PendingStoreError as exc:
        raise local_queue_unavailable(exc) from exc
    return {
        "online": runtime.connectivity.is_online,
        "syncing": runtime.sync_engine.is_syncing,
        "pendingCount": pending_count,
    }


@router.post("/sync")
async def sync_now(runtime: RuntimeDep) -> SyncResult:
    """Run a drain now. Returns zeros if one is already running or the agent is offline."""
    return await runtime.sync_engine.sync_pending_messages()


@router.get("/connectivity")
async def get_connectivity(runtime: RuntimeDep) -> dict[str, Any]:
    return _connectivity_state(runtime)


@router.put("/connectivity")
async def set_connectivity(body: ConnectivityUpdate, runtime: RuntimeDep) -> dict[str, Any]:
    """Record the UI's network state; going online drains the queue."""
    await runtime.connectivity.set_online(body.online)
    return _connectivity_state(runtime)
