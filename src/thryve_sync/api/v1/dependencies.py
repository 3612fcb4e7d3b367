"""Shared FastAPI dependencies for the v1 API."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from thryve_sync.runtime import SyncRuntime


def get_runtime(request: Request) -> SyncRuntime:
    """Return the runtime owned by the running application."""
    runtime: SyncRuntime | None = getattr(request.app.state, "runtime", None)
    if runtime is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Delivery runtime is not running",
        )
    return runtime


RuntimeDep = Annotated[SyncRuntime, Depends(get_runtime)]


def local_queue_unavailable(exc: Exception) -> HTTPException:
    """Map a local persistence fault to an HTTP error."""
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Local queue unavailable: {exc}",
    )
