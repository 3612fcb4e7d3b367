# src/thryve_sync/main.py
"""Main entry point for the Thryve delivery agent."""

from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.gzip import GZipMiddleware

from thryve_sync import __version__
from thryve_sync.api.v1 import messages_router, pending_router, rooms_router, sync_router
from thryve_sync.core.settings import settings
from thryve_sync.runtime import SyncRuntime

logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title=settings.app_name,
    description="Offline-first message delivery agent for Thryve chat",
    version=__version__,
)

# Add GZip middleware for compression
app.add_middleware(GZipMiddleware)

# Include API routers
app.include_router(messages_router, prefix="/api/v1")
app.include_router(pending_router, prefix="/api/v1")
app.include_router(sync_router, prefix="/api/v1")
app.include_router(rooms_router, prefix="/api/v1")


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


@app.on_event("startup")
async def on_startup() -> None:
    # A runtime installed beforehand (tests, embedding) is used as-is.
    if getattr(app.state, "runtime", None) is not None:
        app.state.owns_runtime = False
        return

    configure_logging(settings.log_level)
    runtime = SyncRuntime.create(settings)
    await runtime.start()
    app.state.runtime = runtime
    app.state.owns_runtime = True
    logger.info("%s %s started", settings.app_name, __version__)


@app.on_event("shutdown")
async def on_shutdown() -> None:
    runtime: SyncRuntime | None = getattr(app.state, "runtime", None)
    if runtime is not None and getattr(app.state, "owns_runtime", False):
        await runtime.dispose()
        app.state.runtime = None


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the agent is running."""
    return {"status": "ok"}


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic information about the agent."""
    return {
        "name": settings.app_name,
        "version": __version__,
        "docs": "/docs",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("thryve_sync.main:app", host="127.0.0.1", port=8000, reload=settings.debug)
