# src/thryve_sync/api/v1/__init__.py
"""Version 1 API endpoints."""

from .endpoints import messages_router, pending_router, rooms_router, sync_router

__all__ = [
    "messages_router",
    "pending_router",
    "rooms_router",
    "sync_router",
]
