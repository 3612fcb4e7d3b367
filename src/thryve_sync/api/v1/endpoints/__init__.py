# src/thryve_sync/api/v1/endpoints/__init__.py
"""Endpoint routers for the v1 API."""

from .messages import router as messages_router
from .pending import router as pending_router
from .rooms import router as rooms_router
from .sync import router as sync_router

__all__ = [
    "messages_router",
    "pending_router",
    "rooms_router",
    "sync_router",
]
