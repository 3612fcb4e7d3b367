"""HTTP client for the remote per-room message store.

The store exposes rooms as document collections:

- ``/rooms/{room}/messages`` append-only message documents
- ``/rooms/{room}/messages/{id}/read-by`` receipt set keyed by user id
- ``/rooms/{room}/last-read/{user}`` room-level read cursor
- ``/rooms/{room}/typing/{user}`` ephemeral typing documents
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import httpx

from thryve_sync.core.settings import Settings, settings
from thryve_sync.schemas import ReadReceipt, RemoteMessage, StoredMessage, TypingState

# Configure logger for this module
logger = logging.getLogger(__name__)

# HTTP status codes
HTTP_OK = 200
HTTP_CREATED = 201
HTTP_NO_CONTENT = 204
HTTP_NOT_FOUND = 404


class RemoteStoreError(RuntimeError):
    """Raised when the remote store is unreachable or rejects a request."""


@dataclass(frozen=True)
class RemoteStoreConfig:
    """Immutable configuration for remote store access."""

    base_url: str
    api_token: str | None
    timeout_seconds: float


def load_remote_store_config(source: Settings | None = None) -> RemoteStoreConfig:
    """Build configuration object from settings."""
    source = source or settings
    return RemoteStoreConfig(
        base_url=source.remote_store_base_url,
        api_token=source.remote_store_api_token,
        timeout_seconds=float(source.remote_store_timeout_seconds),
    )


class RemoteMessageStore:
    """Async client wrapper for the remote message store."""

    def __init__(
        self,
        config: RemoteStoreConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config or load_remote_store_config()
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._client_lock = asyncio.Lock()

    async def _ensure_client(self) -> httpx.AsyncClient:
        async with self._client_lock:
            if self._client is None:
                headers = {}
                if self.config.api_token:
                    headers["Authorization"] = f"Bearer {self.config.api_token}"
                self._client = httpx.AsyncClient(
                    base_url=self.config.base_url,
                    timeout=httpx.Timeout(self.config.timeout_seconds),
                    headers=headers,
                    transport=self._transport,
                )
        return self._client

    @dataclass
    class RequestParams:
        """Parameters for HTTP requests."""
        method: str
        path: str
        json_data: Any | None = None
        params: Mapping[str, Any] | None = None
        expected: tuple[int, ...] = (HTTP_OK,)

    async def _request(self, params: RequestParams) -> httpx.Response:
        client = await self._ensure_client()
        try:
            response = await client.request(
                params.method,
                params.path,
                json=params.json_data,
                params=params.params,
            )
        except httpx.HTTPError as exc:
            raise RemoteStoreError(f"Remote store request failed: {exc}") from exc

        if response.status_code not in params.expected:
            raise RemoteStoreError(
                f"Unexpected remote store response ({response.status_code}) "
                f"for {params.method} {params.path}",
            )
        return response

    async def create_message(self, room_id: str, record: RemoteMessage) -> str:
        """Append a message document to a room and return its remote id."""
        response = await self._request(
            self.RequestParams(
                method="POST",
                path=f"/rooms/{room_id}/messages",
                json_data=record.to_document(),
                expected=(HTTP_OK, HTTP_CREATED),
            )
        )
        # The write has been accepted; a body without a readable id must not
        # turn it into a failure, or the message would be written again.
        try:
            body = response.json()
        except ValueError:
            logger.debug("Remote store accepted message in %s without a JSON body", room_id)
            return ""
        if not isinstance(body, dict) or body.get("id") is None:
            return ""
        return str(body["id"])

    async def list_messages(
        self,
        room_id: str,
        *,
        after: int | None = None,
        limit: int | None = None,
    ) -> list[StoredMessage]:
        """Return room messages newest first, optionally only those newer than ``after``."""
        query: dict[str, Any] = {"order": "desc"}
        if after is not None:
            query["after"] = after
        if limit is not None:
            query["limit"] = limit

        response = await self._request(
            self.RequestParams(method="GET", path=f"/rooms/{room_id}/messages", params=query)
        )
        payload = response.json()
        items = payload.get("messages", []) if isinstance(payload, dict) else payload
        return [StoredMessage.model_validate(item) for item in items or []]

    async def add_read_receipt(self, room_id: str, message_id: str, receipt: ReadReceipt) -> None:
        """Add ``receipt`` to the message's read-by set (union by user id)."""
        await self._request(
            self.RequestParams(
                method="PUT",
                path=f"/rooms/{room_id}/messages/{message_id}/read-by/{receipt.user_id}",
                json_data=receipt.to_document(),
                expected=(HTTP_OK, HTTP_CREATED, HTTP_NO_CONTENT),
            )
        )

    async def set_read_cursor(self, room_id: str, user_id: str, timestamp: int) -> None:
        await self._request(
            self.RequestParams(
                method="PUT",
                path=f"/rooms/{room_id}/last-read/{user_id}",
                json_data={"timestamp": timestamp},
                expected=(HTTP_OK, HTTP_CREATED, HTTP_NO_CONTENT),
            )
        )

    async def get_read_cursors(self, room_id: str) -> dict[str, int]:
        """Return the room's ``{user_id: last_read_timestamp}`` map."""
        response = await self._request(
            self.RequestParams(
                method="GET",
                path=f"/rooms/{room_id}/last-read",
                expected=(HTTP_OK, HTTP_NOT_FOUND),
            )
        )
        if response.status_code == HTTP_NOT_FOUND:
            return {}
        return {str(user): int(ts) for user, ts in (response.json() or {}).items()}

    async def set_typing(self, room_id: str, state: TypingState) -> None:
        await self._request(
            self.RequestParams(
                method="PUT",
                path=f"/rooms/{room_id}/typing/{state.user_id}",
                json_data=state.to_document(),
                expected=(HTTP_OK, HTTP_CREATED, HTTP_NO_CONTENT),
            )
        )

    async def delete_typing(self, room_id: str, user_id: str) -> None:
        await self._request(
            self.RequestParams(
                method="DELETE",
                path=f"/rooms/{room_id}/typing/{user_id}",
                expected=(HTTP_OK, HTTP_NO_CONTENT, HTTP_NOT_FOUND),
            )
        )

    async def list_typing(self, room_id: str) -> list[TypingState]:
        response = await self._request(
            self.RequestParams(method="GET", path=f"/rooms/{room_id}/typing")
        )
        payload = response.json()
        items = payload.get("typing", []) if isinstance(payload, dict) else payload
        return [TypingState.model_validate(item) for item in items or []]

    async def ping(self) -> bool:
        """Return True if the store answers its health endpoint."""
        try:
            await self._request(self.RequestParams(method="GET", path="/health"))
        except RemoteStoreError as exc:
            logger.debug("Remote store health check failed: %s", exc)
            return False
        return True

    async def close(self) -> None:
        """Clean up underlying HTTP client resources."""

        async with self._client_lock:
            if self._client is not None:
                await self._client.aclose()
                self._client = None
