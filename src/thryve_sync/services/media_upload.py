"""Client for the media upload service.

Uploads are not idempotent: every call stores a new object and returns a new
URL. Callers that retry must cache the URL themselves.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

import httpx

from thryve_sync.core.settings import Settings, settings
from thryve_sync.schemas import UploadResult

logger = logging.getLogger(__name__)


class MediaUploadError(RuntimeError):
    """Raised when an image could not be uploaded."""


@dataclass(frozen=True)
class MediaUploadConfig:
    """Immutable configuration for media uploads."""

    upload_url: str
    signature_url: str | None
    folder: str
    timeout_seconds: float


def load_media_upload_config(source: Settings | None = None) -> MediaUploadConfig:
    """Build configuration object from settings."""
    source = source or settings
    return MediaUploadConfig(
        upload_url=source.media_upload_url,
        signature_url=source.media_upload_signature_url,
        folder=source.media_upload_folder,
        timeout_seconds=float(source.media_upload_timeout_seconds),
    )


class MediaUploadClient:
    """Uploads binary images and returns their public URL."""

    def __init__(
        self,
        config: MediaUploadConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config or load_media_upload_config()
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._client_lock = asyncio.Lock()

    async def _ensure_client(self) -> httpx.AsyncClient:
        async with self._client_lock:
            if self._client is None:
                self._client = httpx.AsyncClient(
                    timeout=httpx.Timeout(self.config.timeout_seconds),
                    transport=self._transport,
                )
        return self._client

    async def _signed_fields(self, client: httpx.AsyncClient) -> dict[str, str]:
        """Fetch one-shot upload credentials from the signing worker."""
        if not self.config.signature_url:
            return {"folder": self.config.folder}

        try:
            response = await client.post(self.config.signature_url)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise MediaUploadError(f"Failed to get upload signature: {exc}") from exc

        body = _json_object(response, "signature")
        try:
            return {
                "api_key": str(body["apiKey"]),
                "timestamp": str(body["timestamp"]),
                "signature": str(body["signature"]),
                "folder": str(body.get("folder") or self.config.folder),
            }
        except KeyError as exc:
            raise MediaUploadError(f"Signature response is missing {exc}") from exc

    async def upload(self, data: bytes, file_name: str, mime_type: str) -> UploadResult:
        """Upload an image and return the service's description of it."""
        client = await self._ensure_client()
        fields = await self._signed_fields(client)

        try:
            response = await client.post(
                self.config.upload_url,
                data=fields,
                files={"file": (file_name, data, mime_type)},
            )
        except httpx.HTTPError as exc:
            raise MediaUploadError(f"Upload failed: {exc}") from exc

        if response.is_error:
            logger.error(
                "Upload service rejected %s (%d): %s",
                file_name,
                response.status_code,
                response.text[:200],
            )
            raise MediaUploadError(f"Upload failed with status {response.status_code}")

        body = _json_object(response, "upload")
        url = body.get("secure_url") or body.get("url")
        if not url:
            raise MediaUploadError("Upload response did not include a URL")

        try:
            return UploadResult(
                url=url,
                id=body.get("public_id") or body.get("id"),
                width=body.get("width"),
                height=body.get("height"),
            )
        except ValueError as exc:
            raise MediaUploadError(f"Upload response is malformed: {exc}") from exc

    async def close(self) -> None:
        """Clean up underlying HTTP client resources."""
        async with self._client_lock:
            if self._client is not None:
                await self._client.aclose()
                self._client = None


def _json_object(response: httpx.Response, what: str) -> dict[str, Any]:
    """Decode a JSON object body, rejecting anything else as an upload failure."""
    try:
        body = response.json()
    except ValueError as exc:
        raise MediaUploadError(f"{what.capitalize()} response is not JSON") from exc
    if not isinstance(body, dict):
        raise MediaUploadError(f"{what.capitalize()} response is not a JSON object")
    return body
