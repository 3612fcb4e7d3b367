"""Application settings and configuration.

This module defines all configuration options for the offline delivery agent.
Settings are loaded from environment variables with sensible defaults.
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="Thryve Sync", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Local durable queue
    database_url: str = Field(default="sqlite:///./thryve_offline.db", alias="DATABASE_URL")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")

    # Remote message store
    remote_store_base_url: str = Field(
        default="http://localhost:8080",
        alias="REMOTE_STORE_BASE_URL",
    )
    remote_store_api_token: str | None = Field(default=None, alias="REMOTE_STORE_API_TOKEN")
    remote_store_timeout_seconds: float = Field(
        default=10.0,
        alias="REMOTE_STORE_TIMEOUT_SECONDS",
    )

    # Media upload service
    media_upload_url: str = Field(
        default="http://localhost:8787/image/upload",
        alias="MEDIA_UPLOAD_URL",
    )
    media_upload_signature_url: str | None = Field(
        default=None,
        alias="MEDIA_UPLOAD_SIGNATURE_URL",
    )
    media_upload_folder: str = Field(default="chat-images", alias="MEDIA_UPLOAD_FOLDER")
    media_upload_timeout_seconds: float = Field(
        default=30.0,
        alias="MEDIA_UPLOAD_TIMEOUT_SECONDS",
    )

    # Sync engine
    sync_max_retries: int = Field(default=3, alias="SYNC_MAX_RETRIES")
    sync_image_failure_policy: Literal["degrade", "retry"] = Field(
        default="degrade",
        alias="SYNC_IMAGE_FAILURE_POLICY",
    )

    # Typing presence
    typing_throttle_ms: int = Field(default=2000, alias="TYPING_THROTTLE_MS")
    typing_expire_ms: int = Field(default=5000, alias="TYPING_EXPIRE_MS")
    presence_poll_interval_seconds: float = Field(
        default=1.0,
        alias="PRESENCE_POLL_INTERVAL_SECONDS",
    )

    # Read receipts / unread counts
    unread_max_rooms: int = Field(default=10, alias="UNREAD_MAX_ROOMS")
    unread_window_size: int = Field(default=50, alias="UNREAD_WINDOW_SIZE")

    # Connectivity checks (0 disables the background loop)
    connectivity_check_interval_seconds: float = Field(
        default=0.0,
        alias="CONNECTIVITY_CHECK_INTERVAL_SECONDS",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def typing_expire_seconds(self) -> float:
        """Return the typing expiry window in seconds for timer scheduling."""
        return self.typing_expire_ms / 1000.0

    @property
    def database_url_sync(self) -> str:
        """Return a sync-compatible database URL for Alembic tooling."""
        url = self.database_url
        if url.startswith("sqlite+aiosqlite"):
            return url.replace("sqlite+aiosqlite", "sqlite", 1)
        return url


settings = Settings()
