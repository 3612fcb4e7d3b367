"""Ephemeral presence schemas."""

from .common import CamelModel


class TypingState(CamelModel):
    """Per-room, per-user typing broadcast."""

    user_id: str
    user_name: str
    timestamp: int

    def is_expired(self, now: int, expire_ms: int) -> bool:
        """A broadcast older than the expiry window counts as absent."""
        return now - self.timestamp >= expire_ms
