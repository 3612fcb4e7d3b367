"""Result values for best-effort signals (typing, read receipts).

Presence and receipt writes never raise transport errors; callers get one of
these values and are free to ignore it.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Delivered:
    """The signal reached the remote store."""

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Skipped:
    """The signal was intentionally not sent (throttled, nothing to do)."""

    reason: str

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Failed:
    """The signal was lost; ``error`` has already been logged."""

    error: Exception

    @property
    def ok(self) -> bool:
        return False


Outcome = Delivered | Skipped | Failed

DELIVERED = Delivered()
