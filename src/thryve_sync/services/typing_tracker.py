"""Typing indicators: throttled, self-expiring broadcasts per room."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from typing import Any

from thryve_sync.db.time import now_ms
from thryve_sync.schemas import TypingState
from thryve_sync.services.outcome import DELIVERED, Failed, Outcome, Skipped
from thryve_sync.services.remote_store import RemoteMessageStore, RemoteStoreError
from thryve_sync.services.subscriptions import PollingSubscription, Subscription

logger = logging.getLogger(__name__)

TYPING_THROTTLE_MS = 2000
TYPING_EXPIRE_MS = 5000

TypingCallback = Callable[[list[TypingState]], Any]


class TypingPresenceTracker:
    """Broadcasts the local user's typing state and watches other users'.

    One instance owns one throttle window, at most one expiry timer and at
    most one active room subscription.
    """

    def __init__(
        self,
        remote: RemoteMessageStore,
        *,
        throttle_ms: int = TYPING_THROTTLE_MS,
        expire_ms: int = TYPING_EXPIRE_MS,
        poll_interval_seconds: float = 1.0,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._remote = remote
        self._throttle_ms = throttle_ms
        self._expire_ms = expire_ms
        self._poll_interval = poll_interval_seconds
        self._clock = clock
        self._last_broadcast: int | None = None
        self._expiry_task: asyncio.Task[None] | None = None
        self._subscription: Subscription | None = None

    async def set_typing(self, room_id: str, user_id: str, user_name: str) -> Outcome:
        """Broadcast that ``user_id`` is typing, at most once per throttle window.

        Calls inside the window are dropped rather than queued; callers are
        expected to call this on every keystroke.
        """
        now = self._clock()
        if self._last_broadcast is not None and now - self._last_broadcast < self._throttle_ms:
            return Skipped("throttled")
        self._last_broadcast = now

        state = TypingState(user_id=user_id, user_name=user_name, timestamp=now)
        try:
            await self._remote.set_typing(room_id, state)
        except (RemoteStoreError, OSError) as exc:
            logger.warning("Error setting typing status in room %s: %s", room_id, exc)
            return Failed(exc)

        self._schedule_expiry(room_id, user_id)
        return DELIVERED

    async def clear_typing(self, room_id: str, user_id: str) -> Outcome:
        """Remove the broadcast. Failures are reported but never raised."""
        self._cancel_expiry()
        try:
            await self._remote.delete_typing(room_id, user_id)
        except (RemoteStoreError, OSError) as exc:
            logger.debug("Ignoring failure clearing typing status in room %s: %s", room_id, exc)
            return Failed(exc)
        return DELIVERED

    def listen_for_typing(
        self,
        room_id: str,
        current_user_id: str,
        callback: TypingCallback,
    ) -> Subscription:
        """Watch a room's typing users, replacing any previous subscription.

        The callback receives the other users whose broadcast is younger than
        the expiry window, in no particular order.
        """
        self._cancel_subscription()

        async def fetch() -> list[TypingState]:
            return await self._remote.list_typing(room_id)

        def deliver(states: list[TypingState]) -> Any:
            now = self._clock()
            active = [
                state
                for state in states
                if state.user_id != current_user_id and not state.is_expired(now, self._expire_ms)
            ]
            return callback(active)

        self._subscription = PollingSubscription(
            fetch,
            deliver,
            interval_seconds=self._poll_interval,
            name=f"typing:{room_id}",
        )
        return self._subscription

    def stop_listening(self) -> None:
        """Cancel the room subscription and any pending expiry timer."""
        self._cancel_subscription()
        self._cancel_expiry()

    async def dispose(self) -> None:
        subscription = self._subscription
        self._subscription = None
        if subscription is not None:
            await subscription.stop()
        self._cancel_expiry()

    def _cancel_subscription(self) -> None:
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None

    def _schedule_expiry(self, room_id: str, user_id: str) -> None:
        self._cancel_expiry()
        self._expiry_task = asyncio.create_task(self._expire_after(room_id, user_id))

    async def _expire_after(self, room_id: str, user_id: str) -> None:
        await asyncio.sleep(self._expire_ms / 1000)
        # Detach first so clear_typing does not cancel the running timer.
        self._expiry_task = None
        await self.clear_typing(room_id, user_id)

    def _cancel_expiry(self) -> None:
        if self._expiry_task is not None:
            self._expiry_task.cancel()
            self._expiry_task = None


def format_typing_text(users: Sequence[TypingState], dm_user_name: str | None = None) -> str:
    """Render the typing line shown under the message list."""
    if not users:
        return ""
    if dm_user_name:
        return f"{dm_user_name} is typing..."
    if len(users) == 1:
        return f"{users[0].user_name} is typing..."
    if len(users) == 2:
        return f"{users[0].user_name} and {users[1].user_name} are typing..."
    return f"{len(users)} people are typing..."
