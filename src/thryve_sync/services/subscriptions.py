"""Live-update subscriptions built on polling watchers.

A watcher fetches a snapshot at a fixed interval and hands it to a callback
whenever it differs from the previous snapshot. The first snapshot is always
delivered. Every subscription must be cancelled explicitly.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from typing import Any, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Subscription:
    """Cancellation handle returned by every ``listen_*`` call."""

    @property
    def cancelled(self) -> bool:
        raise NotImplementedError

    def cancel(self) -> None:
        raise NotImplementedError

    async def stop(self) -> None:
        """Cancel and wait for the underlying work to finish."""
        self.cancel()


class PollingSubscription(Subscription, Generic[T]):
    """Polls ``fetch`` and reports changed snapshots to ``on_change``."""

    def __init__(
        self,
        fetch: Callable[[], Awaitable[T]],
        on_change: Callable[[T], Any],
        *,
        interval_seconds: float,
        name: str = "subscription",
    ) -> None:
        self._fetch = fetch
        self._on_change = on_change
        self._interval = max(0.01, float(interval_seconds))
        self._name = name
        self._last: T | None = None
        self._has_snapshot = False
        self._cancelled = False
        self._task: asyncio.Task[None] = asyncio.get_running_loop().create_task(self._run())

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        self._task.cancel()

    async def stop(self) -> None:
        self.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass

    async def _run(self) -> None:
        while not self._cancelled:
            try:
                snapshot = await self._fetch()
            except Exception as exc:
                # Transient fetch errors keep the subscription alive.
                logger.warning("%s poll failed: %s", self._name, exc)
            else:
                if not self._has_snapshot or snapshot != self._last:
                    self._has_snapshot = True
                    self._last = snapshot
                    await self._deliver(snapshot)
            await asyncio.sleep(self._interval)

    async def _deliver(self, snapshot: T) -> None:
        try:
            result = self._on_change(snapshot)
            if asyncio.iscoroutine(result):
                await result
        except Exception as exc:
            logger.error("%s callback failed: %s", self._name, exc, exc_info=True)


class SubscriptionGroup(Subscription):
    """Several subscriptions behind a single handle."""

    def __init__(self, members: Iterable[Subscription]) -> None:
        self._members = list(members)
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def __len__(self) -> int:
        return len(self._members)

    def cancel(self) -> None:
        self._cancelled = True
        for member in self._members:
            member.cancel()

    async def stop(self) -> None:
        self._cancelled = True
        for member in self._members:
            await member.stop()
