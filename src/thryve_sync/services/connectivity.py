"""Online/offline tracking for the delivery agent."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from thryve_sync.services.remote_store import RemoteMessageStore

logger = logging.getLogger(__name__)

RestoreListener = Callable[[], Awaitable[object]]


class ConnectivityMonitor:
    """Holds the connectivity flag and notifies listeners when it comes back.

    The flag is normally driven from outside (the UI process reports network
    changes); ``check`` and the optional background loop derive it from the
    remote store's health endpoint instead.
    """

    def __init__(
        self,
        remote: RemoteMessageStore | None = None,
        *,
        online: bool = True,
        check_interval_seconds: float = 0.0,
    ) -> None:
        self._remote = remote
        self._online = online
        self._check_interval = check_interval_seconds
        self._listeners: list[RestoreListener] = []
        self._task: asyncio.Task[None] | None = None
        self._stopping = asyncio.Event()

    @property
    def is_online(self) -> bool:
        return self._online

    def add_restore_listener(self, listener: RestoreListener) -> None:
        """Register a coroutine function awaited on every offline -> online transition."""
        self._listeners.append(listener)

    async def set_online(self, online: bool) -> None:
        """Record the current state, running restore listeners on reconnect."""
        was_online = self._online
        self._online = online
        if online == was_online:
            return

        if not online:
            logger.info("Connectivity lost")
            return

        logger.info("Connectivity restored; notifying %d listener(s)", len(self._listeners))
        for listener in list(self._listeners):
            try:
                await listener()
            except Exception as exc:
                logger.error("Connectivity restore listener failed: %s", exc, exc_info=True)

    async def check(self) -> bool:
        """Ask the remote store whether it is reachable and update the flag."""
        if self._remote is None:
            return self._online
        online = await self._remote.ping()
        await self.set_online(online)
        return online

    async def start(self) -> None:
        """Start the background check loop if an interval is configured."""
        if self._remote is None or self._check_interval <= 0:
            return

        if self._task is None or self._task.done():
            self._stopping.clear()
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """Stop the background check loop."""
        if self._task is None:
            return

        self._stopping.set()
        await self._task
        self._task = None

    async def _run(self) -> None:
        interval = max(0.1, float(self._check_interval))
        while not self._stopping.is_set():
            await self.check()
            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=interval)
            except TimeoutError:
                continue
