"""Wires connectivity events to the offline sync service."""
from __future__ import annotations

import asyncio
import logging
from typing import Callable, List, Optional, Set

from core.settings import OFFLINE_SYNC
from services.connectivity import (
    EVENT_BACK_ONLINE,
    EVENT_ONLINE,
    EVENT_VISIBLE,
    ConnectivityMonitor,
)
from services.sync_service import OfflineSyncService, SyncResult


logger = logging.getLogger("custos.sync.triggers")


class SyncTriggers:
    """Starts a drain on recovery signals.

    * ``online``: after ``settle_delay_sec`` so a flapping link can settle;
    * ``back_online``: immediately;
    * ``visible``: immediately, if online.

    Overlapping triggers are coalesced only by the service's in-flight guard.
    ``stop()`` cancels delayed runs that have not fired yet.
    """

    def __init__(
        self,
        sync_service: OfflineSyncService,
        monitor: ConnectivityMonitor,
        settle_delay_sec: float = OFFLINE_SYNC.settle_delay_sec,
    ) -> None:
        self.sync_service = sync_service
        self.monitor = monitor
        self.settle_delay_sec = settle_delay_sec
        self._unsubscribers: List[Callable[[], None]] = []
        self._delayed: Set[asyncio.Task] = set()

    @property
    def started(self) -> bool:
        return bool(self._unsubscribers)

    async def start(self) -> Optional[SyncResult]:
        if self.started:
            return None
        self._unsubscribers = [
            self.monitor.subscribe(EVENT_ONLINE, self._schedule_online),
            self.monitor.subscribe(EVENT_BACK_ONLINE, self._on_back_online),
            self.monitor.subscribe(EVENT_VISIBLE, self._on_visible),
        ]
        # initial check on startup
        if self.monitor.is_online:
            return await self.sync_service.run()
        return None

    def stop(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []
        for task in list(self._delayed):
            task.cancel()
        self._delayed.clear()

    async def sync_now(self) -> SyncResult:
        return await self.sync_service.sync_now()

    # ------------------------------------------------------------------
    def _schedule_online(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running event loop - online sync not scheduled")
            return
        task = loop.create_task(self._on_online())
        self._delayed.add(task)
        task.add_done_callback(self._delayed.discard)

    async def _on_online(self) -> None:
        logger.info("Connection restored - starting sync in %ss", self.settle_delay_sec)
        await asyncio.sleep(self.settle_delay_sec)
        await self.sync_service.run()

    async def _on_back_online(self) -> None:
        await self.sync_service.run()

    async def _on_visible(self) -> None:
        if self.monitor.is_online:
            await self.sync_service.run()


__all__ = ["SyncTriggers"]
