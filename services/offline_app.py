"""Assembles the offline sync components into one runnable unit."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from core.settings import OFFLINE_SYNC
from services.backing_store import PostgrestBackingStore
from services.connectivity import ConnectivityMonitor, ReachabilityProbe, link_check_for_url
from services.mutations import MutationGateway
from services.notifications import NotificationService
from services.offline_cache import OfflineCache
from services.offline_queue import OfflineQueue
from services.sync_service import OfflineSyncService
from services.sync_triggers import SyncTriggers
from storage.db import init_db


logger = logging.getLogger("custos.sync.app")


@dataclass
class OfflineSyncApp:
    queue: OfflineQueue
    store: PostgrestBackingStore
    monitor: ConnectivityMonitor
    sync: OfflineSyncService
    triggers: SyncTriggers
    cache: OfflineCache
    gateway: MutationGateway
    probe: Optional[ReachabilityProbe] = None
    notifications: NotificationService = field(default_factory=NotificationService)

    async def start(self) -> None:
        if self.probe is not None:
            # first sample before the initial drain so a dead link skips it
            await self.probe.check_once()
            self.probe.start()
        await self.triggers.start()

    def stop(self) -> None:
        self.triggers.stop()
        if self.probe is not None:
            self.probe.stop()


def build_app(
    notifications: Optional[NotificationService] = None,
    store: Optional[PostgrestBackingStore] = None,
    *,
    with_probe: bool = True,
) -> OfflineSyncApp:
    try:
        init_db()
    except SQLAlchemyError as exc:
        # queue and cache degrade to the JSON fallback store on their own
        logger.error("Cannot open offline database, using fallback store: %s", exc)
    notifications = notifications or NotificationService()
    store = store or PostgrestBackingStore()
    queue = OfflineQueue()
    monitor = ConnectivityMonitor()
    sync = OfflineSyncService(queue, store, monitor, notifications)
    probe = None
    if with_probe and store.url:
        probe = ReachabilityProbe(
            monitor,
            link_check_for_url(store.url),
            health_check=store.health_check,
            interval_sec=OFFLINE_SYNC.probe_interval_sec,
        )
    return OfflineSyncApp(
        queue=queue,
        store=store,
        monitor=monitor,
        sync=sync,
        triggers=SyncTriggers(sync, monitor),
        cache=OfflineCache(fallback=queue.fallback),
        gateway=MutationGateway(store, queue, monitor),
        probe=probe,
        notifications=notifications,
    )


__all__ = ["OfflineSyncApp", "build_app"]
