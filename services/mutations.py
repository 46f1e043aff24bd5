"""Offline-first writes: send to the backing store, or queue for later."""
from __future__ import annotations

import logging
from typing import Any, Dict

from services.backing_store import BackingStore, StoreResult
from services.connectivity import ConnectivityMonitor
from services.offline_queue import (
    ACTION_DELETE,
    ACTION_INSERT,
    ACTION_KINDS,
    ACTION_UPDATE,
    OfflineQueue,
)


SENT = "sent"
QUEUED = "queued"
DROPPED = "dropped"

logger = logging.getLogger("custos.sync.mutations")


class MutationGateway:
    def __init__(self, store: BackingStore, queue: OfflineQueue, monitor: ConnectivityMonitor):
        self.store = store
        self.queue = queue
        self.monitor = monitor

    async def insert(self, table: str, record: Dict[str, Any]) -> str:
        return await self.perform(ACTION_INSERT, table, dict(record))

    async def update(self, table: str, record_id: Any, fields: Dict[str, Any]) -> str:
        return await self.perform(ACTION_UPDATE, table, {**fields, "id": record_id})

    async def delete(self, table: str, record_id: Any) -> str:
        return await self.perform(ACTION_DELETE, table, {"id": record_id})

    async def perform(self, kind: str, table: str, payload: Dict[str, Any]) -> str:
        if kind not in ACTION_KINDS:
            raise ValueError(f"Unsupported action: {kind}")

        if self.monitor.is_online:
            result = await self._send(kind, table, payload)
            if result.success:
                return SENT
            logger.warning("Direct %s on %s failed (%s); queueing", kind, table, result.error)

        entry = await self.queue.enqueue(kind, table, payload)
        return QUEUED if entry is not None else DROPPED

    async def _send(self, kind: str, table: str, payload: Dict[str, Any]) -> StoreResult:
        try:
            if kind == ACTION_INSERT:
                return await self.store.insert(table, payload)
            fields = dict(payload)
            record_id = fields.pop("id", None)
            if kind == ACTION_UPDATE:
                return await self.store.update(table, record_id, fields)
            return await self.store.delete(table, record_id)
        except Exception as exc:
            logger.exception("Direct %s on %s crashed", kind, table)
            return StoreResult(False, str(exc))


__all__ = ["DROPPED", "MutationGateway", "QUEUED", "SENT"]
