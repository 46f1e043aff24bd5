from __future__ import annotations
import asyncio
import logging
from logging.handlers import RotatingFileHandler
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, Optional

from core.settings import OFFLINE_SYNC, SYNC_LOG_PATH
from datetime_utils import to_rfc3339_utc, utc_now
from services.backing_store import BackingStore, StoreResult
from services.connectivity import ConnectivityMonitor
from services.notifications import NotificationService
from services.offline_queue import (
    ACTION_DELETE,
    ACTION_INSERT,
    ACTION_UPDATE,
    OfflineQueue,
    QueueEntry,
)


def _ensure_logger() -> logging.Logger:
    logger = logging.getLogger("custos.sync")
    if not logger.handlers:
        SYNC_LOG_PATH.parent.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(SYNC_LOG_PATH, maxBytes=1_000_000, backupCount=3, encoding="utf-8")
        formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(message)s")
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    return logger


def _plural(count: int, one: str, many: str) -> str:
    return one if count == 1 else many


@dataclass(frozen=True)
class SyncResult:
    success: int = 0
    failed: int = 0


class OfflineSyncService:
    """Replays queued actions against the backing store.

    At most one drain runs at a time; a second ``run()`` while one is in
    flight, or any ``run()`` while offline, returns an empty result at once.
    Entries are replayed one by one in ``created_at`` order and removed only
    after the store confirms them. A failing entry stays queued for the next
    run and does not stop the others.

    ``entry_timeout_sec`` only stops waiting for the store: a call already
    running in a worker thread is not interrupted and may still commit on
    the server, so the entry can be replayed again on the next run. Keep
    the store's own request timeout below it so the transport fails first.
    """

    def __init__(
        self,
        queue: OfflineQueue,
        store: BackingStore,
        monitor: ConnectivityMonitor,
        notifications: Optional[NotificationService] = None,
        *,
        allowed_tables: Iterable[str] = OFFLINE_SYNC.allowed_tables,
        entry_timeout_sec: Optional[float] = OFFLINE_SYNC.entry_timeout_sec,
        failure_warning_threshold: int = OFFLINE_SYNC.failure_warning_threshold,
    ) -> None:
        self.queue = queue
        self.store = store
        self.monitor = monitor
        self.notifications = notifications or NotificationService()
        self.allowed_tables = frozenset(allowed_tables)
        self.entry_timeout_sec = entry_timeout_sec
        self.failure_warning_threshold = failure_warning_threshold
        self.logger = _ensure_logger()
        self._lock = asyncio.Lock()
        self._failures: Dict[tuple, int] = {}
        self._warned: set = set()
        self.last_run_at: Optional[datetime] = None
        self.last_result: Optional[SyncResult] = None

    @property
    def is_syncing(self) -> bool:
        return self._lock.locked()

    # ------------------------------------------------------------------
    # Public API
    async def run(self) -> SyncResult:
        if self._lock.locked():
            self.logger.info("Sync already in progress")
            return SyncResult()
        if not self.monitor.is_online:
            self.logger.info("Cannot sync - offline")
            return SyncResult()

        # no suspension point between the check above and taking the lock
        async with self._lock:
            result = await self._drain()

        self.last_run_at = utc_now()
        self.last_result = result
        self._report(result)
        return result

    async def sync_now(self) -> SyncResult:
        return await self.run()

    async def status(self) -> dict:
        state = self.monitor.state
        last = self.last_result
        return {
            "online": state.is_online,
            "wasOffline": state.was_offline,
            "syncing": self.is_syncing,
            "queueSize": await self.queue.count(),
            "lastRunAt": to_rfc3339_utc(self.last_run_at),
            "lastResult": {"success": last.success, "failed": last.failed} if last else None,
        }

    # ------------------------------------------------------------------
    async def _drain(self) -> SyncResult:
        entries = await self.queue.list_pending()
        if not entries:
            return SyncResult()

        self.logger.info("Starting sync of %s pending actions", len(entries))
        entries = sorted(entries, key=lambda entry: entry.sort_key)

        success = 0
        failed = 0
        for entry in entries:
            try:
                result = await self._execute(entry)
            except Exception as exc:
                self.logger.exception(
                    "Error syncing action %s (%s on %s)", entry.id, entry.kind, entry.target
                )
                result = StoreResult(False, str(exc) or exc.__class__.__name__)

            if result.success:
                await self.queue.remove(entry.id, entry.origin)
                self._failures.pop((entry.origin, entry.id), None)
                self._warned.discard((entry.origin, entry.id))
                success += 1
            else:
                self.logger.error(
                    "Failed to sync action %s (%s on %s): %s",
                    entry.id,
                    entry.kind,
                    entry.target,
                    result.error,
                )
                self._record_failure(entry, result.error)
                failed += 1

        self.logger.info("Sync finished: %s succeeded, %s failed", success, failed)
        return SyncResult(success=success, failed=failed)

    async def _execute(self, entry: QueueEntry) -> StoreResult:
        if entry.target not in self.allowed_tables:
            return StoreResult(False, f"Invalid table: {entry.target}")

        payload: Dict[str, Any] = dict(entry.payload or {})

        if entry.kind == ACTION_INSERT:
            call = self.store.insert(entry.target, payload)
        elif entry.kind == ACTION_UPDATE:
            record_id = payload.pop("id", None)
            if not record_id:
                return StoreResult(False, "Missing id for update")
            call = self.store.update(entry.target, record_id, payload)
        elif entry.kind == ACTION_DELETE:
            record_id = payload.get("id")
            if not record_id:
                return StoreResult(False, "Missing id for delete")
            call = self.store.delete(entry.target, record_id)
        else:
            return StoreResult(False, f"Unknown action type: {entry.kind}")

        if self.entry_timeout_sec is None:
            return await call
        try:
            return await asyncio.wait_for(call, self.entry_timeout_sec)
        except asyncio.TimeoutError:
            return StoreResult(False, f"Timed out after {self.entry_timeout_sec}s")

    def _record_failure(self, entry: QueueEntry, error: Optional[str]) -> None:
        key = (entry.origin, entry.id)
        count = self._failures.get(key, 0) + 1
        self._failures[key] = count
        if count < self.failure_warning_threshold or key in self._warned:
            return
        self._warned.add(key)
        self.logger.warning(
            "Action %s (%s on %s) failed %s times in a row: %s",
            entry.id,
            entry.kind,
            entry.target,
            count,
            error,
        )
        self.notifications.show(
            "Sincronização com problema",
            "Uma ação pendente continua falhando e precisa de atenção.",
        )

    def _report(self, result: SyncResult) -> None:
        if result.success > 0:
            noun = _plural(result.success, "ação sincronizada", "ações sincronizadas")
            self.notifications.show("Sincronização concluída", f"{result.success} {noun} com sucesso!")
        if result.failed > 0:
            noun = _plural(result.failed, "ação falhou", "ações falharam")
            self.notifications.show("Falha na sincronização", f"{result.failed} {noun} ao sincronizar")


__all__ = ["OfflineSyncService", "SyncResult"]
