from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from datetime_utils import epoch_millis
from models.pending_action import PendingAction
from storage.db import get_session
from storage.fallback import FallbackStore


ACTION_INSERT = "insert"
ACTION_UPDATE = "update"
ACTION_DELETE = "delete"
ACTION_KINDS = (ACTION_INSERT, ACTION_UPDATE, ACTION_DELETE)

ORIGIN_DB = "db"
ORIGIN_FALLBACK = "fallback"
_ORIGIN_ORDER = {ORIGIN_DB: 0, ORIGIN_FALLBACK: 1}

logger = logging.getLogger("custos.sync.queue")


def _load_payload(raw: Optional[str]) -> Dict[str, Any]:
    if not raw:
        return {}
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        return {}
    return data if isinstance(data, dict) else {}


@dataclass(frozen=True)
class QueueEntry:
    id: int
    kind: str
    target: str
    payload: Dict[str, Any] = field(hash=False)
    created_at: int
    origin: str = ORIGIN_DB

    @property
    def sort_key(self):
        return (self.created_at, _ORIGIN_ORDER.get(self.origin, 2), self.id)


class OfflineQueue:
    """Durable queue of mutations that could not reach the backing store.

    Entries go to the SQLite database; when that fails they go to the JSON
    fallback store. Reads merge both stores. Storage failures are logged and
    never raised to callers.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session] = get_session,
        fallback: Optional[FallbackStore] = None,
        clock: Callable[[], int] = epoch_millis,
    ) -> None:
        self._session_factory = session_factory
        self.fallback = fallback if fallback is not None else FallbackStore()
        self._clock = clock

    # ------------------------------------------------------------------
    # Public API
    async def enqueue(self, kind: str, target: str, payload: Dict[str, Any]) -> Optional[QueueEntry]:
        return await asyncio.to_thread(self._enqueue, kind, target, payload)

    async def list_pending(self) -> List[QueueEntry]:
        return await asyncio.to_thread(self._list_pending)

    async def remove(self, entry_id: int, origin: str = ORIGIN_DB) -> None:
        await asyncio.to_thread(self._remove, entry_id, origin)

    async def clear_all(self) -> None:
        await asyncio.to_thread(self._clear_all)

    async def count(self) -> int:
        entries = await self.list_pending()
        return len(entries)

    # ------------------------------------------------------------------
    # Blocking implementations
    def _enqueue(self, kind: str, target: str, payload: Dict[str, Any]) -> Optional[QueueEntry]:
        created_at = self._clock()
        serialised = json.dumps(payload, ensure_ascii=False, default=str)
        try:
            with self._session_factory() as session:
                record = PendingAction(
                    kind=kind,
                    target=target,
                    payload=serialised,
                    created_at=created_at,
                )
                session.add(record)
                session.commit()
                session.refresh(record)
                logger.debug("Queued %s on %s as #%s", kind, target, record.id)
                return QueueEntry(
                    id=record.id,
                    kind=kind,
                    target=target,
                    payload=_load_payload(serialised),
                    created_at=created_at,
                )
        except (SQLAlchemyError, OSError) as exc:
            logger.warning("Offline database unavailable (%s), using fallback store", exc)

        try:
            action_id = self.fallback.append_action(kind, target, _load_payload(serialised), created_at)
        except OSError as exc:
            logger.error("Dropping %s on %s: no storage available (%s)", kind, target, exc)
            return None
        logger.debug("Queued %s on %s as fallback #%s", kind, target, action_id)
        return QueueEntry(
            id=action_id,
            kind=kind,
            target=target,
            payload=_load_payload(serialised),
            created_at=created_at,
            origin=ORIGIN_FALLBACK,
        )

    def _list_pending(self) -> List[QueueEntry]:
        result: List[QueueEntry] = []
        try:
            with self._session_factory() as session:
                stmt = select(PendingAction).order_by(
                    PendingAction.created_at.asc(), PendingAction.id.asc()
                )
                for row in session.exec(stmt):
                    result.append(
                        QueueEntry(
                            id=row.id,
                            kind=row.kind,
                            target=row.target,
                            payload=_load_payload(row.payload),
                            created_at=row.created_at,
                        )
                    )
        except (SQLAlchemyError, OSError) as exc:
            logger.error("Cannot read pending actions from database: %s", exc)

        try:
            fallback_items = self.fallback.list_actions()
        except OSError as exc:
            logger.error("Cannot read pending actions from fallback store: %s", exc)
            fallback_items = []

        for item in fallback_items:
            try:
                result.append(
                    QueueEntry(
                        id=int(item["id"]),
                        kind=str(item.get("kind", "")),
                        target=str(item.get("target", "")),
                        payload=item.get("payload") if isinstance(item.get("payload"), dict) else {},
                        created_at=int(item.get("created_at") or 0),
                        origin=ORIGIN_FALLBACK,
                    )
                )
            except (KeyError, TypeError, ValueError):
                logger.warning("Skipping malformed fallback action: %r", item)

        result.sort(key=lambda entry: entry.sort_key)
        return result

    def _remove(self, entry_id: int, origin: str) -> None:
        if origin == ORIGIN_FALLBACK:
            try:
                self.fallback.remove_action(entry_id)
            except OSError as exc:
                logger.error("Cannot remove fallback action #%s: %s", entry_id, exc)
            return

        try:
            with self._session_factory() as session:
                record = session.get(PendingAction, entry_id)
                if record:
                    session.delete(record)
                    session.commit()
        except (SQLAlchemyError, OSError) as exc:
            logger.error("Cannot remove pending action #%s: %s", entry_id, exc)

    def _clear_all(self) -> None:
        try:
            with self._session_factory() as session:
                for row in session.exec(select(PendingAction)).all():
                    session.delete(row)
                session.commit()
        except (SQLAlchemyError, OSError) as exc:
            logger.error("Cannot clear pending actions: %s", exc)
        try:
            self.fallback.clear_actions()
        except OSError as exc:
            logger.error("Cannot clear fallback actions: %s", exc)


__all__ = [
    "ACTION_DELETE",
    "ACTION_INSERT",
    "ACTION_KINDS",
    "ACTION_UPDATE",
    "ORIGIN_DB",
    "ORIGIN_FALLBACK",
    "OfflineQueue",
    "QueueEntry",
]
