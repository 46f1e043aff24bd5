"""Expiring cache of datasets for offline reads."""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from core.settings import OFFLINE_SYNC
from datetime_utils import epoch_millis
from models.cached_data import CachedData
from storage.db import get_session
from storage.fallback import FallbackStore


FALLBACK_PREFIX = "offline_"

logger = logging.getLogger("custos.sync.cache")


class OfflineCache:
    def __init__(
        self,
        session_factory: Callable[[], Session] = get_session,
        fallback: Optional[FallbackStore] = None,
        clock: Callable[[], int] = epoch_millis,
    ) -> None:
        self._session_factory = session_factory
        self.fallback = fallback if fallback is not None else FallbackStore()
        self._clock = clock

    async def cache_data(self, key: str, data: Any, ttl_minutes: int = OFFLINE_SYNC.cache_ttl_minutes) -> None:
        await asyncio.to_thread(self._cache_data, key, data, ttl_minutes)

    async def get_cached(self, key: str) -> Optional[Any]:
        return await asyncio.to_thread(self._get_cached, key)

    async def clear_all(self) -> None:
        await asyncio.to_thread(self._clear_all)

    # ------------------------------------------------------------------
    def _cache_data(self, key: str, data: Any, ttl_minutes: int) -> None:
        now = self._clock()
        expires_at = now + ttl_minutes * 60 * 1000
        payload = json.dumps(data, ensure_ascii=False, default=str)
        try:
            with self._session_factory() as session:
                row = session.get(CachedData, key)
                if row is None:
                    row = CachedData(key=key, data=payload, timestamp=now, expires_at=expires_at)
                else:
                    row.data = payload
                    row.timestamp = now
                    row.expires_at = expires_at
                session.add(row)
                session.commit()
            return
        except (SQLAlchemyError, OSError) as exc:
            logger.error("Error caching data: %s", exc)

        try:
            self.fallback.set_item(
                f"{FALLBACK_PREFIX}{key}",
                {"data": json.loads(payload), "expiresAt": expires_at},
            )
        except OSError as exc:
            logger.error("Fallback cache write failed: %s", exc)

    def _get_cached(self, key: str) -> Optional[Any]:
        now = self._clock()
        try:
            with self._session_factory() as session:
                row = session.get(CachedData, key)
                if row is not None:
                    if row.expires_at < now:
                        session.delete(row)
                        session.commit()
                        return None
                    return json.loads(row.data)
        except (SQLAlchemyError, OSError) as exc:
            logger.error("Error getting cached data: %s", exc)
        except json.JSONDecodeError:
            return None

        try:
            stored = self.fallback.get_item(f"{FALLBACK_PREFIX}{key}")
        except OSError as exc:
            logger.error("Error reading fallback cache: %s", exc)
            return None
        if not isinstance(stored, dict):
            return None
        if int(stored.get("expiresAt") or 0) > now:
            return stored.get("data")
        try:
            self.fallback.remove_item(f"{FALLBACK_PREFIX}{key}")
        except OSError as exc:
            logger.error("Fallback cache cleanup failed: %s", exc)
        return None

    def _clear_all(self) -> None:
        try:
            with self._session_factory() as session:
                for row in session.exec(select(CachedData)).all():
                    session.delete(row)
                session.commit()
        except (SQLAlchemyError, OSError) as exc:
            logger.error("Error clearing cache: %s", exc)
        try:
            self.fallback.clear_items(FALLBACK_PREFIX)
        except OSError as exc:
            logger.error("Error clearing fallback cache: %s", exc)


__all__ = ["OfflineCache"]
