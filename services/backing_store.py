"""Clients for the remote database that queued actions are replayed against."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Protocol

import httpx
from postgrest import APIError, SyncPostgrestClient
from postgrest.constants import DEFAULT_POSTGREST_CLIENT_HEADERS

from core.settings import BACKING_STORE


logger = logging.getLogger("custos.sync.store")


@dataclass(frozen=True)
class StoreResult:
    success: bool
    error: Optional[str] = None


class BackingStore(Protocol):
    async def insert(self, table: str, record: Dict[str, Any]) -> StoreResult: ...

    async def update(self, table: str, record_id: Any, fields: Dict[str, Any]) -> StoreResult: ...

    async def delete(self, table: str, record_id: Any) -> StoreResult: ...


def table_name_for(collection: str) -> str:
    """Map a collection name (``fixed-costs``) to its table (``fixed_costs``)."""

    return collection.replace("-", "_")


def _describe(exc: APIError) -> str:
    parts = [getattr(exc, "message", None) or str(exc)]
    code = getattr(exc, "code", None)
    if code:
        parts.append(f"code={code}")
    details = getattr(exc, "details", None)
    if details:
        parts.append(str(details))
    return " ".join(parts)


class PostgrestBackingStore:
    """PostgREST (Supabase) implementation of :class:`BackingStore`.

    Requests go through the synchronous ``postgrest`` client in a worker
    thread. Errors reported by the server or the transport come back as a
    failed :class:`StoreResult`; nothing is retried here.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        api_key: Optional[str] = None,
        *,
        access_token: Optional[str] = None,
        schema: str = BACKING_STORE.schema,
        timeout: float = BACKING_STORE.request_timeout_sec,
        client_factory: Optional[Callable[[], Any]] = None,
    ) -> None:
        self.url = (url if url is not None else BACKING_STORE.rest_url).rstrip("/")
        self.api_key = api_key if api_key is not None else BACKING_STORE.api_key
        self.access_token = access_token
        self.schema = schema
        self.timeout = timeout
        self._client_factory = client_factory or self._default_client

    @property
    def headers(self) -> Dict[str, str]:
        headers = dict(DEFAULT_POSTGREST_CLIENT_HEADERS)
        if self.api_key:
            headers["apikey"] = self.api_key
        token = self.access_token or self.api_key
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    def _default_client(self) -> SyncPostgrestClient:
        return SyncPostgrestClient(
            self.url,
            schema=self.schema,
            headers=self.headers,
            timeout=self.timeout,
        )

    # ------------------------------------------------------------------
    async def insert(self, table: str, record: Dict[str, Any]) -> StoreResult:
        def _request() -> None:
            with self._client_factory() as client:
                client.from_(table_name_for(table)).insert(record).execute()

        return await self._call("insert", table, _request)

    async def update(self, table: str, record_id: Any, fields: Dict[str, Any]) -> StoreResult:
        def _request() -> None:
            with self._client_factory() as client:
                client.from_(table_name_for(table)).update(fields).eq("id", record_id).execute()

        return await self._call("update", table, _request)

    async def delete(self, table: str, record_id: Any) -> StoreResult:
        def _request() -> None:
            with self._client_factory() as client:
                client.from_(table_name_for(table)).delete().eq("id", record_id).execute()

        return await self._call("delete", table, _request)

    async def health_check(self) -> bool:
        """Return True when the REST endpoint answers without a server error."""

        if not self.url:
            return False
        try:
            async with httpx.AsyncClient(timeout=5.0) as client:
                response = await client.get(f"{self.url}/", headers=self.headers)
        except httpx.HTTPError as exc:
            logger.debug("Health check failed: %s", exc)
            return False
        return response.status_code < 500

    async def _call(self, op: str, table: str, request: Callable[[], None]) -> StoreResult:
        try:
            await asyncio.to_thread(request)
        except APIError as exc:
            return StoreResult(False, _describe(exc))
        except httpx.HTTPError as exc:
            return StoreResult(False, f"{op} on {table}: {exc}")
        return StoreResult(True)


__all__ = ["BackingStore", "PostgrestBackingStore", "StoreResult", "table_name_for"]
