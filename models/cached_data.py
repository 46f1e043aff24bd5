"""SQLModel table for datasets cached for offline reads."""

from __future__ import annotations

from sqlmodel import Field, SQLModel


class CachedData(SQLModel, table=True):
    __tablename__ = "offline_cache"

    key: str = Field(primary_key=True)
    data: str
    timestamp: int = Field(index=True)
    expires_at: int


__all__ = ["CachedData"]
