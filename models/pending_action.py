"""SQLModel table for mutations waiting to be replayed against the backing store."""

from __future__ import annotations

from typing import Optional

from sqlmodel import Field, SQLModel

from datetime_utils import epoch_millis


class PendingAction(SQLModel, table=True):
    __tablename__ = "pending_actions"
    # AUTOINCREMENT keeps ids from being reused after a row is deleted
    __table_args__ = {"sqlite_autoincrement": True}

    id: Optional[int] = Field(default=None, primary_key=True)
    kind: str = Field(index=True)
    target: str = Field(index=True)
    payload: str
    created_at: int = Field(default_factory=epoch_millis, index=True)


__all__ = ["PendingAction"]
