# custos/storage/db.py
from __future__ import annotations

from typing import Optional

from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, Session, create_engine

from core.settings import DB_PATH

# Ensure SQLModel metadata is populated
import models.pending_action  # noqa: F401
import models.cached_data  # noqa: F401
from storage import migrations


_engine: Optional[Engine] = None


def make_engine(url: str) -> Engine:
    # asyncio.to_thread hands sessions to worker threads
    return create_engine(url, echo=False, connect_args={"check_same_thread": False})


def get_engine() -> Engine:
    """Return (and lazily create) the engine for the offline database."""

    global _engine
    if _engine is None:
        DB_PATH.parent.mkdir(parents=True, exist_ok=True)
        _engine = make_engine(f"sqlite:///{DB_PATH.as_posix()}")
    return _engine


def init_db(engine: Optional[Engine] = None) -> Engine:
    actual_engine = engine or get_engine()
    SQLModel.metadata.create_all(actual_engine)
    migrations.run_all(actual_engine)
    return actual_engine


def get_session() -> Session:
    return Session(get_engine())


__all__ = ["get_engine", "get_session", "init_db", "make_engine"]
