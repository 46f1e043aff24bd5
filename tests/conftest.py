import os
import sys
import tempfile
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# keep the data directory created by core.settings out of the user's home
os.environ.setdefault("CUSTOS_DATA_DIR", tempfile.mkdtemp(prefix="custos-tests-"))

import pytest
from sqlmodel import Session

from storage.db import init_db, make_engine
from storage.fallback import FallbackStore


class Clock:
    """Deterministic millisecond clock; each call advances by ``step``."""

    def __init__(self, start: int = 1_700_000_000_000, step: int = 1):
        self.now = start
        self.step = step

    def __call__(self) -> int:
        value = self.now
        self.now += self.step
        return value


@pytest.fixture()
def engine(tmp_path):
    return init_db(make_engine(f"sqlite:///{(tmp_path / 'offline.db').as_posix()}"))


@pytest.fixture()
def session_factory(engine):
    def factory():
        return Session(engine)

    return factory


@pytest.fixture()
def fallback(tmp_path):
    return FallbackStore(tmp_path / "fallback.json")


@pytest.fixture()
def clock():
    return Clock()
