import asyncio
import logging

import storage.db as db
from services.backing_store import PostgrestBackingStore
from services.offline_app import build_app
from services.offline_queue import ORIGIN_FALLBACK
from storage.db import make_engine


def test_unopenable_database_falls_back_to_json_store(tmp_path, monkeypatch, caplog):
    garbage = tmp_path / "offline.db"
    garbage.write_bytes(b"this is not a sqlite database\n" * 20)
    monkeypatch.setattr(db, "_engine", make_engine(f"sqlite:///{garbage.as_posix()}"))
    monkeypatch.setattr("storage.fallback.FALLBACK_STORE_PATH", tmp_path / "fallback.json")

    with caplog.at_level(logging.ERROR, logger="custos.sync"):
        app = build_app(store=PostgrestBackingStore(url=""), with_probe=False)

        async def scenario():
            entry = await app.queue.enqueue("insert", "sales", {"amount": 10})
            return entry, await app.queue.list_pending()

        entry, pending = asyncio.run(scenario())

    assert "Cannot open offline database" in caplog.text
    assert entry is not None
    assert entry.origin == ORIGIN_FALLBACK
    assert [item.payload for item in pending] == [{"amount": 10}]
    assert (tmp_path / "fallback.json").exists()
