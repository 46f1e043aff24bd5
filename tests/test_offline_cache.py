import asyncio

from sqlalchemy.exc import OperationalError

from models.cached_data import CachedData
from services.offline_cache import OfflineCache


def broken_session_factory():
    raise OperationalError("SELECT 1", {}, Exception("database is locked"))


def test_cache_roundtrip_and_overwrite(session_factory, fallback, clock):
    cache = OfflineCache(session_factory=session_factory, fallback=fallback, clock=clock)

    async def scenario():
        await cache.cache_data("products", [{"id": 1}])
        await cache.cache_data("products", [{"id": 1}, {"id": 2}])
        return await cache.get_cached("products"), await cache.get_cached("missing")

    current, missing = asyncio.run(scenario())
    assert current == [{"id": 1}, {"id": 2}]
    assert missing is None


def test_expired_entries_are_deleted(session_factory, fallback, clock):
    cache = OfflineCache(session_factory=session_factory, fallback=fallback, clock=clock)

    asyncio.run(cache.cache_data("sales", {"total": 10}, ttl_minutes=1))
    clock.now += 2 * 60 * 1000

    assert asyncio.run(cache.get_cached("sales")) is None
    with session_factory() as session:
        assert session.get(CachedData, "sales") is None


def test_cache_falls_back_to_json_store(fallback, clock):
    cache = OfflineCache(session_factory=broken_session_factory, fallback=fallback, clock=clock)

    async def scenario():
        await cache.cache_data("settings", {"currency": "BRL"})
        return await cache.get_cached("settings")

    assert asyncio.run(scenario()) == {"currency": "BRL"}
    assert fallback.get_item("offline_settings")["data"] == {"currency": "BRL"}


def test_expired_fallback_entry_is_removed(fallback, clock):
    cache = OfflineCache(session_factory=broken_session_factory, fallback=fallback, clock=clock)
    asyncio.run(cache.cache_data("settings", {"currency": "BRL"}, ttl_minutes=1))
    clock.now += 61 * 1000

    assert asyncio.run(cache.get_cached("settings")) is None
    assert fallback.get_item("offline_settings") is None


def test_clear_all_keeps_unrelated_items(session_factory, fallback, clock):
    cache = OfflineCache(session_factory=session_factory, fallback=fallback, clock=clock)
    fallback.set_item("offline_products", {"data": [], "expiresAt": clock.now + 1000})
    fallback.set_item("theme", "dark")

    async def scenario():
        await cache.cache_data("products", [1, 2])
        await cache.clear_all()
        return await cache.get_cached("products")

    assert asyncio.run(scenario()) is None
    assert fallback.get_item("offline_products") is None
    assert fallback.get_item("theme") == "dark"
