import asyncio

import pytest

from services.backing_store import StoreResult
from services.connectivity import ConnectivityMonitor
from services.mutations import DROPPED, QUEUED, SENT, MutationGateway
from services.offline_queue import OfflineQueue


class FakeStore:
    def __init__(self, result=None):
        self.calls = []
        self.result = result or StoreResult(True)

    async def insert(self, table, record):
        self.calls.append(("insert", table, record))
        return self.result

    async def update(self, table, record_id, fields):
        self.calls.append(("update", table, record_id, fields))
        return self.result

    async def delete(self, table, record_id):
        self.calls.append(("delete", table, record_id))
        return self.result


class NullQueue:
    async def enqueue(self, kind, target, payload):
        return None


@pytest.fixture()
def queue(session_factory, fallback, clock):
    return OfflineQueue(session_factory=session_factory, fallback=fallback, clock=clock)


def test_online_write_goes_straight_to_store(queue):
    store = FakeStore()
    gateway = MutationGateway(store, queue, ConnectivityMonitor())

    async def scenario():
        status = await gateway.update("products", 5, {"price": 12.9})
        return status, await queue.count()

    assert asyncio.run(scenario()) == (SENT, 0)
    assert store.calls == [("update", "products", 5, {"price": 12.9})]


def test_failed_online_write_is_queued(queue):
    store = FakeStore(StoreResult(False, "503 Service Unavailable"))
    gateway = MutationGateway(store, queue, ConnectivityMonitor())

    async def scenario():
        status = await gateway.insert("sales", {"amount": 42})
        return status, await queue.list_pending()

    status, pending = asyncio.run(scenario())
    assert status == QUEUED
    assert [(entry.kind, entry.target, entry.payload) for entry in pending] == [
        ("insert", "sales", {"amount": 42})
    ]


def test_offline_write_is_queued_without_store_call(queue):
    store = FakeStore()
    monitor = ConnectivityMonitor()
    monitor.set_online(False)
    gateway = MutationGateway(store, queue, monitor)

    async def scenario():
        status = await gateway.delete("customers", "c-9")
        return status, await queue.list_pending()

    status, pending = asyncio.run(scenario())
    assert status == QUEUED
    assert store.calls == []
    assert pending[0].payload == {"id": "c-9"}


def test_write_reports_dropped_when_queue_has_no_storage():
    monitor = ConnectivityMonitor()
    monitor.set_online(False)
    gateway = MutationGateway(FakeStore(), NullQueue(), monitor)
    assert asyncio.run(gateway.insert("sales", {"amount": 1})) == DROPPED


def test_unknown_action_is_rejected(queue):
    gateway = MutationGateway(FakeStore(), queue, ConnectivityMonitor())
    with pytest.raises(ValueError):
        asyncio.run(gateway.perform("upsert", "sales", {}))
