import asyncio

from services.connectivity import ConnectivityMonitor
from services.sync_service import SyncResult
from services.sync_triggers import SyncTriggers


class FakeSync:
    def __init__(self):
        self.runs = 0

    async def run(self):
        self.runs += 1
        return SyncResult(success=1)

    async def sync_now(self):
        return await self.run()


def test_start_runs_initial_sync_when_online():
    sync = FakeSync()
    triggers = SyncTriggers(sync, ConnectivityMonitor(), settle_delay_sec=0)

    result = asyncio.run(triggers.start())

    assert result == SyncResult(success=1)
    assert sync.runs == 1
    assert triggers.started


def test_start_skips_initial_sync_when_offline():
    sync = FakeSync()
    monitor = ConnectivityMonitor()
    monitor.set_online(False)

    assert asyncio.run(SyncTriggers(sync, monitor).start()) is None
    assert sync.runs == 0


def test_online_event_runs_after_settle_delay():
    sync = FakeSync()
    monitor = ConnectivityMonitor()
    monitor.set_online(False)
    triggers = SyncTriggers(sync, monitor, settle_delay_sec=0.02)

    async def scenario():
        await triggers.start()
        monitor.set_online(True)
        await asyncio.sleep(0)
        before = sync.runs
        await asyncio.sleep(0.1)
        return before, sync.runs

    before, after = asyncio.run(scenario())
    assert before == 0
    assert after == 1


def test_back_online_event_runs_immediately():
    sync = FakeSync()
    monitor = ConnectivityMonitor()
    monitor.set_online(False)
    triggers = SyncTriggers(sync, monitor, settle_delay_sec=10)

    async def scenario():
        await triggers.start()
        monitor.notify_back_online()
        await asyncio.sleep(0.01)
        return sync.runs

    assert asyncio.run(scenario()) == 1


def test_visibility_runs_only_while_online():
    sync = FakeSync()
    monitor = ConnectivityMonitor()
    monitor.set_online(False)
    triggers = SyncTriggers(sync, monitor, settle_delay_sec=10)

    async def scenario():
        await triggers.start()
        monitor.notify_visibility(True)
        await asyncio.sleep(0.01)
        offline_runs = sync.runs
        monitor.set_online(True)
        monitor.notify_visibility(False)
        monitor.notify_visibility(True)
        await asyncio.sleep(0.01)
        return offline_runs, sync.runs

    offline_runs, total = asyncio.run(scenario())
    assert offline_runs == 0
    assert total == 1


def test_stop_discards_delayed_run():
    sync = FakeSync()
    monitor = ConnectivityMonitor()
    monitor.set_online(False)
    triggers = SyncTriggers(sync, monitor, settle_delay_sec=0.01)

    async def scenario():
        await triggers.start()
        monitor.set_online(True)
        triggers.stop()
        monitor.notify_back_online()
        await asyncio.sleep(0.05)
        return sync.runs

    assert asyncio.run(scenario()) == 0
    assert not triggers.started


def test_restart_inside_settle_window_drops_old_delayed_run():
    sync = FakeSync()
    monitor = ConnectivityMonitor()
    monitor.set_online(False)
    triggers = SyncTriggers(sync, monitor, settle_delay_sec=0.02)

    async def scenario():
        await triggers.start()
        monitor.set_online(True)
        await asyncio.sleep(0)
        triggers.stop()
        await triggers.start()
        after_restart = sync.runs
        await asyncio.sleep(0.1)
        return after_restart, sync.runs

    after_restart, total = asyncio.run(scenario())
    assert after_restart == 1
    assert total == 1


def test_manual_sync_now():
    sync = FakeSync()
    triggers = SyncTriggers(sync, ConnectivityMonitor())
    assert asyncio.run(triggers.sync_now()) == SyncResult(success=1)
