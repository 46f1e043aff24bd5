"""Connectivity tracking: turns reachability samples into edge events."""
from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, List, Optional, Set
from urllib.parse import urlsplit

from core.settings import OFFLINE_SYNC


EVENT_ONLINE = "online"
EVENT_OFFLINE = "offline"
EVENT_BACK_ONLINE = "back_online"
EVENT_VISIBLE = "visible"
EVENT_HIDDEN = "hidden"
EVENTS = (EVENT_ONLINE, EVENT_OFFLINE, EVENT_BACK_ONLINE, EVENT_VISIBLE, EVENT_HIDDEN)

logger = logging.getLogger("custos.sync.connectivity")

Listener = Callable[[], object]
Check = Callable[[], Awaitable[bool]]


@dataclass
class ConnectivityState:
    is_online: bool = True
    was_offline: bool = False


class ConnectivityMonitor:
    """Process-wide online/offline state with edge-triggered listeners.

    The state starts as online until a sample proves otherwise. Only
    transitions notify listeners; repeated samples with the same value are
    ignored.
    """

    def __init__(self, reconnect_display_sec: float = OFFLINE_SYNC.reconnect_display_sec):
        self.reconnect_display_sec = reconnect_display_sec
        self._state = ConnectivityState()
        self._listeners: Dict[str, List[Listener]] = defaultdict(list)
        self._clear_handle: Optional[asyncio.TimerHandle] = None
        self._tasks: Set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    @property
    def state(self) -> ConnectivityState:
        return ConnectivityState(self._state.is_online, self._state.was_offline)

    @property
    def is_online(self) -> bool:
        return self._state.is_online

    @property
    def was_offline(self) -> bool:
        return self._state.was_offline

    def subscribe(self, event: str, callback: Listener) -> Callable[[], None]:
        if event not in EVENTS:
            raise ValueError(f"Unknown connectivity event: {event}")
        self._listeners[event].append(callback)

        def _unsubscribe() -> None:
            try:
                self._listeners[event].remove(callback)
            except ValueError:
                pass

        return _unsubscribe

    # ------------------------------------------------------------------
    # Signals
    def set_online(self, online: bool) -> None:
        online = bool(online)
        if online == self._state.is_online:
            return
        self._state.is_online = online
        if online:
            logger.info("Connection restored")
            self._state.was_offline = True
            self._schedule_reconnect_clear()
            self._emit(EVENT_ONLINE)
        else:
            logger.info("Connection lost")
            self._cancel_reconnect_clear()
            self._state.was_offline = False
            self._emit(EVENT_OFFLINE)

    def notify_back_online(self) -> None:
        """Signal that the application itself reached the backing store again."""

        logger.info("Backing store reachable again")
        self._emit(EVENT_BACK_ONLINE)

    def notify_visibility(self, visible: bool) -> None:
        self._emit(EVENT_VISIBLE if visible else EVENT_HIDDEN)

    # ------------------------------------------------------------------
    def _schedule_reconnect_clear(self) -> None:
        self._cancel_reconnect_clear()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._clear_handle = loop.call_later(self.reconnect_display_sec, self._clear_was_offline)

    def _cancel_reconnect_clear(self) -> None:
        if self._clear_handle is not None:
            self._clear_handle.cancel()
            self._clear_handle = None

    def _clear_was_offline(self) -> None:
        self._clear_handle = None
        self._state.was_offline = False

    def _emit(self, event: str) -> None:
        for callback in list(self._listeners.get(event, ())):
            try:
                result = callback()
            except Exception:
                logger.exception("Listener for %s failed", event)
                continue
            if asyncio.iscoroutine(result):
                self._spawn(event, result)

    def _spawn(self, event: str, coro) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            coro.close()
            logger.warning("No running event loop for %s listener", event)
            return
        task = loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)


# ----------------------------------------------------------------------
# Reachability probing


async def tcp_link_check(host: str, port: int, timeout: float = 3.0) -> bool:
    try:
        _, writer = await asyncio.wait_for(asyncio.open_connection(host, port), timeout)
    except (OSError, asyncio.TimeoutError):
        return False
    writer.close()
    try:
        await writer.wait_closed()
    except OSError:
        pass
    return True


def link_check_for_url(url: str, timeout: float = 3.0) -> Check:
    parts = urlsplit(url)
    if not parts.hostname:
        raise ValueError(f"URL without host: {url!r}")
    port = parts.port or (443 if parts.scheme == "https" else 80)

    async def _check() -> bool:
        return await tcp_link_check(parts.hostname, port, timeout)

    return _check


class ReachabilityProbe:
    """Samples reachability on an interval and feeds the monitor.

    ``link_check`` decides online/offline. ``health_check`` is the
    application-level check: when it recovers the probe raises the monitor's
    ``back_online`` event.
    """

    def __init__(
        self,
        monitor: ConnectivityMonitor,
        link_check: Check,
        health_check: Optional[Check] = None,
        interval_sec: float = OFFLINE_SYNC.probe_interval_sec,
    ) -> None:
        self.monitor = monitor
        self.link_check = link_check
        self.health_check = health_check
        self.interval_sec = interval_sec
        self._healthy: Optional[bool] = None
        self._task: Optional[asyncio.Task] = None

    async def check_once(self) -> bool:
        online = await self._run_check(self.link_check)
        self.monitor.set_online(online)
        if not online:
            self._healthy = False
            return False
        if self.health_check is not None:
            healthy = await self._run_check(self.health_check)
            if healthy and self._healthy is False:
                self.monitor.notify_back_online()
            self._healthy = healthy
        return True

    async def _run_check(self, check: Check) -> bool:
        try:
            return bool(await check())
        except Exception as exc:
            logger.warning("Reachability check failed: %s", exc)
            return False

    async def _loop(self) -> None:
        while True:
            await self.check_once()
            await asyncio.sleep(self.interval_sec)

    def start(self) -> None:
        if self._task is not None and not self._task.done():
            return
        self._task = asyncio.get_running_loop().create_task(self._loop())

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
        self._task = None


__all__ = [
    "ConnectivityMonitor",
    "ConnectivityState",
    "EVENT_BACK_ONLINE",
    "EVENT_HIDDEN",
    "EVENT_OFFLINE",
    "EVENT_ONLINE",
    "EVENT_VISIBLE",
    "ReachabilityProbe",
    "link_check_for_url",
    "tcp_link_check",
]
