"""Command line entry point for the offline sync service.

Usage:
    python main.py run          # probe connectivity and replay queued actions
    python main.py sync         # one drain run, prints the counts
    python main.py status       # queue and connectivity status as JSON
    python main.py clear-cache  # drop cached offline datasets
    python main.py ui           # desktop status window
"""
import argparse
import asyncio
import json
import logging
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from services.offline_app import build_app

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(name)s %(levelname)s %(message)s",
)
logger = logging.getLogger(__name__)


async def _run_forever() -> None:
    app = build_app()
    await app.start()
    logger.info("Offline sync running. Press Ctrl+C to stop.")
    try:
        await asyncio.Event().wait()
    finally:
        app.stop()


async def _sync_once() -> None:
    app = build_app()
    if app.probe is not None:
        await app.probe.check_once()
    result = await app.sync.run()
    print(f"{result.success} synced, {result.failed} failed")


async def _status() -> None:
    app = build_app(with_probe=False)
    print(json.dumps(await app.sync.status(), indent=2, ensure_ascii=False))


async def _clear_cache() -> None:
    app = build_app(with_probe=False)
    await app.cache.clear_all()
    print("Offline cache cleared.")


def _run_ui() -> None:
    import flet as ft

    from ui.offline_shell import OfflineShell

    async def main(page: ft.Page):
        shell = OfflineShell(page, build_app())
        await shell.mount()

    ft.app(target=main)


def main() -> None:
    parser = argparse.ArgumentParser(description="Replay offline actions against the backing store.")
    parser.add_argument(
        "command",
        nargs="?",
        default="run",
        choices=("run", "sync", "status", "clear-cache", "ui"),
    )
    args = parser.parse_args()

    if args.command == "ui":
        _run_ui()
        return
    commands = {
        "run": _run_forever,
        "sync": _sync_once,
        "status": _status,
        "clear-cache": _clear_cache,
    }
    try:
        asyncio.run(commands[args.command]())
    except KeyboardInterrupt:
        logger.info("Shutting down...")


if __name__ == "__main__":
    main()
