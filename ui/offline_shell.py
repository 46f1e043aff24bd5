# ui/offline_shell.py
from __future__ import annotations

import asyncio
import flet as ft

from core.settings import APP_NAME
from services.notifications import FletSnackBarBackend, PERMISSION_GRANTED
from services.offline_app import OfflineSyncApp


PENDING_POLL_SEC = 5


class OfflineShell:
    """Minimal desktop shell: connection banner, pending count, manual sync."""

    def __init__(self, page: ft.Page, app: OfflineSyncApp):
        self.page = page
        self.app = app
        self.page.title = APP_NAME

        self.app.notifications.backend = FletSnackBarBackend(page)
        self.app.notifications.supported = True
        self.app.notifications.permission = PERMISSION_GRANTED

        self.title = ft.Text(weight=ft.FontWeight.BOLD)
        self.subtitle = ft.Text(size=12)
        self.sync_button = ft.ElevatedButton("Sincronizar agora", on_click=self.on_sync_click)
        self.root = ft.Column([self.title, self.subtitle, self.sync_button], spacing=8)
        self._poll_task = None

    def render(self, pending: int) -> None:
        state = self.app.monitor.state
        if not state.is_online:
            self.title.value = "Você está offline"
            self.subtitle.value = "Os dados serão sincronizados quando voltar"
        elif state.was_offline:
            self.title.value = "Conexão restaurada!"
            self.subtitle.value = f"Sincronizando {pending} ações..." if pending else ""
        elif pending:
            self.title.value = "Sincronizando..."
            self.subtitle.value = f"{pending} ações pendentes"
        else:
            self.title.value = "Tudo sincronizado"
            self.subtitle.value = ""
        self.sync_button.disabled = not state.is_online or self.app.sync.is_syncing

    async def refresh(self) -> None:
        pending = await self.app.queue.count()
        self.render(pending)
        self.page.update()

    async def on_sync_click(self, e: ft.ControlEvent) -> None:
        await self.app.triggers.sync_now()
        await self.refresh()

    async def _poll(self) -> None:
        while True:
            await self.refresh()
            await asyncio.sleep(PENDING_POLL_SEC)

    async def mount(self) -> None:
        self.page.controls.clear()
        self.page.add(self.root)
        await self.app.start()
        self._poll_task = self.page.run_task(self._poll)

    def unmount(self) -> None:
        if self._poll_task:
            self._poll_task.cancel()
        self._poll_task = None
        self.app.stop()
