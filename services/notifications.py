"""Best-effort, permission-gated user notifications."""
from __future__ import annotations

import logging
from typing import Callable, Optional

import flet as ft


PERMISSION_DEFAULT = "default"
PERMISSION_GRANTED = "granted"
PERMISSION_DENIED = "denied"

logger = logging.getLogger("custos.sync.notifications")

Backend = Callable[[str, str], None]


class FletSnackBarBackend:
    """Shows notifications as a snack bar on a flet page."""

    def __init__(self, page: ft.Page):
        self.page = page

    def __call__(self, title: str, body: str) -> None:
        text = f"{title}\n{body}" if body else title
        snack = ft.SnackBar(content=ft.Text(text))
        self.page.overlay.append(snack)
        snack.open = True
        self.page.update()


class NotificationService:
    def __init__(
        self,
        backend: Optional[Backend] = None,
        *,
        supported: bool = True,
        permission: str = PERMISSION_DEFAULT,
        ask: Optional[Callable[[], bool]] = None,
    ) -> None:
        self.backend = backend
        self.supported = supported and backend is not None
        self.permission = permission
        self._ask = ask

    @property
    def is_enabled(self) -> bool:
        return self.supported and self.permission == PERMISSION_GRANTED

    def request_permission(self) -> bool:
        if not self.supported:
            logger.debug("Notifications not supported")
            return False
        if self.permission == PERMISSION_GRANTED:
            return True
        try:
            granted = bool(self._ask()) if self._ask else True
        except Exception:
            logger.exception("Error requesting notification permission")
            return False
        self.permission = PERMISSION_GRANTED if granted else PERMISSION_DENIED
        return granted

    def show(self, title: str, body: str = "") -> bool:
        if not self.is_enabled:
            logger.debug("Cannot show notification - not supported or not permitted: %s", title)
            return False
        try:
            self.backend(title, body)
        except Exception:
            logger.exception("Error showing notification")
            return False
        return True


__all__ = [
    "FletSnackBarBackend",
    "NotificationService",
    "PERMISSION_DEFAULT",
    "PERMISSION_DENIED",
    "PERMISSION_GRANTED",
]
