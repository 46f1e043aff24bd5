"""Centralized application configuration."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional
import os
import sys


def get_default_data_dir(
    app_name: str,
    *,
    platform: Optional[str] = None,
    env: Optional[Mapping[str, str]] = None,
    home: Optional[Path] = None,
) -> Path:
    """Return an OS-specific user data directory for ``app_name``.

    ``CUSTOS_DATA_DIR`` in the environment overrides the platform default.
    """

    platform_id = (platform or sys.platform).lower()
    environ = dict(os.environ if env is None else env)
    override = environ.get("CUSTOS_DATA_DIR")
    if override:
        return Path(override).expanduser()

    home_dir = Path(home or Path.home())
    sanitized = app_name.strip() or "app"
    sanitized = sanitized.replace("/", "-").replace("\\", "-")

    if platform_id.startswith("win"):
        base = Path(environ.get("APPDATA") or home_dir / "AppData" / "Roaming")
    elif platform_id == "darwin":
        base = Path(environ.get("APPDATA") or home_dir / "Library" / "Application Support")
    else:
        base = Path(environ.get("XDG_DATA_HOME") or home_dir / ".local" / "share")

    return (base.expanduser() / sanitized)


APP_NAME = "CustosGourmet"


DATA_DIR = get_default_data_dir(APP_NAME)
LOG_DIR = DATA_DIR / "logs"

for _dir in (DATA_DIR, LOG_DIR):
    _dir.mkdir(parents=True, exist_ok=True)


DB_PATH = DATA_DIR / "offline.db"
FALLBACK_STORE_PATH = DATA_DIR / "offline_fallback.json"
SYNC_LOG_PATH = LOG_DIR / "sync.log"


ALLOWED_TABLES: tuple[str, ...] = (
    "sales",
    "products",
    "ingredients",
    "customers",
    "fixed-costs",
    "productions",
    "recipes",
    "stock-movements",
    "cash-movements",
    "settings",
    "intermediate-recipes",
)


@dataclass(frozen=True)
class OfflineSyncSettings:
    enabled: bool = True
    settle_delay_sec: float = 2.0
    reconnect_display_sec: float = 3.0
    entry_timeout_sec: Optional[float] = 30.0
    probe_interval_sec: float = 5.0
    failure_warning_threshold: int = 5
    cache_ttl_minutes: int = 60
    allowed_tables: tuple[str, ...] = ALLOWED_TABLES


OFFLINE_SYNC = OfflineSyncSettings()


@dataclass(frozen=True)
class BackingStoreSettings:
    url: str = field(default_factory=lambda: os.environ.get("CUSTOS_SUPABASE_URL", ""))
    api_key: str = field(default_factory=lambda: os.environ.get("CUSTOS_SUPABASE_KEY", ""))
    schema: str = "public"
    # below OFFLINE_SYNC.entry_timeout_sec so the transport gives up first
    request_timeout_sec: float = 20.0

    @property
    def rest_url(self) -> str:
        base = self.url.rstrip("/")
        if not base:
            return ""
        return base if base.endswith("/rest/v1") else f"{base}/rest/v1"


BACKING_STORE = BackingStoreSettings()


__all__ = [
    "APP_NAME",
    "DATA_DIR",
    "LOG_DIR",
    "DB_PATH",
    "FALLBACK_STORE_PATH",
    "SYNC_LOG_PATH",
    "ALLOWED_TABLES",
    "OFFLINE_SYNC",
    "BACKING_STORE",
    "get_default_data_dir",
]
