"""JSON-backed key/value store used when the SQLite database cannot be opened."""
from __future__ import annotations

import json
import logging
import os
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional

from core.settings import FALLBACK_STORE_PATH
from datetime_utils import epoch_millis


ACTIONS_KEY = "pending_actions"

logger = logging.getLogger("custos.sync.store")


def _ensure_parent(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


class FallbackStore:
    """Small, lower-capacity store with the semantics of browser ``localStorage``.

    Every write rewrites the whole file through a temporary file and
    ``os.replace`` so a crash never leaves a half-written document behind.
    Read and write failures raise ``OSError``. A file that is not a JSON
    object is moved aside to ``<name>.corrupt-<ms>`` and the store starts
    over empty.
    """

    def __init__(self, path: Path | str | None = None):
        self.path = Path(path or FALLBACK_STORE_PATH)
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # generic helpers
    def _load(self) -> Dict[str, Any]:
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            self._quarantine(exc)
            return {}
        if isinstance(data, dict):
            return data
        self._quarantine(f"top-level {type(data).__name__}")
        return {}

    def _quarantine(self, reason: Any) -> None:
        corrupt = self.path.with_name(f"{self.path.name}.corrupt-{epoch_millis()}")
        os.replace(self.path, corrupt)
        logger.error("Fallback store %s is unreadable (%s), moved to %s", self.path, reason, corrupt)

    def _save(self, data: Dict[str, Any]) -> None:
        _ensure_parent(self.path)
        payload = json.dumps(data, ensure_ascii=False, sort_keys=True)
        tmp = self.path.with_suffix(".tmp")
        try:
            tmp.write_text(payload, encoding="utf-8")
            os.replace(tmp, self.path)
        finally:
            if tmp.exists():
                try:
                    tmp.unlink()
                except OSError:
                    pass

    # ------------------------------------------------------------------
    # key/value items
    def get_item(self, key: str) -> Optional[Any]:
        with self._lock:
            return self._load().get("items", {}).get(key)

    def set_item(self, key: str, value: Any) -> None:
        with self._lock:
            data = self._load()
            data.setdefault("items", {})[key] = value
            self._save(data)

    def remove_item(self, key: str) -> None:
        with self._lock:
            data = self._load()
            items = data.get("items", {})
            if key in items:
                items.pop(key)
                self._save(data)

    def clear_items(self, prefix: str = "") -> None:
        with self._lock:
            data = self._load()
            items = data.get("items", {})
            kept = {k: v for k, v in items.items() if not k.startswith(prefix)}
            if len(kept) != len(items):
                data["items"] = kept
                self._save(data)

    # ------------------------------------------------------------------
    # pending actions
    def append_action(self, kind: str, target: str, payload: Dict[str, Any], created_at: int) -> int:
        with self._lock:
            data = self._load()
            section = data.setdefault(ACTIONS_KEY, {"next_id": 1, "items": []})
            action_id = int(section.get("next_id") or 1)
            section.setdefault("items", []).append(
                {
                    "id": action_id,
                    "kind": kind,
                    "target": target,
                    "payload": payload,
                    "created_at": created_at,
                }
            )
            # the counter only grows, so removed ids are never handed out again
            section["next_id"] = action_id + 1
            self._save(data)
            return action_id

    def list_actions(self) -> List[Dict[str, Any]]:
        with self._lock:
            section = self._load().get(ACTIONS_KEY) or {}
            items = section.get("items") or []
            return [dict(item) for item in items if isinstance(item, dict)]

    def remove_action(self, action_id: int) -> None:
        with self._lock:
            data = self._load()
            section = data.get(ACTIONS_KEY)
            if not section:
                return
            items = section.get("items") or []
            kept = [item for item in items if item.get("id") != action_id]
            if len(kept) != len(items):
                section["items"] = kept
                self._save(data)

    def clear_actions(self) -> None:
        with self._lock:
            data = self._load()
            section = data.get(ACTIONS_KEY)
            if section and section.get("items"):
                section["items"] = []
                self._save(data)


__all__ = ["FallbackStore"]
