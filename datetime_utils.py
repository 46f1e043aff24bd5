from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional


UTC = timezone.utc


def utc_now() -> datetime:
    return datetime.now(UTC)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def epoch_millis(dt: Optional[datetime] = None) -> int:
    """Milliseconds since the Unix epoch for ``dt`` (defaults to now)."""

    value = ensure_utc(dt) or utc_now()
    return int(value.timestamp() * 1000)


def from_epoch_millis(value: Optional[int]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromtimestamp(value / 1000, tz=UTC)


def to_rfc3339_utc(dt: Optional[datetime]) -> Optional[str]:
    """Serialize a datetime to RFC3339 in UTC."""

    if dt is None:
        return None
    value = ensure_utc(dt)
    if value is None:
        return None
    return value.replace(microsecond=0).isoformat().replace("+00:00", "Z")


__all__ = [
    "UTC",
    "ensure_utc",
    "epoch_millis",
    "from_epoch_millis",
    "to_rfc3339_utc",
    "utc_now",
]
