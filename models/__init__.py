"""ORM models used by the offline sync layer."""
from .cached_data import CachedData
from .pending_action import PendingAction

__all__ = ["CachedData", "PendingAction"]
