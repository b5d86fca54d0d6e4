"""In-memory TTL cache for supplier payloads."""

import time
from typing import Any, Optional

from app.app_types import CacheEntry, Clock
from app.domain import Supplier
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="cache")

STATIONS_KEY = "stations"


def battery_key(supplier: Supplier, real_id: str) -> str:
    """Cache key for one real battery id at one supplier."""
    return f"battery:{supplier.value}:{real_id}"


class TTLCache:
    """Key -> CacheEntry map whose entries go stale after `ttl_seconds`.

    Stale entries are evicted lazily on read. There is no size bound; the key
    space is one entry for the station batch plus one per battery.
    """

    def __init__(self, ttl_seconds: float = 10.0, clock: Clock | None = None) -> None:
        """Initialize with a TTL and an optional clock (defaults to time.monotonic)."""
        self.ttl = ttl_seconds
        self._clock = clock or time.monotonic
        self._entries: dict[str, CacheEntry] = {}

    def _fresh(self, entry: CacheEntry) -> bool:
        return self._clock() - entry.timestamp < self.ttl

    def get(self, key: str) -> Optional[Any]:
        """Return the cached payload if present and fresh, else None."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if not self._fresh(entry):
            logger.debug(f"Cache entry '{key}' expired")
            self._entries.pop(key, None)
            return None
        return entry.data

    def set(self, key: str, data: Any) -> None:
        """Store `data` under `key` stamped with the current time."""
        self._entries[key] = CacheEntry(data=data, timestamp=self._clock())

    def delete(self, key: str) -> None:
        """Drop a key if present."""
        self._entries.pop(key, None)

    def clear(self) -> None:
        """Drop every entry."""
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
