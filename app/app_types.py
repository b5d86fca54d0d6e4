"""Shared dataclasses and lightweight types used across modules."""

from dataclasses import dataclass
from typing import Any, Callable

Clock = Callable[[], float]


@dataclass
class CacheEntry:
    """Cached payload with the monotonic time it was stored."""
    data: Any
    timestamp: float
