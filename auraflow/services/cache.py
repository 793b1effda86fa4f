"""
Daily Drop Cache - Optional bounded TTL cache behind a protocol.

Strictly an optimization: never coherent across processes and always safe to
replace with NullDailyDropCache.
"""

import time
from collections import OrderedDict
from datetime import date
from typing import Callable, Protocol

from auraflow.models.domain import DailyDropResult


def cache_key(day: date, locale: str) -> str:
    """`date:locale` key."""
    return f"{day.isoformat()}:{locale}"


class DailyDropCache(Protocol):
    """Read-through cache for Daily Drop results."""

    def get(self, key: str) -> DailyDropResult | None:
        """Cached result, or None when absent or expired."""
        ...

    def set(self, key: str, value: DailyDropResult) -> None:
        """Store a result."""
        ...


class NullDailyDropCache:
    """Cache that never holds anything."""

    def get(self, key: str) -> DailyDropResult | None:
        return None

    def set(self, key: str, value: DailyDropResult) -> None:
        return None


class TTLDailyDropCache:
    """
    In-process LRU cache with a per-entry time-to-live.

    Expired entries are dropped on read; the oldest entry is evicted once
    max_entries is exceeded.
    """

    def __init__(
        self,
        ttl_seconds: float,
        max_entries: int,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be positive: {ttl_seconds}")
        if max_entries < 1:
            raise ValueError(f"max_entries must be at least 1: {max_entries}")
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self.clock = clock
        self._entries: OrderedDict[str, tuple[float, DailyDropResult]] = OrderedDict()

    def get(self, key: str) -> DailyDropResult | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if self.clock() >= expires_at:
            del self._entries[key]
            return None
        self._entries.move_to_end(key)
        return value

    def set(self, key: str, value: DailyDropResult) -> None:
        self._entries[key] = (self.clock() + self.ttl_seconds, value)
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)

    def __len__(self) -> int:
        return len(self._entries)
