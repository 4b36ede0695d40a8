"""In-memory response cache with a fixed TTL and a stale window."""

from __future__ import annotations

import time
from typing import Any, Callable, Optional

from .metrics import CACHE


class Entry:
    __slots__ = ("value", "stored", "expires")

    def __init__(self, value: Any, stored: float, ttl: float) -> None:
        self.value = value
        self.stored = stored
        self.expires = stored + ttl


class ResponseCache:
    """Key/value store whose entries go stale after ``ttl`` seconds.

    Expired entries are not evicted eagerly: ``get`` treats them as a miss but
    keeps the value around so ``get_stale`` can still serve it when a refresh
    fails, until ``stale_for`` seconds have passed since it was stored.
    """

    def __init__(
        self,
        ttl: float = 30.0,
        stale_for: float = 3600.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl = ttl
        self.stale_for = max(stale_for, ttl)
        self._clock = clock
        self._entries: dict[str, Entry] = {}

    def get(self, key: str, default: Any = None) -> Any:
        entry = self._entries.get(key)
        if entry is None or self._clock() >= entry.expires:
            CACHE.labels("miss").inc()
            return default
        CACHE.labels("hit").inc()
        return entry.value

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        self._entries[key] = Entry(value, self._clock(), self.ttl if ttl is None else ttl)

    def get_stale(self, key: str, default: Any = None) -> Any:
        entry = self._entries.get(key)
        if entry is None:
            return default
        if self._clock() - entry.stored >= self.stale_for:
            del self._entries[key]
            return default
        CACHE.labels("stale").inc()
        return entry.value

    def __len__(self) -> int:
        return len(self._entries)
