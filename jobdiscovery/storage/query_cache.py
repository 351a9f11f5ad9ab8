from __future__ import annotations

import time
from typing import Callable, Generic, TypeVar

T = TypeVar("T")


class QueryCache(Generic[T]):
    """In-process TTL cache for discovery responses, keyed by request signature.

    A ttl of zero or less disables caching.
    """

    def __init__(self, ttl_seconds: float = 30.0, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._entries: dict[str, tuple[float, T]] = {}

    def get(self, key: str) -> T | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        stored_at, value = entry
        if self.clock() - stored_at > self.ttl_seconds:
            del self._entries[key]
            return None
        return value

    def set(self, key: str, value: T) -> None:
        if self.ttl_seconds <= 0:
            return
        self._entries[key] = (self.clock(), value)
        self._evict_expired()

    def invalidate(self, key: str | None = None) -> int:
        if key is None:
            removed = len(self._entries)
            self._entries.clear()
            return removed
        return 1 if self._entries.pop(key, None) is not None else 0

    def __len__(self) -> int:
        return len(self._entries)

    def _evict_expired(self) -> None:
        now = self.clock()
        for key in [k for k, (at, _) in self._entries.items() if now - at > self.ttl_seconds]:
            del self._entries[key]
