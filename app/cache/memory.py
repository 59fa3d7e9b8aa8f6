"""
In-process cache backend.
Used for development, single-process deployments and tests.
"""

import fnmatch
import time

from app.cache.base import CacheBackend


class InMemoryCacheBackend(CacheBackend):
    """
    Dictionary-backed cache with per-entry expiry.

    Expiry is checked lazily on read; expired entries are dropped
    when touched or when a pattern delete scans them.
    """

    def __init__(self, clock=time.monotonic):
        self._entries: dict[str, tuple[str, float]] = {}
        self._clock = clock

    async def get(self, key: str) -> str | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at <= self._clock():
            self._entries.pop(key, None)
            return None
        return value

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._entries[key] = (value, self._clock() + ttl_seconds)

    async def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            if self._entries.pop(key, None) is not None:
                removed += 1
        return removed

    async def delete_pattern(self, pattern: str) -> int:
        matching = [key for key in self._entries if fnmatch.fnmatchcase(key, pattern)]
        return await self.delete(*matching)

    async def ping(self) -> bool:
        return True

    def __len__(self) -> int:
        return len(self._entries)
