"""
Read-through (cache-aside) wrapper over a CacheBackend.

Cache failures are logged and swallowed; the backing store is always
the source of truth.
"""

import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from app.cache.base import CacheBackend, CacheUnavailableError
from app.services.metrics import get_metrics_collector

logger = logging.getLogger(__name__)


class ReadThroughCache:
    """Get-or-compute over a cache backend with JSON serialization."""

    def __init__(self, backend: CacheBackend):
        self.backend = backend

    async def get_or_compute(
        self,
        key: str,
        ttl_seconds: int,
        compute_fn: Callable[[], Awaitable[Any]],
    ) -> Any:
        """
        Return the cached value for `key`, computing and storing it on a miss.

        Args:
            key: Cache key
            ttl_seconds: Expiry for a freshly computed value
            compute_fn: Async zero-argument callable producing a JSON-serializable value

        Returns:
            The cached or freshly computed value
        """
        try:
            cached = await self.backend.get(key)
        except CacheUnavailableError as e:
            logger.warning("Cache read failed for %s, computing directly: %s", key, e)
            get_metrics_collector().record_cache_lookup("error")
            return await compute_fn()

        if cached is not None:
            try:
                value = json.loads(cached)
                get_metrics_collector().record_cache_lookup("hit")
                return value
            except ValueError:
                logger.warning("Discarding undecodable cache entry %s", key)

        get_metrics_collector().record_cache_lookup("miss")
        value = await compute_fn()

        try:
            await self.backend.set(key, json.dumps(value, default=str), ttl_seconds)
        except CacheUnavailableError as e:
            logger.warning("Cache write failed for %s: %s", key, e)

        return value

    async def invalidate(self, pattern: str) -> int:
        """
        Delete every entry matching `pattern`.

        Returns:
            Number of keys removed, 0 if the backend is unavailable
        """
        try:
            removed = await self.backend.delete_pattern(pattern)
        except CacheUnavailableError as e:
            logger.warning("Cache invalidation failed for %s: %s", pattern, e)
            return 0
        logger.debug("Invalidated %d cache entries matching %s", removed, pattern)
        return removed

    async def is_available(self) -> bool:
        """Connectivity check for health reporting."""
        try:
            return await self.backend.ping()
        except CacheUnavailableError:
            return False
