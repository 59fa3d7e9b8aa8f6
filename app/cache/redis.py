"""
Redis cache backend.
Uses the asyncio client from redis-py; connection errors surface as
CacheUnavailableError so the read-through layer can degrade.
"""

from redis import asyncio as aioredis
from redis.exceptions import RedisError

from app.cache.base import CacheBackend, CacheUnavailableError
from app.config import get_settings

settings = get_settings()


class RedisCacheBackend(CacheBackend):
    """
    Redis-backed cache.

    Values are stored as plain strings with SET ... EX. Pattern deletes
    walk the keyspace with SCAN so large namespaces never block the server.
    """

    def __init__(self, url: str | None = None, scan_count: int = 500):
        """
        Initialize Redis cache backend.

        Args:
            url: Redis connection URL. Defaults to settings.REDIS_URL
            scan_count: SCAN batch hint for pattern deletes
        """
        self.url = url or settings.REDIS_URL
        self.scan_count = scan_count
        self.client = aioredis.from_url(
            self.url,
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
        )

    async def get(self, key: str) -> str | None:
        try:
            return await self.client.get(key)
        except RedisError as e:
            raise CacheUnavailableError(f"Redis GET failed: {e}") from e

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        try:
            await self.client.set(key, value, ex=ttl_seconds)
        except RedisError as e:
            raise CacheUnavailableError(f"Redis SET failed: {e}") from e

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        try:
            return await self.client.delete(*keys)
        except RedisError as e:
            raise CacheUnavailableError(f"Redis DEL failed: {e}") from e

    async def delete_pattern(self, pattern: str) -> int:
        removed = 0
        batch: list[str] = []
        try:
            async for key in self.client.scan_iter(match=pattern, count=self.scan_count):
                batch.append(key)
                if len(batch) >= self.scan_count:
                    removed += await self.client.delete(*batch)
                    batch = []
            if batch:
                removed += await self.client.delete(*batch)
        except RedisError as e:
            raise CacheUnavailableError(f"Redis pattern delete failed: {e}") from e
        return removed

    async def ping(self) -> bool:
        try:
            return bool(await self.client.ping())
        except RedisError:
            return False

    async def close(self) -> None:
        await self.client.aclose()
