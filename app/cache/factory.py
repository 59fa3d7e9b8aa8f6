"""
Cache backend factory.
Provides configuration-driven backend selection.
"""

from functools import lru_cache

from app.cache.base import CacheBackend
from app.cache.memory import InMemoryCacheBackend
from app.cache.read_through import ReadThroughCache
from app.config import get_settings

settings = get_settings()


@lru_cache
def get_cache_backend() -> CacheBackend:
    """
    Get the configured cache backend.

    Uses LRU cache to ensure only one instance is created.
    Backend selection is based on the CACHE_BACKEND setting.

    Raises:
        ValueError: If an unknown cache backend is configured
    """
    backend = settings.CACHE_BACKEND.lower()

    if backend == "memory":
        return InMemoryCacheBackend()
    elif backend == "redis":
        from app.cache.redis import RedisCacheBackend

        return RedisCacheBackend()
    else:
        raise ValueError(f"Unknown cache backend: {backend}")


def get_cache() -> ReadThroughCache:
    """
    Dependency function for FastAPI.

    Usage:
        @app.get("/tags")
        async def list_tags(cache: ReadThroughCache = Depends(get_cache)):
            ...
    """
    return ReadThroughCache(get_cache_backend())
