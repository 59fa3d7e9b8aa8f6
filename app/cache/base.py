"""
Abstract cache backend interface.
Defines the contract for all key-value cache implementations.
"""

from abc import ABC, abstractmethod


class CacheUnavailableError(Exception):
    """Raised by backends when the cache store cannot be reached."""


class CacheBackend(ABC):
    """
    Abstract base class for cache backends.

    All cache implementations (in-memory, Redis) must implement these
    methods. The cache is never a source of truth: any method may raise
    CacheUnavailableError and callers are expected to degrade gracefully.
    """

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """
        Read a serialized value.

        Args:
            key: Cache key

        Returns:
            The stored string, or None on a miss or expired entry

        Raises:
            CacheUnavailableError: If the backend cannot be reached
        """
        pass

    @abstractmethod
    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        """
        Store a serialized value with an expiry.

        Args:
            key: Cache key
            value: Serialized value
            ttl_seconds: Time to live in seconds

        Raises:
            CacheUnavailableError: If the backend cannot be reached
        """
        pass

    @abstractmethod
    async def delete(self, *keys: str) -> int:
        """
        Delete specific keys.

        Returns:
            Number of keys removed
        """
        pass

    @abstractmethod
    async def delete_pattern(self, pattern: str) -> int:
        """
        Delete every key matching a glob-style pattern (e.g. "cache:tenant:7:tags:*").

        Returns:
            Number of keys removed
        """
        pass

    @abstractmethod
    async def ping(self) -> bool:
        """Check backend connectivity."""
        pass

    async def close(self) -> None:
        """Release backend resources. No-op by default."""
        return None
