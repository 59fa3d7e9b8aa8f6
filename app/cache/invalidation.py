"""
Commit-bound cache invalidation.

Mutations queue their invalidation patterns on the database session;
the patterns are only applied once the session has committed, so a
concurrent read can never re-cache the pre-commit state.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from app.cache.read_through import ReadThroughCache

logger = logging.getLogger(__name__)

PENDING_KEY = "pending_cache_invalidations"


def defer_invalidation(session: AsyncSession, cache: ReadThroughCache, pattern: str) -> None:
    """Queue `pattern` to be invalidated on `cache` after `session` commits."""
    pending: dict[str, ReadThroughCache] = session.info.setdefault(PENDING_KEY, {})
    pending.setdefault(pattern, cache)


def has_pending_invalidations(session: AsyncSession) -> bool:
    return bool(session.info.get(PENDING_KEY))


def discard_invalidations(session: AsyncSession) -> None:
    """Forget queued patterns; used when the session rolls back."""
    session.info.pop(PENDING_KEY, None)


async def invalidate_committed(session: AsyncSession) -> int:
    """
    Apply the patterns queued on a session that has just committed.

    Returns:
        Number of cache entries removed
    """
    pending: dict[str, ReadThroughCache] = session.info.pop(PENDING_KEY, {})
    removed = 0
    for pattern, cache in pending.items():
        removed += await cache.invalidate(pattern)
    if pending:
        logger.debug("Post-commit invalidation: %d patterns, %d entries", len(pending), removed)
    return removed


async def commit_and_invalidate(session: AsyncSession) -> None:
    """Commit the session, then drop the cache entries its writes made stale."""
    await session.commit()
    await invalidate_committed(session)
