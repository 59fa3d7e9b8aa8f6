"""
Health and metrics endpoints.
No authentication required.
"""

import logging

from fastapi import APIRouter
from fastapi.responses import PlainTextResponse
from sqlalchemy import func, select, text
from sqlalchemy.exc import SQLAlchemyError

from app.config import get_settings
from app.dependencies import Cache, DbSession
from app.db.session import is_using_sqlite_fallback
from app.models.tag import Tag, TagScope
from app.services.metrics import format_gauge, get_metrics_collector

logger = logging.getLogger(__name__)
router = APIRouter()
settings = get_settings()


async def _tag_counts(db: DbSession) -> dict[str, int]:
    result = await db.execute(select(Tag.scope, func.count(Tag.id)).group_by(Tag.scope))
    counts = {scope.value: 0 for scope in TagScope}
    for scope, count in result.all():
        counts[scope.value] = count
    return counts


@router.get("/health")
async def health_check(db: DbSession, cache: Cache):
    """
    Service health check endpoint.

    Returns:
        {"status": "ok"} when service is healthy
        {"status": "degraded", "issues": [...]} when a dependency is down
    """
    issues = []
    warnings = []

    if is_using_sqlite_fallback():
        warnings.append("Using SQLite dev fallback - PostgreSQL not available")

    try:
        await db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error("Health check database failure: %s", e)
        issues.append(f"Database: {str(e)}")

    if not await cache.is_available():
        issues.append(f"Cache: {settings.CACHE_BACKEND} backend unreachable")

    if issues:
        return {
            "status": "degraded",
            "issues": issues,
        }

    response = {
        "status": "ok",
        "database": "sqlite (dev fallback)" if is_using_sqlite_fallback() else "postgresql",
        "cache": settings.CACHE_BACKEND,
        "orchestrator": settings.ORCHESTRATOR_BACKEND,
    }

    if warnings:
        response["warnings"] = warnings

    return response


@router.get("/metrics")
async def metrics(db: DbSession):
    """
    Metrics as JSON: request counts, response times, error rates,
    cache hit ratio and tag counts per scope.
    """
    metrics_data = get_metrics_collector().get_metrics()

    try:
        metrics_data["tags"] = await _tag_counts(db)
    except SQLAlchemyError as e:
        logger.warning("Could not count tags for metrics: %s", e)
        metrics_data["tags"] = None

    return metrics_data


@router.get("/metrics/prometheus", response_class=PlainTextResponse)
async def metrics_prometheus(db: DbSession):
    """
    Prometheus text exposition format endpoint.
    Compatible with Prometheus scraping.
    """
    text_output = get_metrics_collector().to_prometheus()

    try:
        text_output += format_gauge("tags_total", "Number of tags by scope", await _tag_counts(db))
    except SQLAlchemyError as e:
        logger.warning("Could not count tags for metrics: %s", e)

    return PlainTextResponse(
        content=text_output,
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )
