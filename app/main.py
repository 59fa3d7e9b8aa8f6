"""
Marketplace Tag Taxonomy API - Main Application Entry Point.

FastAPI application serving the platform/tenant tag taxonomy, entity
tagging, bulk tag operations and workflow submission.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app import __version__
from app.config import get_settings
from app.core.exceptions import TaxonomyAPIException
from app.core.responses import create_error_response
from app.schemas.error import ValidationErrorDetail
from app.api.v1.router import api_router
from app.cache import get_cache_backend
from app.services.metrics import MetricsMiddleware

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.
    Handles startup and shutdown events.
    """
    logger.info("Starting %s", settings.PROJECT_NAME)
    logger.info("Cache backend: %s", settings.CACHE_BACKEND)
    logger.info("Orchestrator backend: %s", settings.ORCHESTRATOR_BACKEND)
    logger.info("Debug mode: %s", settings.DEBUG)
    logger.info("Dev mode (bypass auth): %s", settings.DEV_MODE)

    from app.db.session import engine, is_using_sqlite_fallback

    if is_using_sqlite_fallback():
        logger.warning("[DEV MODE] Using SQLite fallback database")
        logger.info("Creating SQLite development tables...")
        from app.db.base import Base
        # Import all models to register them
        import app.models  # noqa: F401
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Development database ready")
    else:
        logger.info("Database: PostgreSQL")

    yield

    logger.info("Shutting down %s", settings.PROJECT_NAME)
    await get_cache_backend().close()


app = FastAPI(
    title=settings.PROJECT_NAME,
    description="""
## Marketplace Tag Taxonomy API

Hierarchical tag taxonomy for a multi-tenant marketplace.

### Features
- **Two-tier scopes**: global platform tags and per-tenant tags
- **Explicit inheritance**: tenants opt into platform tags through grants
- **Hierarchy**: parent/child tags with cycle and depth protection
- **Entity tagging**: attach tags to any marketplace entity
- **Bulk operations**: pausable, retryable batch actions over tags
- **Workflows**: submit long-running jobs to the orchestrator
    """,
    version=__version__,
    openapi_tags=[
        {"name": "platform-tags", "description": "Global tag management"},
        {"name": "tenant-tags", "description": "Tenant tag management"},
        {"name": "entity-tags", "description": "Tagging of marketplace entities"},
        {"name": "bulk-operations", "description": "Batch tag actions"},
        {"name": "workflows", "description": "Workflow execution"},
        {"name": "health", "description": "Service health checks"},
    ],
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(MetricsMiddleware)


@app.exception_handler(TaxonomyAPIException)
async def taxonomy_exception_handler(request: Request, exc: TaxonomyAPIException) -> JSONResponse:
    """Render domain errors as {"error", "message", "details"}."""
    if exc.status_code >= 500:
        logger.error("%s %s -> %s: %s", request.method, request.url.path, exc.error, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(),
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed requests answer 400 with the same error envelope."""
    return create_error_response(
        error="validation_failed",
        message="Request validation failed",
        status_code=400,
        details={"errors": jsonable_errors(exc)},
    )


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    return [
        ValidationErrorDetail(
            loc=list(err.get("loc", ())),
            msg=str(err.get("msg", "")),
            type=str(err.get("type", "")),
        ).model_dump()
        for err in exc.errors()
    ]


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Catch-all exception handler for unexpected errors.
    Logs the full error but returns a sanitized response.
    """
    logger.exception("Unexpected error: %s", exc)
    return create_error_response(
        error="internal_error",
        message="An unexpected error occurred",
        status_code=500,
    )


app.include_router(api_router, prefix=settings.API_V1_PREFIX)


@app.get("/", include_in_schema=False)
async def root():
    """Service index."""
    return {
        "name": settings.PROJECT_NAME,
        "version": __version__,
        "docs": "/docs",
        "openapi": "/openapi.json",
        "api": settings.API_V1_PREFIX,
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
    )
