"""
API v1 Router - Aggregates all v1 endpoints.
Base Path: /api/v1
"""

from fastapi import APIRouter

from app.api.v1 import bulk_operations, entity_tags, health, platform_tags, tenant_tags, workflows
from app.schemas.error import ErrorResponse, ValidationErrorResponse

ERROR_RESPONSES = {
    400: {"model": ValidationErrorResponse, "description": "Validation failed"},
    401: {"model": ErrorResponse, "description": "Missing or invalid token"},
    403: {"model": ErrorResponse, "description": "Forbidden or protected"},
    404: {"model": ErrorResponse, "description": "Not found or not visible"},
    409: {"model": ErrorResponse, "description": "Conflict with current state"},
}

api_router = APIRouter()

# Include endpoint routers
api_router.include_router(health.router, tags=["health"])
api_router.include_router(
    platform_tags.router,
    prefix="/platform/tags",
    tags=["platform-tags"],
    responses=ERROR_RESPONSES,
)
api_router.include_router(
    tenant_tags.router,
    prefix="/tenants/{tenant_id}/tags",
    tags=["tenant-tags"],
    responses=ERROR_RESPONSES,
)
api_router.include_router(
    entity_tags.router,
    prefix="/tenants/{tenant_id}/entities/{entity_type}/{entity_id}/tags",
    tags=["entity-tags"],
    responses=ERROR_RESPONSES,
)
api_router.include_router(
    entity_tags.lookup_router,
    prefix="/tenants/{tenant_id}",
    tags=["entity-tags"],
    responses=ERROR_RESPONSES,
)
api_router.include_router(
    bulk_operations.router,
    prefix="/bulk-operations",
    tags=["bulk-operations"],
    responses=ERROR_RESPONSES,
)
api_router.include_router(
    workflows.router,
    prefix="/tenants/{tenant_id}/workflows/executions",
    tags=["workflows"],
    responses={**ERROR_RESPONSES, 503: {"model": ErrorResponse, "description": "Orchestrator unavailable"}},
)
