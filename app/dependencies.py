"""
FastAPI dependency injection functions.
Provides common dependencies used across endpoints.
"""

from typing import Annotated

from fastapi import Depends, Path
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import CurrentUser
from app.auth.permissions import check_tenant_access
from app.cache import ReadThroughCache, get_cache
from app.db.session import get_db
from app.services.inheritance import ScopeContext
from app.services.orchestrator import WorkflowOrchestrator, get_orchestrator


# Type aliases for cleaner endpoint signatures
DbSession = Annotated[AsyncSession, Depends(get_db)]
Cache = Annotated[ReadThroughCache, Depends(get_cache)]
Orchestrator = Annotated[WorkflowOrchestrator, Depends(get_orchestrator)]


async def get_tenant_scope(
    tenant_id: Annotated[int, Path(ge=1, description="Tenant ID")],
    user: CurrentUser,
) -> ScopeContext:
    """
    Resolve the tenant scope of a request.

    Raises:
        ForbiddenException: If the caller belongs to another tenant
    """
    check_tenant_access(user, tenant_id)
    return ScopeContext.tenant(tenant_id)


def get_platform_scope() -> ScopeContext:
    return ScopeContext.platform()


TenantScope = Annotated[ScopeContext, Depends(get_tenant_scope)]
PlatformScope = Annotated[ScopeContext, Depends(get_platform_scope)]
