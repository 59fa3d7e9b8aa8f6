"""
Tenant tag endpoints.
Callers are confined to their own tenant unless they hold platform:admin.
Inherited platform tags are visible here but read-only.
"""

from fastapi import APIRouter, Query, Response, status

from app.auth.dependencies import RequireRead, RequireWrite
from app.dependencies import Cache, DbSession, TenantScope
from app.schemas.tag import (
    BulkTagCreateRequest,
    BulkTagCreateResponse,
    TagCategoriesResponse,
    TagCreate,
    TagFilter,
    TagListResponse,
    TagMove,
    TagResponse,
    TagStatsResponse,
    TagSuggestionsResponse,
    TagTreeResponse,
    TagUpdate,
)
from app.services.tag_service import TagService

router = APIRouter()


@router.get("", response_model=TagListResponse)
async def list_tenant_tags(
    db: DbSession,
    cache: Cache,
    ctx: TenantScope,
    user: RequireRead,
    search: str | None = Query(default=None, description="Substring match on name, slug, description"),
    category: str | None = Query(default=None, description="Exact category match"),
    includeInherited: bool = Query(default=False, description="Include inherited platform tags"),
    includeInactive: bool = Query(default=False, description="Include deactivated tags"),
    page: int = Query(default=1, ge=1, description="Page number"),
    limit: int = Query(default=20, ge=1, le=100, description="Page size"),
):
    """
    List the tenant's tags with pagination.

    With `includeInherited=true` the platform tags granted to this tenant
    are merged in and marked with `inheritedFrom: "platform"`.
    """
    filters = TagFilter(
        search=search,
        category=category,
        include_inherited=includeInherited,
        include_inactive=includeInactive,
        page=page,
        limit=limit,
    )
    return await TagService(db, cache).list_tags(ctx, filters)


@router.post("", response_model=TagResponse, status_code=status.HTTP_201_CREATED)
async def create_tenant_tag(
    data: TagCreate,
    db: DbSession,
    cache: Cache,
    ctx: TenantScope,
    user: RequireWrite,
):
    """Create a tag owned by the tenant."""
    return await TagService(db, cache).create_tag(ctx, data, created_by=user.get("user_id"))


@router.post("/bulk", response_model=BulkTagCreateResponse, status_code=status.HTTP_201_CREATED)
async def bulk_create_tenant_tags(
    data: BulkTagCreateRequest,
    response: Response,
    db: DbSession,
    cache: Cache,
    ctx: TenantScope,
    user: RequireWrite,
):
    """Create many tenant tags at once. Partial failures answer 207."""
    result = await TagService(db, cache).bulk_create(ctx, data.tags, created_by=user.get("user_id"))
    if result.failed:
        response.status_code = status.HTTP_207_MULTI_STATUS
    return result


@router.get("/tree", response_model=TagTreeResponse)
async def get_tenant_tag_tree(
    db: DbSession,
    cache: Cache,
    ctx: TenantScope,
    user: RequireRead,
    includeInherited: bool = Query(default=False, description="Include inherited platform tags"),
    includeInactive: bool = Query(default=False, description="Include deactivated tags"),
):
    """Tenant tag hierarchy, optionally with inherited platform tags."""
    return await TagService(db, cache).get_tree(
        ctx,
        include_inherited=includeInherited,
        include_inactive=includeInactive,
    )


@router.get("/categories", response_model=TagCategoriesResponse)
async def list_tenant_categories(
    db: DbSession,
    cache: Cache,
    ctx: TenantScope,
    user: RequireRead,
):
    """Distinct categories across own and inherited active tags."""
    return await TagService(db, cache).list_categories(ctx)


@router.get("/stats", response_model=TagStatsResponse)
async def get_tenant_tag_stats(
    db: DbSession,
    cache: Cache,
    ctx: TenantScope,
    user: RequireRead,
):
    """Usage analytics for the tenant's own tags."""
    return await TagService(db, cache).get_stats(ctx)


@router.get("/suggestions", response_model=TagSuggestionsResponse)
async def suggest_tenant_tags(
    db: DbSession,
    ctx: TenantScope,
    user: RequireRead,
    q: str = Query(..., min_length=1, max_length=100, description="Prefix or substring of a tag name or slug"),
    limit: int = Query(default=10, ge=1, le=50, description="Maximum suggestions"),
    includeInactive: bool = Query(default=False, description="Include deactivated tags"),
):
    """Autocomplete over own and inherited tags. Prefix matches rank first."""
    return await TagService(db).suggest_tags(ctx, q, limit=limit, include_inactive=includeInactive)


@router.get("/{tag_uuid}", response_model=TagResponse)
async def get_tenant_tag(
    tag_uuid: str,
    db: DbSession,
    ctx: TenantScope,
    user: RequireRead,
):
    """
    Get a tag visible to the tenant.

    Platform tags not granted to this tenant answer 404.
    """
    return await TagService(db).get_tag(ctx, tag_uuid)


@router.patch("/{tag_uuid}", response_model=TagResponse)
async def update_tenant_tag(
    tag_uuid: str,
    data: TagUpdate,
    db: DbSession,
    cache: Cache,
    ctx: TenantScope,
    user: RequireWrite,
):
    """Partially update a tenant tag."""
    return await TagService(db, cache).update_tag(ctx, tag_uuid, data)


@router.post("/{tag_uuid}/move", response_model=TagResponse)
async def move_tenant_tag(
    tag_uuid: str,
    data: TagMove,
    db: DbSession,
    cache: Cache,
    ctx: TenantScope,
    user: RequireWrite,
):
    """Reparent a tenant tag within the tenant's hierarchy."""
    return await TagService(db, cache).move_tag(ctx, tag_uuid, data.parent_uuid, data.position)


@router.delete("/{tag_uuid}", response_model=TagResponse | None)
async def delete_tenant_tag(
    tag_uuid: str,
    db: DbSession,
    cache: Cache,
    ctx: TenantScope,
    user: RequireWrite,
    soft: bool = Query(default=False, description="Deactivate instead of deleting"),
):
    """Delete a tenant tag (204), or deactivate it with `?soft=true` (200)."""
    result = await TagService(db, cache).delete_tag(ctx, tag_uuid, soft=soft)
    if result is None:
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    return result
