"""
Platform tag endpoints.
Platform tags are global; tenants see them only after a grant.
Mutations require the tags:admin scope.
"""

from fastapi import APIRouter, Query, Response, status

from app.auth.dependencies import RequireAdmin, RequireRead
from app.dependencies import Cache, DbSession, PlatformScope
from app.schemas.tag import (
    BulkTagCreateRequest,
    BulkTagCreateResponse,
    TagCategoriesResponse,
    TagCreate,
    TagFilter,
    TagGrantRequest,
    TagGrantResponse,
    TagListResponse,
    TagMove,
    TagResponse,
    TagRevokeRequest,
    TagRevokeResponse,
    TagStatsResponse,
    TagSuggestionsResponse,
    TagTreeResponse,
    TagUpdate,
)
from app.services.tag_service import TagService

router = APIRouter()


@router.get("", response_model=TagListResponse)
async def list_platform_tags(
    db: DbSession,
    cache: Cache,
    ctx: PlatformScope,
    user: RequireRead,
    search: str | None = Query(default=None, description="Substring match on name, slug, description"),
    category: str | None = Query(default=None, description="Exact category match"),
    includeInactive: bool = Query(default=False, description="Include deactivated tags"),
    page: int = Query(default=1, ge=1, description="Page number"),
    limit: int = Query(default=20, ge=1, le=100, description="Page size"),
):
    """
    List platform tags with pagination.

    Each item carries `inheritedByTenants`, the number of tenants that
    currently inherit the tag.
    """
    filters = TagFilter(
        search=search,
        category=category,
        include_inactive=includeInactive,
        page=page,
        limit=limit,
    )
    return await TagService(db, cache).list_tags(ctx, filters)


@router.post("", response_model=TagResponse, status_code=status.HTTP_201_CREATED)
async def create_platform_tag(
    data: TagCreate,
    db: DbSession,
    cache: Cache,
    ctx: PlatformScope,
    user: RequireAdmin,
):
    """Create a platform tag. Only platform tags may be marked as system tags."""
    return await TagService(db, cache).create_tag(ctx, data, created_by=user.get("user_id"))


@router.post("/bulk", response_model=BulkTagCreateResponse, status_code=status.HTTP_201_CREATED)
async def bulk_create_platform_tags(
    data: BulkTagCreateRequest,
    response: Response,
    db: DbSession,
    cache: Cache,
    ctx: PlatformScope,
    user: RequireAdmin,
):
    """
    Create many platform tags at once.

    Returns 201 when every tag was created, 207 when some failed.
    """
    result = await TagService(db, cache).bulk_create(ctx, data.tags, created_by=user.get("user_id"))
    if result.failed:
        response.status_code = status.HTTP_207_MULTI_STATUS
    return result


@router.get("/tree", response_model=TagTreeResponse)
async def get_platform_tag_tree(
    db: DbSession,
    cache: Cache,
    ctx: PlatformScope,
    user: RequireRead,
    includeInactive: bool = Query(default=False, description="Include deactivated tags"),
):
    """Platform tag hierarchy, siblings ordered by name."""
    return await TagService(db, cache).get_tree(ctx, include_inactive=includeInactive)


@router.get("/categories", response_model=TagCategoriesResponse)
async def list_platform_categories(
    db: DbSession,
    cache: Cache,
    ctx: PlatformScope,
    user: RequireRead,
):
    """Distinct categories used by active platform tags."""
    return await TagService(db, cache).list_categories(ctx)


@router.get("/stats", response_model=TagStatsResponse)
async def get_platform_tag_stats(
    db: DbSession,
    cache: Cache,
    ctx: PlatformScope,
    user: RequireRead,
):
    """Usage analytics for platform tags."""
    return await TagService(db, cache).get_stats(ctx)


@router.get("/suggestions", response_model=TagSuggestionsResponse)
async def suggest_platform_tags(
    db: DbSession,
    ctx: PlatformScope,
    user: RequireRead,
    q: str = Query(..., min_length=1, max_length=100, description="Prefix or substring of a tag name or slug"),
    limit: int = Query(default=10, ge=1, le=50, description="Maximum suggestions"),
    includeInactive: bool = Query(default=False, description="Include deactivated tags"),
):
    """Autocomplete over platform tags. Prefix matches rank first."""
    return await TagService(db).suggest_tags(ctx, q, limit=limit, include_inactive=includeInactive)


@router.get("/{tag_uuid}", response_model=TagResponse)
async def get_platform_tag(
    tag_uuid: str,
    db: DbSession,
    ctx: PlatformScope,
    user: RequireRead,
):
    """Get a platform tag by UUID."""
    return await TagService(db).get_tag(ctx, tag_uuid)


@router.patch("/{tag_uuid}", response_model=TagResponse)
async def update_platform_tag(
    tag_uuid: str,
    data: TagUpdate,
    db: DbSession,
    cache: Cache,
    ctx: PlatformScope,
    user: RequireAdmin,
):
    """Partially update a platform tag. System tags are read-only."""
    return await TagService(db, cache).update_tag(ctx, tag_uuid, data)


@router.post("/{tag_uuid}/move", response_model=TagResponse)
async def move_platform_tag(
    tag_uuid: str,
    data: TagMove,
    db: DbSession,
    cache: Cache,
    ctx: PlatformScope,
    user: RequireAdmin,
):
    """
    Reparent a platform tag. A null `parentUuid` moves it to the root.

    Rejected with 409 when the move would create a cycle and with 422
    when the subtree would exceed the maximum nesting level.
    """
    return await TagService(db, cache).move_tag(ctx, tag_uuid, data.parent_uuid, data.position)


@router.delete("/{tag_uuid}", response_model=TagResponse | None)
async def delete_platform_tag(
    tag_uuid: str,
    db: DbSession,
    cache: Cache,
    ctx: PlatformScope,
    user: RequireAdmin,
    soft: bool = Query(default=False, description="Deactivate instead of deleting"),
):
    """
    Delete a platform tag (204), or deactivate it with `?soft=true` (200).

    Tags that are in use, have children or are inherited by tenants
    cannot be hard-deleted.
    """
    result = await TagService(db, cache).delete_tag(ctx, tag_uuid, soft=soft)
    if result is None:
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    return result


@router.post("/{tag_uuid}/grant", response_model=TagGrantResponse)
async def grant_platform_tag(
    tag_uuid: str,
    data: TagGrantRequest,
    db: DbSession,
    cache: Cache,
    user: RequireAdmin,
):
    """Let tenants inherit a platform tag. Existing grants are skipped."""
    return await TagService(db, cache).grant(
        tag_uuid,
        data.tenant_ids,
        grant_to_all=data.grant_to_all,
        inherited_by=user.get("user_id"),
    )


@router.post("/{tag_uuid}/revoke", response_model=TagRevokeResponse)
async def revoke_platform_tag(
    tag_uuid: str,
    data: TagRevokeRequest,
    db: DbSession,
    cache: Cache,
    user: RequireAdmin,
):
    """Withdraw a platform tag from tenants."""
    return await TagService(db, cache).revoke(
        tag_uuid,
        data.tenant_ids,
        revoke_from_all=data.revoke_from_all,
    )
