"""
Entity tagging endpoints.
Attach tenant-visible tags to arbitrary marketplace entities
and find entities by the tags they carry.
"""

from typing import Annotated

from fastapi import APIRouter, Path, Query

from app.auth.dependencies import RequireRead, RequireWrite
from app.dependencies import Cache, DbSession, TenantScope
from app.schemas.tag import (
    EntitySearchRequest,
    EntitySearchResponse,
    EntityTagsRequest,
    EntityTagsResponse,
    TaggedEntitiesResponse,
)
from app.services.tag_service import TagService

router = APIRouter()
lookup_router = APIRouter()

EntityType = Annotated[str, Path(min_length=1, max_length=100, description="Entity kind, e.g. profile or listing")]
EntityId = Annotated[str, Path(min_length=1, max_length=100, description="Entity identifier")]


@router.get("", response_model=EntityTagsResponse)
async def get_entity_tags(
    db: DbSession,
    ctx: TenantScope,
    user: RequireRead,
    entity_type: EntityType,
    entity_id: EntityId,
):
    """Tags attached to an entity."""
    return await TagService(db).entity_tags(ctx, entity_type, entity_id)


@router.post("", response_model=EntityTagsResponse)
async def attach_entity_tags(
    data: EntityTagsRequest,
    db: DbSession,
    cache: Cache,
    ctx: TenantScope,
    user: RequireWrite,
    entity_type: EntityType,
    entity_id: EntityId,
):
    """
    Attach tags to an entity.

    Every tag must be active and visible to the tenant (own or inherited).
    Tags already attached are left as they are.
    """
    return await TagService(db, cache).attach(
        ctx, entity_type, entity_id, data.tag_uuids, added_by=user.get("user_id")
    )


@router.delete("", response_model=EntityTagsResponse)
async def detach_entity_tags(
    data: EntityTagsRequest,
    db: DbSession,
    cache: Cache,
    ctx: TenantScope,
    user: RequireWrite,
    entity_type: EntityType,
    entity_id: EntityId,
):
    """Detach tags from an entity. Tags not attached are ignored."""
    return await TagService(db, cache).detach(ctx, entity_type, entity_id, data.tag_uuids)


@lookup_router.get("/tags/{tag_uuid}/entities", response_model=TaggedEntitiesResponse)
async def list_entities_by_tag(
    tag_uuid: str,
    db: DbSession,
    ctx: TenantScope,
    user: RequireRead,
    entityType: str | None = Query(default=None, max_length=100, description="Only entities of this kind"),
    limit: int = Query(default=50, ge=1, le=200, description="Page size"),
    offset: int = Query(default=0, ge=0, description="Entities to skip"),
):
    """Entities of the tenant carrying a tag, most recently tagged first."""
    return await TagService(db).entities_by_tag(
        ctx, tag_uuid, entity_type=entityType, limit=limit, offset=offset
    )


@lookup_router.post("/entities/search", response_model=EntitySearchResponse)
async def search_entities_by_tags(
    data: EntitySearchRequest,
    db: DbSession,
    ctx: TenantScope,
    user: RequireRead,
):
    """
    Find entities of one kind by their tags.

    With matchAll every requested tag must be attached, otherwise any of
    them. relevanceScore is the share of requested tags an entity carries.
    """
    return await TagService(db).search_entities(ctx, data)
