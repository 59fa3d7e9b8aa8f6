"""
Pydantic schemas for Tag request/response validation.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from app.models.tag import TagScope

CATEGORY_MAX_LENGTH = 100


class TagFilter(BaseModel):
    """
    Closed set of filters accepted by tag list queries.
    Its normalized JSON form is hashed into the list cache key.
    """

    search: str | None = None
    category: str | None = None
    include_inherited: bool = Field(default=False, alias="includeInherited")
    include_inactive: bool = Field(default=False, alias="includeInactive")
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=20, ge=1, le=100)

    model_config = ConfigDict(populate_by_name=True)


class TagCreate(BaseModel):
    """Schema for creating a tag."""

    name: str = Field(..., max_length=100)
    slug: str | None = Field(default=None, max_length=120)
    description: str | None = None
    category: str | None = Field(default=None, max_length=CATEGORY_MAX_LENGTH)
    parent_uuid: str | None = Field(default=None, alias="parentUuid")
    is_active: bool = Field(default=True, alias="isActive")
    is_system: bool = Field(default=False, alias="isSystem")
    is_featured: bool = Field(default=False, alias="isFeatured")

    model_config = ConfigDict(populate_by_name=True)


class TagUpdate(BaseModel):
    """Schema for partial tag updates. Unset fields are left untouched."""

    name: str | None = Field(default=None, max_length=100)
    slug: str | None = Field(default=None, max_length=120)
    description: str | None = None
    category: str | None = Field(default=None, max_length=CATEGORY_MAX_LENGTH)
    is_active: bool | None = Field(default=None, alias="isActive")
    is_featured: bool | None = Field(default=None, alias="isFeatured")

    model_config = ConfigDict(populate_by_name=True)


class TagMove(BaseModel):
    """Reparent request. A null parent moves the tag to the root."""

    parent_uuid: str | None = Field(default=None, alias="parentUuid")
    position: int | None = Field(default=None, ge=0)

    model_config = ConfigDict(populate_by_name=True)


class TagResponse(BaseModel):
    """Response schema for a single tag."""

    id: int
    uuid: str
    name: str
    slug: str
    description: str | None = None
    category: str | None = None
    usage_count: int = Field(alias="usageCount")
    is_active: bool = Field(alias="isActive")
    is_system: bool = Field(alias="isSystem")
    is_featured: bool = Field(alias="isFeatured")
    scope: TagScope
    tenant_id: int | None = Field(default=None, alias="tenantId")
    parent_id: int | None = Field(default=None, alias="parentId")
    inherited_from: Literal["platform"] | None = Field(default=None, alias="inheritedFrom")
    inherited_by_tenants: int | None = Field(default=None, alias="inheritedByTenants")
    created_at: datetime = Field(alias="createdAt")
    updated_at: datetime = Field(alias="updatedAt")

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
    )


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int = Field(alias="totalPages")

    model_config = ConfigDict(populate_by_name=True)


class TagListResponse(BaseModel):
    """Response schema for tag listing."""

    items: list[TagResponse]
    pagination: Pagination


class TagTreeNode(TagResponse):
    """Tag with computed hierarchy position."""

    level: int
    path: list[str]
    children: list["TagTreeNode"] | None = None


class TagTreeResponse(BaseModel):
    items: list[TagTreeNode]
    max_depth: int = Field(alias="maxDepth")

    model_config = ConfigDict(populate_by_name=True)


class TagCategoriesResponse(BaseModel):
    categories: list[str]


class CategoryCount(BaseModel):
    category: str | None
    count: int


class TagStatsResponse(BaseModel):
    """Tag analytics for a scope."""

    total: int
    active: int
    inactive: int
    system: int
    featured: int
    unused: int
    total_usage: int = Field(alias="totalUsage")
    by_category: list[CategoryCount] = Field(alias="byCategory")
    top_tags: list[TagResponse] = Field(alias="topTags")

    model_config = ConfigDict(populate_by_name=True)


class BulkTagCreateRequest(BaseModel):
    tags: list[TagCreate] = Field(..., min_length=1, max_length=1000)


class BulkItemError(BaseModel):
    index: int
    name: str | None = None
    error: str
    message: str


class BulkTagCreateResponse(BaseModel):
    created: int
    failed: int
    tags: list[TagResponse]
    errors: list[BulkItemError]


class TagGrantRequest(BaseModel):
    tenant_ids: list[int] = Field(default_factory=list, alias="tenantIds")
    grant_to_all: bool = Field(default=False, alias="grantToAll")

    model_config = ConfigDict(populate_by_name=True)


class TagGrantResponse(BaseModel):
    granted: int
    skipped: int


class TagRevokeRequest(BaseModel):
    tenant_ids: list[int] = Field(default_factory=list, alias="tenantIds")
    revoke_from_all: bool = Field(default=False, alias="revokeFromAll")

    model_config = ConfigDict(populate_by_name=True)


class TagRevokeResponse(BaseModel):
    revoked: int


class EntityTagsRequest(BaseModel):
    tag_uuids: list[str] = Field(..., min_length=1, alias="tagUuids")

    model_config = ConfigDict(populate_by_name=True)


class EntityTagsResponse(BaseModel):
    entity_type: str = Field(alias="entityType")
    entity_id: str = Field(alias="entityId")
    tags: list[TagResponse]

    model_config = ConfigDict(populate_by_name=True)


class TaggedEntity(BaseModel):
    entity_type: str = Field(alias="entityType")
    entity_id: str = Field(alias="entityId")
    tagged_at: datetime = Field(alias="taggedAt")
    tagged_by: str | None = Field(default=None, alias="taggedBy")

    model_config = ConfigDict(populate_by_name=True)


class TaggedEntitiesResponse(BaseModel):
    """Entities carrying one tag within a tenant."""

    tag: TagResponse
    items: list[TaggedEntity]
    total: int


class EntitySearchRequest(BaseModel):
    """
    Find entities of one type by the tags attached to them.
    With match_all every requested tag must be attached (AND), otherwise any one (OR).
    """

    tag_uuids: list[str] = Field(..., min_length=1, max_length=50, alias="tagUuids")
    entity_type: str = Field(..., min_length=1, max_length=100, alias="entityType")
    match_all: bool = Field(default=False, alias="matchAll")
    limit: int = Field(default=50, ge=1, le=200)
    offset: int = Field(default=0, ge=0)

    model_config = ConfigDict(populate_by_name=True)


class EntitySearchResult(BaseModel):
    entity_type: str = Field(alias="entityType")
    entity_id: str = Field(alias="entityId")
    tags: list[TagResponse]
    relevance_score: float = Field(alias="relevanceScore")

    model_config = ConfigDict(populate_by_name=True)


class EntitySearchResponse(BaseModel):
    items: list[EntitySearchResult]
    total: int


class TagSuggestionsResponse(BaseModel):
    query: str
    items: list[TagResponse]
