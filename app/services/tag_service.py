"""
Tag service - Business logic for tag operations.
Handles the tag lifecycle, hierarchy, entity tagging and cached reads.
"""

import logging
import re
from collections import Counter
from collections.abc import Sequence
from uuid import uuid4

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.cache.invalidation import defer_invalidation, has_pending_invalidations
from app.cache.keys import derive_cache_key, scope_pattern
from app.cache.read_through import ReadThroughCache
from app.config import Settings, get_settings
from app.core.exceptions import (
    CycleDetectedException,
    ForbiddenException,
    MaxDepthExceededException,
    SlugConflictException,
    SystemTagProtectedException,
    TagHasChildrenException,
    TagInheritedException,
    TagInUseException,
    TagNotFoundException,
    TaxonomyAPIException,
    ValidationException,
)
from app.models.associations import EntityTag
from app.models.tag import Tag, TagScope, utc_now
from app.schemas.tag import (
    BulkItemError,
    BulkTagCreateResponse,
    CategoryCount,
    EntitySearchRequest,
    EntitySearchResponse,
    EntitySearchResult,
    EntityTagsResponse,
    Pagination,
    TagCategoriesResponse,
    TagCreate,
    TagFilter,
    TagGrantResponse,
    TagListResponse,
    TagResponse,
    TagRevokeResponse,
    TagStatsResponse,
    TagSuggestionsResponse,
    TagTreeNode,
    TagTreeResponse,
    TagUpdate,
    TaggedEntitiesResponse,
    TaggedEntity,
)
from app.services.hierarchy import (
    build_tree,
    depth_of,
    index_children,
    subtree_height,
    would_create_cycle,
)
from app.services.inheritance import ResolvedTag, ScopeContext, TagInheritanceResolver

logger = logging.getLogger(__name__)

SLUG_PATTERN = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
TOP_TAGS_LIMIT = 10


def slugify(value: str) -> str:
    """Derive a URL-safe slug from a display name."""
    return re.sub(r"[^a-z0-9]+", "-", value.lower()).strip("-")


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


class TagService:
    """Service class for tag operations."""

    def __init__(
        self,
        db: AsyncSession,
        cache: ReadThroughCache | None = None,
        settings: Settings | None = None,
    ):
        self.db = db
        self.cache = cache
        self.settings = settings or get_settings()
        self.resolver = TagInheritanceResolver(db)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def list_tags(self, ctx: ScopeContext, filters: TagFilter) -> TagListResponse:
        """
        List tags visible in a scope with pagination.

        Results are served through the read-through cache, keyed on the
        scope and the normalized filter set.

        Args:
            ctx: Requesting scope
            filters: Search, category, inheritance and paging options

        Returns:
            Page of tags ordered by name
        """

        async def compute():
            response = await self._list_uncached(ctx, filters)
            return response.model_dump(mode="json", by_alias=True)

        data = await self._cached(ctx, "list", filters, compute)
        return TagListResponse.model_validate(data)

    async def _list_uncached(self, ctx: ScopeContext, filters: TagFilter) -> TagListResponse:
        resolved = await self.resolver.resolve(
            ctx,
            search=filters.search,
            category=filters.category,
            include_inherited=filters.include_inherited,
            include_inactive=filters.include_inactive,
        )
        resolved.sort(key=lambda r: (r.tag.name.lower(), r.tag.id))

        total = len(resolved)
        offset = (filters.page - 1) * filters.limit
        page = resolved[offset:offset + filters.limit]
        total_pages = (total + filters.limit - 1) // filters.limit if total > 0 else 0

        return TagListResponse(
            items=await self._to_responses(ctx, page),
            pagination=Pagination(
                page=filters.page,
                limit=filters.limit,
                total=total,
                total_pages=total_pages,
            ),
        )

    async def get_tag(self, ctx: ScopeContext, tag_uuid: str) -> TagResponse:
        """
        Get a single tag as seen from a scope.

        Raises:
            TagNotFoundException: If the tag is missing or not visible
        """
        resolved = await self.resolver.get_visible(ctx, tag_uuid)
        responses = await self._to_responses(ctx, [resolved])
        return responses[0]

    async def get_tree(
        self,
        ctx: ScopeContext,
        include_inherited: bool = False,
        include_inactive: bool = False,
    ) -> TagTreeResponse:
        """
        Nested hierarchy of the visible tags.

        Tags whose parent is not visible (inactive or outside the scope)
        are shown as roots. Siblings are ordered by name.
        """
        options = {"include_inherited": include_inherited, "include_inactive": include_inactive}

        async def compute():
            resolved = await self.resolver.resolve(
                ctx,
                include_inherited=include_inherited,
                include_inactive=include_inactive,
            )
            records = [r.model_dump() for r in await self._to_responses(ctx, resolved)]
            visible_ids = {record["id"] for record in records}
            for record in records:
                if record["parent_id"] not in visible_ids:
                    record["parent_id"] = None

            nodes = build_tree(records, sort_key=lambda r: (r["name"].lower(), r["id"]))
            response = TagTreeResponse(
                items=[TagTreeNode.model_validate(node) for node in nodes],
                max_depth=self.settings.TAG_MAX_DEPTH,
            )
            return response.model_dump(mode="json", by_alias=True)

        data = await self._cached(ctx, "tree", options, compute)
        return TagTreeResponse.model_validate(data)

    async def list_categories(self, ctx: ScopeContext) -> TagCategoriesResponse:
        """Distinct categories of the active tags visible in a scope."""

        async def compute():
            resolved = await self.resolver.resolve(ctx, include_inherited=True)
            categories = sorted({r.tag.category for r in resolved if r.tag.category})
            return TagCategoriesResponse(categories=categories).model_dump(mode="json")

        data = await self._cached(ctx, "categories", None, compute)
        return TagCategoriesResponse.model_validate(data)

    async def get_stats(self, ctx: ScopeContext) -> TagStatsResponse:
        """Usage analytics over the tags owned by a scope."""

        async def compute():
            tags = await self.resolver.own_tags(ctx)

            by_category = Counter(tag.category for tag in tags)
            top = sorted(
                (tag for tag in tags if tag.usage_count > 0),
                key=lambda t: (-t.usage_count, t.name.lower()),
            )[:TOP_TAGS_LIMIT]

            response = TagStatsResponse(
                total=len(tags),
                active=sum(1 for t in tags if t.is_active),
                inactive=sum(1 for t in tags if not t.is_active),
                system=sum(1 for t in tags if t.is_system),
                featured=sum(1 for t in tags if t.is_featured),
                unused=sum(1 for t in tags if t.usage_count == 0),
                total_usage=sum(t.usage_count for t in tags),
                by_category=[
                    CategoryCount(category=category, count=count)
                    for category, count in sorted(
                        by_category.items(), key=lambda item: (-item[1], item[0] or "")
                    )
                ],
                top_tags=await self._to_responses(ctx, [ResolvedTag(t) for t in top]),
            )
            return response.model_dump(mode="json", by_alias=True)

        data = await self._cached(ctx, "stats", None, compute)
        return TagStatsResponse.model_validate(data)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def create_tag(
        self,
        ctx: ScopeContext,
        data: TagCreate,
        created_by: str | None = None,
    ) -> TagResponse:
        """
        Create a tag in a scope.

        Args:
            ctx: Owning scope
            data: Tag fields; slug is derived from the name when omitted
            created_by: User ID of the creator

        Returns:
            Created tag

        Raises:
            ValidationException: Blank name, malformed slug or bad parent
            SlugConflictException: Slug already used in the scope
            MaxDepthExceededException: Parent is already at the deepest level
        """
        tag = await self._create(ctx, data, created_by)
        self._invalidate(ctx)
        return self._to_response(tag)

    async def _create(self, ctx: ScopeContext, data: TagCreate, created_by: str | None) -> Tag:
        name = _clean(data.name)
        if not name:
            raise ValidationException("Tag name must not be blank", details={"field": "name"})

        if data.slug is not None:
            slug = data.slug.strip()
            self._validate_slug(slug)
        else:
            slug = slugify(name)
            if not slug:
                raise ValidationException(
                    "Cannot derive a slug from the tag name; provide one explicitly",
                    details={"field": "slug"},
                )

        if data.is_system and not ctx.is_platform:
            raise ValidationException(
                "System tags can only be created at platform scope",
                details={"field": "isSystem"},
            )

        await self._ensure_slug_available(ctx, slug)

        parent_id = None
        if data.parent_uuid:
            parent = await self._resolve_parent(ctx, data.parent_uuid)
            parent_map = await self._parent_map(ctx)
            self._check_depth(depth_of(parent.id, parent_map.get) + 1)
            parent_id = parent.id

        now = utc_now()
        tag = Tag(
            uuid=str(uuid4()),
            name=name,
            slug=slug,
            description=_clean(data.description),
            category=_clean(data.category),
            usage_count=0,
            is_active=data.is_active,
            is_system=data.is_system,
            is_featured=data.is_featured,
            scope=ctx.scope,
            tenant_id=ctx.tenant_id,
            parent_id=parent_id,
            created_by=created_by,
            created_at=now,
            updated_at=now,
        )
        self.db.add(tag)
        await self.db.flush()

        logger.info(
            "Tag created: %s (%s) in %s by %s", tag.uuid, tag.slug, ctx.cache_scope, created_by
        )
        return tag

    async def bulk_create(
        self,
        ctx: ScopeContext,
        items: Sequence[TagCreate],
        created_by: str | None = None,
    ) -> BulkTagCreateResponse:
        """
        Create many tags; item failures are reported, not raised.

        Each item is validated before anything is written, so a failed
        item leaves no partial state behind.
        """
        created: list[Tag] = []
        errors: list[BulkItemError] = []

        for index, item in enumerate(items):
            try:
                created.append(await self._create(ctx, item, created_by))
            except TaxonomyAPIException as e:
                errors.append(
                    BulkItemError(index=index, name=item.name, error=e.error, message=e.message)
                )

        if created:
            self._invalidate(ctx)

        logger.info(
            "Bulk tag create in %s: %d created, %d failed",
            ctx.cache_scope, len(created), len(errors),
        )
        return BulkTagCreateResponse(
            created=len(created),
            failed=len(errors),
            tags=[self._to_response(tag) for tag in created],
            errors=errors,
        )

    async def update_tag(self, ctx: ScopeContext, tag_uuid: str, data: TagUpdate) -> TagResponse:
        """
        Partially update a tag. Parent changes go through move_tag.

        Raises:
            SystemTagProtectedException: If the tag is a system tag
            ForbiddenException: If a tenant edits an inherited platform tag
        """
        tag = await self._load_owned(ctx, tag_uuid)
        if tag.is_system:
            raise SystemTagProtectedException(tag_uuid, "modify")

        updates = data.model_dump(exclude_unset=True)

        if "name" in updates:
            name = _clean(updates["name"])
            if not name:
                raise ValidationException("Tag name must not be blank", details={"field": "name"})
            tag.name = name

        if updates.get("slug") is not None:
            slug = updates["slug"].strip()
            self._validate_slug(slug)
            if slug != tag.slug:
                await self._ensure_slug_available(ctx, slug, exclude_id=tag.id)
                tag.slug = slug

        if "description" in updates:
            tag.description = _clean(updates["description"])
        if "category" in updates:
            tag.category = _clean(updates["category"])
        if updates.get("is_active") is not None:
            tag.is_active = updates["is_active"]
        if updates.get("is_featured") is not None:
            tag.is_featured = updates["is_featured"]

        tag.updated_at = utc_now()
        await self.db.flush()
        self._invalidate(ctx)

        logger.info("Tag updated: %s fields=%s", tag.uuid, sorted(updates))
        return await self.get_tag(ctx, tag_uuid)

    async def move_tag(
        self,
        ctx: ScopeContext,
        tag_uuid: str,
        parent_uuid: str | None,
        position: int | None = None,
    ) -> TagResponse:
        """
        Reparent a tag (None moves it to the root).

        `position` is accepted for client compatibility but siblings are
        always ordered by name.

        Raises:
            CycleDetectedException: If the new parent is the tag or one of its descendants
            MaxDepthExceededException: If the moved subtree would exceed the depth limit
        """
        tag = await self._load_owned(ctx, tag_uuid)
        if tag.is_system:
            raise SystemTagProtectedException(tag_uuid, "move")

        parent_map = await self._parent_map(ctx)

        new_parent_id = None
        if parent_uuid is not None:
            parent = await self._resolve_parent(ctx, parent_uuid)
            new_parent_id = parent.id

        if would_create_cycle(tag.id, new_parent_id, parent_map.get):
            raise CycleDetectedException(tag_uuid, parent_uuid)

        children = index_children(parent_map)
        new_level = depth_of(new_parent_id, parent_map.get) + 1
        height = subtree_height(tag.id, lambda node_id: children.get(node_id, []))
        self._check_depth(new_level + height)

        tag.parent_id = new_parent_id
        tag.updated_at = utc_now()
        await self.db.flush()
        self._invalidate(ctx)

        logger.info("Tag moved: %s under %s", tag.uuid, parent_uuid or "root")
        return await self.get_tag(ctx, tag_uuid)

    async def delete_tag(self, ctx: ScopeContext, tag_uuid: str, soft: bool = False) -> TagResponse | None:
        """
        Delete a tag, or deactivate it when `soft` is set.

        Returns:
            The deactivated tag for a soft delete, None otherwise

        Raises:
            SystemTagProtectedException: System tags are never deleted
            TagHasChildrenException: Tag still has child tags
            TagInUseException: Tag still attached to entities (hard delete only)
            TagInheritedException: Platform tag still inherited by tenants (hard delete only)
        """
        tag = await self._load_owned(ctx, tag_uuid)
        if tag.is_system:
            raise SystemTagProtectedException(tag_uuid, "delete")

        child_count = await self._count_children(tag.id)
        if child_count:
            raise TagHasChildrenException(tag_uuid, child_count)

        if soft:
            tag.is_active = False
            tag.updated_at = utc_now()
            await self.db.flush()
            self._invalidate(ctx)
            logger.info("Tag deactivated: %s", tag.uuid)
            return await self.get_tag(ctx, tag_uuid)

        if tag.usage_count > 0:
            raise TagInUseException(tag_uuid, tag.usage_count)

        if tag.scope == TagScope.PLATFORM:
            inherited = (await self.resolver.inheritance_counts([tag.id])).get(tag.id, 0)
            if inherited:
                raise TagInheritedException(tag_uuid, inherited)

        await self.db.delete(tag)
        await self.db.flush()
        self._invalidate(ctx)

        logger.info("Tag deleted: %s (%s) from %s", tag_uuid, tag.slug, ctx.cache_scope)
        return None

    async def merge_into(self, ctx: ScopeContext, source_uuid: str, target_uuid: str) -> TagResponse:
        """
        Move every entity association from source to target, then delete source.

        Associations the target already has are dropped rather than duplicated.
        """
        if source_uuid == target_uuid:
            raise ValidationException("Cannot merge a tag into itself")

        source = await self._load_owned(ctx, source_uuid)
        target = await self._load_owned(ctx, target_uuid)
        if source.is_system:
            raise SystemTagProtectedException(source_uuid, "merge")

        child_count = await self._count_children(source.id)
        if child_count:
            raise TagHasChildrenException(source_uuid, child_count)

        if source.scope == TagScope.PLATFORM:
            inherited = (await self.resolver.inheritance_counts([source.id])).get(source.id, 0)
            if inherited:
                raise TagInheritedException(source_uuid, inherited)

        target_entities = await self.db.execute(
            select(EntityTag.entity_type, EntityTag.entity_id).where(EntityTag.tag_id == target.id)
        )
        existing = {(row.entity_type, row.entity_id) for row in target_entities.all()}

        source_links = await self.db.execute(select(EntityTag).where(EntityTag.tag_id == source.id))
        moved = 0
        for link in source_links.scalars().all():
            if (link.entity_type, link.entity_id) in existing:
                await self.db.delete(link)
                continue
            link.tag_id = target.id
            moved += 1

        target.usage_count += moved
        target.updated_at = utc_now()
        await self.db.flush()

        await self.db.delete(source)
        await self.db.flush()
        self._invalidate(ctx)

        logger.info("Tag merged: %s into %s (%d associations moved)", source_uuid, target_uuid, moved)
        return await self.get_tag(ctx, target_uuid)

    # ------------------------------------------------------------------
    # Inheritance
    # ------------------------------------------------------------------

    async def grant(
        self,
        tag_uuid: str,
        tenant_ids: Sequence[int],
        grant_to_all: bool = False,
        inherited_by: str | None = None,
    ) -> TagGrantResponse:
        """Let tenants inherit a platform tag."""
        tag = await self._load_owned(ScopeContext.platform(), tag_uuid)
        granted, skipped = await self.resolver.grant(tag, tenant_ids, inherited_by, grant_to_all)
        if granted:
            self._invalidate(ScopeContext.platform())
        return TagGrantResponse(granted=granted, skipped=skipped)

    async def revoke(
        self,
        tag_uuid: str,
        tenant_ids: Sequence[int],
        revoke_from_all: bool = False,
    ) -> TagRevokeResponse:
        """
        Withdraw a platform tag from tenants.

        Existing entity associations are left in place; the tag simply
        stops being visible for new lookups in those tenants.
        """
        tag = await self._load_owned(ScopeContext.platform(), tag_uuid)
        revoked = await self.resolver.revoke(tag, tenant_ids, revoke_from_all)
        if revoked:
            self._invalidate(ScopeContext.platform())
        return TagRevokeResponse(revoked=revoked)

    # ------------------------------------------------------------------
    # Entity tagging
    # ------------------------------------------------------------------

    async def entity_tags(self, ctx: ScopeContext, entity_type: str, entity_id: str) -> EntityTagsResponse:
        """Tags attached to an entity within a tenant."""
        query = (
            select(Tag)
            .join(EntityTag, EntityTag.tag_id == Tag.id)
            .where(
                EntityTag.entity_type == entity_type,
                EntityTag.entity_id == entity_id,
                self._entity_tenant_condition(ctx),
            )
            .order_by(Tag.name.asc())
        )
        result = await self.db.execute(query)
        resolved = [
            ResolvedTag(tag, None if ctx.owns(tag) else "platform")
            for tag in result.scalars().all()
        ]
        return EntityTagsResponse(
            entity_type=entity_type,
            entity_id=entity_id,
            tags=await self._to_responses(ctx, resolved),
        )

    async def attach(
        self,
        ctx: ScopeContext,
        entity_type: str,
        entity_id: str,
        tag_uuids: Sequence[str],
        added_by: str | None = None,
    ) -> EntityTagsResponse:
        """
        Attach visible, active tags to an entity. Existing links are kept as is.

        Raises:
            TagNotFoundException: If a tag is not visible in the scope
            ValidationException: If a tag is inactive
        """
        tags: list[Tag] = []
        for tag_uuid in dict.fromkeys(tag_uuids):
            resolved = await self.resolver.get_visible(ctx, tag_uuid)
            if not resolved.tag.is_active:
                raise ValidationException(
                    f"Tag '{tag_uuid}' is inactive and cannot be attached",
                    details={"tagId": tag_uuid},
                )
            tags.append(resolved.tag)

        existing_result = await self.db.execute(
            select(EntityTag.tag_id).where(
                EntityTag.entity_type == entity_type,
                EntityTag.entity_id == entity_id,
                EntityTag.tag_id.in_([tag.id for tag in tags]),
            )
        )
        existing = {row[0] for row in existing_result.all()}

        attached = []
        now = utc_now()
        for tag in tags:
            if tag.id in existing:
                continue
            self.db.add(
                EntityTag(
                    tag_id=tag.id,
                    entity_type=entity_type,
                    entity_id=entity_id,
                    tenant_id=ctx.tenant_id,
                    added_by=added_by,
                    added_at=now,
                )
            )
            tag.usage_count += 1
            attached.append(tag)
        await self.db.flush()

        if attached:
            self._invalidate_usage(ctx, attached)
            logger.info(
                "Attached %d tags to %s:%s in %s",
                len(attached), entity_type, entity_id, ctx.cache_scope,
            )
        return await self.entity_tags(ctx, entity_type, entity_id)

    async def detach(
        self,
        ctx: ScopeContext,
        entity_type: str,
        entity_id: str,
        tag_uuids: Sequence[str],
    ) -> EntityTagsResponse:
        """Remove tags from an entity. Unknown or unattached tags are ignored."""
        query = (
            select(EntityTag, Tag)
            .join(Tag, EntityTag.tag_id == Tag.id)
            .where(
                EntityTag.entity_type == entity_type,
                EntityTag.entity_id == entity_id,
                self._entity_tenant_condition(ctx),
                Tag.uuid.in_(list(tag_uuids)),
            )
        )
        result = await self.db.execute(query)

        detached = []
        for link, tag in result.all():
            await self.db.delete(link)
            tag.usage_count = max(0, tag.usage_count - 1)
            detached.append(tag)
        await self.db.flush()

        if detached:
            self._invalidate_usage(ctx, detached)
            logger.info(
                "Detached %d tags from %s:%s in %s",
                len(detached), entity_type, entity_id, ctx.cache_scope,
            )
        return await self.entity_tags(ctx, entity_type, entity_id)

    async def entities_by_tag(
        self,
        ctx: ScopeContext,
        tag_uuid: str,
        entity_type: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> TaggedEntitiesResponse:
        """
        Entities of the tenant carrying a tag, most recently tagged first.

        Raises:
            TagNotFoundException: If the tag is not visible in the scope
        """
        resolved = await self.resolver.get_visible(ctx, tag_uuid)
        conditions = [EntityTag.tag_id == resolved.tag.id, self._entity_tenant_condition(ctx)]
        if entity_type is not None:
            conditions.append(EntityTag.entity_type == entity_type)

        total_result = await self.db.execute(select(func.count(EntityTag.id)).where(*conditions))
        result = await self.db.execute(
            select(EntityTag)
            .where(*conditions)
            .order_by(EntityTag.added_at.desc(), EntityTag.id.desc())
            .offset(offset)
            .limit(limit)
        )
        items = [
            TaggedEntity(
                entity_type=link.entity_type,
                entity_id=link.entity_id,
                tagged_at=link.added_at,
                tagged_by=link.added_by,
            )
            for link in result.scalars().all()
        ]
        return TaggedEntitiesResponse(
            tag=(await self._to_responses(ctx, [resolved]))[0],
            items=items,
            total=total_result.scalar() or 0,
        )

    async def search_entities(self, ctx: ScopeContext, request: EntitySearchRequest) -> EntitySearchResponse:
        """
        Entities of one type matched by a set of tags.

        The relevance score is the share of requested tags attached to the
        entity. Results are ordered by relevance, then entity id.

        Raises:
            TagNotFoundException: If a requested tag is not visible in the scope
        """
        requested: dict[int, ResolvedTag] = {}
        for tag_uuid in dict.fromkeys(request.tag_uuids):
            resolved = await self.resolver.get_visible(ctx, tag_uuid)
            requested[resolved.tag.id] = resolved

        result = await self.db.execute(
            select(EntityTag.entity_id, EntityTag.tag_id).where(
                EntityTag.entity_type == request.entity_type,
                EntityTag.tag_id.in_(list(requested)),
                self._entity_tenant_condition(ctx),
            )
        )
        matched: dict[str, list[int]] = {}
        for row in result.all():
            matched.setdefault(row.entity_id, []).append(row.tag_id)

        if request.match_all:
            matched = {k: v for k, v in matched.items() if len(set(v)) == len(requested)}

        ranked = sorted(matched.items(), key=lambda kv: (-len(kv[1]), kv[0]))
        page = ranked[request.offset:request.offset + request.limit]

        tag_responses = dict(zip(requested, await self._to_responses(ctx, list(requested.values()))))
        items = [
            EntitySearchResult(
                entity_type=request.entity_type,
                entity_id=entity_id,
                tags=sorted((tag_responses[t] for t in tag_ids), key=lambda t: t.name.lower()),
                relevance_score=round(len(tag_ids) / len(requested), 4),
            )
            for entity_id, tag_ids in page
        ]
        return EntitySearchResponse(items=items, total=len(ranked))

    async def suggest_tags(
        self,
        ctx: ScopeContext,
        query: str,
        limit: int = 10,
        include_inactive: bool = False,
    ) -> TagSuggestionsResponse:
        """
        Autocomplete over the tags visible in a scope, inherited ones included.

        Name or slug prefix matches rank ahead of substring matches; ties go
        to the most used tag.
        """
        needle = query.strip().lower()
        if not needle:
            raise ValidationException("Suggestion query must not be blank", details={"field": "q"})

        candidates = await self.resolver.resolve(
            ctx, include_inherited=True, include_inactive=include_inactive
        )
        ranked: list[tuple[int, ResolvedTag]] = []
        for item in candidates:
            name, slug = item.tag.name.lower(), item.tag.slug
            if name.startswith(needle) or slug.startswith(needle):
                ranked.append((0, item))
            elif needle in name or needle in slug:
                ranked.append((1, item))
        ranked.sort(key=lambda r: (r[0], -r[1].tag.usage_count, r[1].tag.name.lower()))

        return TagSuggestionsResponse(
            query=query,
            items=await self._to_responses(ctx, [item for _, item in ranked[:limit]]),
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _load_owned(self, ctx: ScopeContext, tag_uuid: str) -> Tag:
        """Load a tag the scope may mutate."""
        resolved = await self.resolver.get_visible(ctx, tag_uuid)
        if resolved.inherited_from is not None:
            raise ForbiddenException(
                "Inherited platform tags are read-only for tenants",
                details={"tagId": tag_uuid},
            )
        return resolved.tag

    async def _resolve_parent(self, ctx: ScopeContext, parent_uuid: str) -> Tag:
        resolved = await self.resolver.get_visible(ctx, parent_uuid)
        if resolved.inherited_from is not None:
            raise ValidationException(
                "Parent tag must belong to the same scope",
                details={"parentId": parent_uuid},
            )
        return resolved.tag

    async def _parent_map(self, ctx: ScopeContext) -> dict[int, int | None]:
        """Current id -> parent_id mapping of every tag owned by the scope."""
        result = await self.db.execute(
            select(Tag.id, Tag.parent_id).where(*ctx.own_conditions())
        )
        return {row.id: row.parent_id for row in result.all()}

    async def _count_children(self, tag_id: int) -> int:
        result = await self.db.execute(select(func.count(Tag.id)).where(Tag.parent_id == tag_id))
        return result.scalar() or 0

    async def _ensure_slug_available(
        self,
        ctx: ScopeContext,
        slug: str,
        exclude_id: int | None = None,
    ) -> None:
        query = select(Tag.id).where(*ctx.own_conditions(), Tag.slug == slug)
        if exclude_id is not None:
            query = query.where(Tag.id != exclude_id)
        result = await self.db.execute(query)
        if result.first() is not None:
            raise SlugConflictException(slug, ctx.scope.value, ctx.tenant_id)

    def _validate_slug(self, slug: str) -> None:
        if not SLUG_PATTERN.match(slug):
            raise ValidationException(
                "Slug must be lowercase letters and digits separated by single hyphens",
                details={"field": "slug", "value": slug},
            )

    def _check_depth(self, level: int) -> None:
        # Levels are 0-based; the deepest allowed level is TAG_MAX_DEPTH - 1
        if level >= self.settings.TAG_MAX_DEPTH:
            raise MaxDepthExceededException(self.settings.TAG_MAX_DEPTH, level)

    def _entity_tenant_condition(self, ctx: ScopeContext):
        if ctx.tenant_id is None:
            return EntityTag.tenant_id.is_(None)
        return EntityTag.tenant_id == ctx.tenant_id

    def _to_response(
        self,
        tag: Tag,
        inherited_from: str | None = None,
        inherited_by_tenants: int | None = None,
    ) -> TagResponse:
        response = TagResponse.model_validate(tag)
        response.inherited_from = inherited_from
        response.inherited_by_tenants = inherited_by_tenants
        return response

    async def _to_responses(self, ctx: ScopeContext, resolved: Sequence[ResolvedTag]) -> list[TagResponse]:
        counts: dict[int, int] = {}
        if ctx.is_platform:
            counts = await self.resolver.inheritance_counts(r.tag.id for r in resolved)
        return [
            self._to_response(
                r.tag,
                r.inherited_from,
                counts.get(r.tag.id, 0) if ctx.is_platform else None,
            )
            for r in resolved
        ]

    async def _cached(self, ctx: ScopeContext, subkind: str, filters, compute):
        # Uncommitted writes in this session must not reach the shared cache
        if self.cache is None or has_pending_invalidations(self.db):
            return await compute()
        key = derive_cache_key(
            ctx.cache_scope, "tags", subkind, filters, prefix=self.settings.CACHE_KEY_PREFIX
        )
        return await self.cache.get_or_compute(key, self.settings.CACHE_TTL_SECONDS, compute)

    def _invalidate(self, ctx: ScopeContext) -> None:
        """Queue the cached reads a mutation in `ctx` makes stale, dropped on commit."""
        if self.cache is None:
            return
        prefix = self.settings.CACHE_KEY_PREFIX
        if ctx.is_platform:
            # Platform tags surface in every tenant that inherits them
            pattern = f"{prefix}:*:tags:*"
        else:
            pattern = scope_pattern(ctx.cache_scope, "tags", prefix)
        defer_invalidation(self.db, self.cache, pattern)

    def _invalidate_usage(self, ctx: ScopeContext, tags: Sequence[Tag]) -> None:
        if any(tag.scope == TagScope.PLATFORM for tag in tags):
            self._invalidate(ScopeContext.platform())
        else:
            self._invalidate(ctx)
