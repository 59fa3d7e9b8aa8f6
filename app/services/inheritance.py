"""
Scope inheritance resolver.

Two tiers: platform tags are global, tenant tags belong to one tenant.
A tenant sees its own tags plus the platform tags it has explicitly
inherited through a TagInheritance marker, and nothing else.
"""

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Literal

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import TagNotFoundException, ValidationException
from app.models.associations import TagInheritance
from app.models.tag import Tag, TagScope

logger = logging.getLogger(__name__)

TENANT_TARGET = "tenant"


@dataclass(frozen=True)
class ScopeContext:
    """The scope a request operates in."""

    scope: TagScope
    tenant_id: int | None = None

    @classmethod
    def platform(cls) -> "ScopeContext":
        return cls(TagScope.PLATFORM, None)

    @classmethod
    def tenant(cls, tenant_id: int) -> "ScopeContext":
        return cls(TagScope.TENANT, tenant_id)

    @property
    def is_platform(self) -> bool:
        return self.scope == TagScope.PLATFORM

    @property
    def cache_scope(self) -> str:
        """Scope segment used in cache keys."""
        if self.is_platform:
            return "platform"
        return f"tenant:{self.tenant_id}"

    def owns(self, tag: Tag) -> bool:
        return tag.scope == self.scope and tag.tenant_id == self.tenant_id

    def own_conditions(self) -> list:
        """SQL conditions selecting tags owned by this scope."""
        if self.is_platform:
            return [Tag.scope == TagScope.PLATFORM, Tag.tenant_id.is_(None)]
        return [Tag.scope == TagScope.TENANT, Tag.tenant_id == self.tenant_id]


@dataclass
class ResolvedTag:
    """A visible tag annotated with where it came from."""

    tag: Tag
    inherited_from: Literal["platform"] | None = None


def merge_scoped_tags(own: Iterable[Tag], inherited: Iterable[Tag]) -> list[ResolvedTag]:
    """
    Merge own and inherited tags, de-duplicating by identity.

    Own records win when a tag appears in both sets. Tags sharing a name
    but not an identity are kept as distinct entries.
    """
    merged: dict[int, ResolvedTag] = {}
    for tag in own:
        merged[tag.id] = ResolvedTag(tag, None)
    for tag in inherited:
        if tag.id not in merged:
            merged[tag.id] = ResolvedTag(tag, "platform")
    return list(merged.values())


def apply_filters(
    resolved: Iterable[ResolvedTag],
    search: str | None = None,
    category: str | None = None,
    include_inactive: bool = False,
) -> list[ResolvedTag]:
    """Case-insensitive substring search over name/slug/description, exact category match."""
    needle = search.strip().lower() if search and search.strip() else None
    results = []
    for item in resolved:
        tag = item.tag
        if not include_inactive and not tag.is_active:
            continue
        if category is not None and tag.category != category:
            continue
        if needle is not None:
            haystacks = (tag.name, tag.slug, tag.description or "")
            if not any(needle in h.lower() for h in haystacks):
                continue
        results.append(item)
    return results


class TagInheritanceResolver:
    """Resolves which tags are visible in a scope and manages inheritance markers."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def own_tags(self, ctx: ScopeContext) -> Sequence[Tag]:
        query = select(Tag).where(*ctx.own_conditions()).order_by(Tag.name.asc(), Tag.id.asc())
        result = await self.db.execute(query)
        return result.scalars().all()

    async def inherited_tags(self, tenant_id: int) -> Sequence[Tag]:
        """Platform tags explicitly inherited by a tenant."""
        query = (
            select(Tag)
            .join(TagInheritance, TagInheritance.source_tag_id == Tag.id)
            .where(
                Tag.scope == TagScope.PLATFORM,
                TagInheritance.target_scope == TENANT_TARGET,
                TagInheritance.target_tenant_id == tenant_id,
            )
            .order_by(Tag.name.asc(), Tag.id.asc())
        )
        result = await self.db.execute(query)
        return result.scalars().all()

    async def resolve(
        self,
        ctx: ScopeContext,
        search: str | None = None,
        category: str | None = None,
        include_inherited: bool = False,
        include_inactive: bool = False,
    ) -> list[ResolvedTag]:
        """
        Tags visible in a scope.

        Args:
            ctx: Requesting scope
            search: Substring matched against name, slug and description
            category: Exact category match
            include_inherited: Add platform tags the tenant opted into
            include_inactive: Keep deactivated tags

        Returns:
            Resolved tags annotated with their inheritance provenance
        """
        own = await self.own_tags(ctx)
        inherited: Sequence[Tag] = []
        if include_inherited and not ctx.is_platform:
            inherited = await self.inherited_tags(ctx.tenant_id)

        merged = merge_scoped_tags(own, inherited)
        return apply_filters(merged, search, category, include_inactive)

    async def get_visible(self, ctx: ScopeContext, tag_uuid: str) -> ResolvedTag:
        """
        Look up a tag by UUID as seen from a scope.

        Raises:
            TagNotFoundException: If the tag does not exist or is not visible
        """
        result = await self.db.execute(select(Tag).where(Tag.uuid == tag_uuid))
        tag = result.scalar_one_or_none()
        if tag is None:
            raise TagNotFoundException(tag_uuid)

        if ctx.owns(tag):
            return ResolvedTag(tag, None)

        if (
            not ctx.is_platform
            and tag.scope == TagScope.PLATFORM
            and await self.is_inherited_by(tag.id, ctx.tenant_id)
        ):
            return ResolvedTag(tag, "platform")

        raise TagNotFoundException(tag_uuid)

    async def is_inherited_by(self, tag_id: int, tenant_id: int) -> bool:
        query = select(TagInheritance.id).where(
            TagInheritance.source_tag_id == tag_id,
            TagInheritance.target_scope == TENANT_TARGET,
            TagInheritance.target_tenant_id == tenant_id,
        )
        result = await self.db.execute(query)
        return result.first() is not None

    async def inheritance_counts(self, tag_ids: Iterable[int]) -> dict[int, int]:
        """Number of inheriting tenants per platform tag."""
        ids = list(tag_ids)
        if not ids:
            return {}
        query = (
            select(TagInheritance.source_tag_id, func.count(TagInheritance.id))
            .where(TagInheritance.source_tag_id.in_(ids))
            .group_by(TagInheritance.source_tag_id)
        )
        result = await self.db.execute(query)
        return {tag_id: count for tag_id, count in result.all()}

    async def known_tenant_ids(self) -> list[int]:
        """Tenants that own tags or already inherit platform tags."""
        owners = await self.db.execute(
            select(Tag.tenant_id).where(Tag.tenant_id.is_not(None)).distinct()
        )
        inheritors = await self.db.execute(
            select(TagInheritance.target_tenant_id).distinct()
        )
        ids = {row[0] for row in owners.all()} | {row[0] for row in inheritors.all()}
        return sorted(ids)

    async def grant(
        self,
        tag: Tag,
        tenant_ids: Sequence[int],
        inherited_by: str | None = None,
        grant_to_all: bool = False,
    ) -> tuple[int, int]:
        """
        Let tenants inherit a platform tag. Existing markers are skipped.

        Returns:
            Tuple of (granted, skipped)
        """
        if tag.scope != TagScope.PLATFORM:
            raise ValidationException("Only platform tags can be inherited")

        targets = await self.known_tenant_ids() if grant_to_all else list(dict.fromkeys(tenant_ids))
        if not targets:
            if grant_to_all:
                return 0, 0
            raise ValidationException("tenantIds must not be empty unless grantToAll is set")

        existing = await self.db.execute(
            select(TagInheritance.target_tenant_id).where(
                TagInheritance.source_tag_id == tag.id,
                TagInheritance.target_scope == TENANT_TARGET,
                TagInheritance.target_tenant_id.in_(targets),
            )
        )
        existing_ids = {row[0] for row in existing.all()}
        new_ids = [tenant_id for tenant_id in targets if tenant_id not in existing_ids]

        for tenant_id in new_ids:
            self.db.add(
                TagInheritance(
                    source_tag_id=tag.id,
                    target_scope=TENANT_TARGET,
                    target_tenant_id=tenant_id,
                    inherited_by=inherited_by,
                )
            )
        await self.db.flush()

        logger.info(
            "Platform tag %s granted to tenants %s (skipped %d)",
            tag.uuid, new_ids, len(existing_ids),
        )
        return len(new_ids), len(existing_ids)

    async def revoke(
        self,
        tag: Tag,
        tenant_ids: Sequence[int],
        revoke_from_all: bool = False,
    ) -> int:
        """
        Remove inheritance markers.

        Returns:
            Number of markers removed
        """
        if not revoke_from_all and not tenant_ids:
            raise ValidationException("tenantIds must not be empty unless revokeFromAll is set")

        conditions = [
            TagInheritance.source_tag_id == tag.id,
            TagInheritance.target_scope == TENANT_TARGET,
        ]
        if not revoke_from_all:
            conditions.append(TagInheritance.target_tenant_id.in_(list(tenant_ids)))

        result = await self.db.execute(delete(TagInheritance).where(*conditions))
        await self.db.flush()

        logger.info("Platform tag %s revoked from %d tenants", tag.uuid, result.rowcount)
        return result.rowcount
