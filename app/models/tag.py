"""
Tag SQLAlchemy model.
Tags form a per-scope adjacency-list hierarchy via parent_id.
"""

import enum
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


def utc_now() -> datetime:
    """Current UTC time."""
    return datetime.now(timezone.utc)


class TagScope(str, enum.Enum):
    """
    Visibility boundary of a tag.
    Platform tags are global; tenant tags belong to exactly one tenant.
    """
    PLATFORM = "platform"
    TENANT = "tenant"


class Tag(Base):
    """
    Tag entity model.

    `slug` is unique within (scope, tenant_id). The partial uniqueness for
    platform tags (tenant_id IS NULL) is enforced by the service layer since
    NULLs never collide in a unique index.
    """
    __tablename__ = "tags"

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
        comment="Surrogate key used for relational joins",
    )
    uuid: Mapped[str] = mapped_column(
        String(36),
        nullable=False,
        unique=True,
        index=True,
        default=lambda: str(uuid4()),
        comment="Stable public identifier",
    )
    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        comment="Display label (non-empty)",
    )
    slug: Mapped[str] = mapped_column(
        String(120),
        nullable=False,
        index=True,
        comment="URL-safe identifier, unique within scope",
    )
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
        index=True,
        comment="Free-text classifier",
    )
    usage_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="Number of entity associations (denormalized)",
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_system: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        comment="Protected tags cannot be edited or deleted",
    )
    is_featured: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    scope: Mapped[TagScope] = mapped_column(
        Enum(TagScope),
        nullable=False,
        index=True,
    )
    tenant_id: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
        index=True,
        comment="Owning tenant, present iff scope is tenant",
    )
    parent_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("tags.id"),
        nullable=True,
        index=True,
        comment="Parent tag; NULL for roots",
    )
    created_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        onupdate=utc_now,
    )

    __table_args__ = (
        Index("ix_tags_scope_tenant_slug", "scope", "tenant_id", "slug", unique=True),
    )

    def __repr__(self) -> str:
        return f"<Tag(uuid={self.uuid}, slug={self.slug}, scope={self.scope})>"
