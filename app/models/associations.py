"""
Association models linking tags to entities and to inheriting tenants.
"""

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base
from app.models.tag import utc_now


class EntityTag(Base):
    """
    Attachment of a tag to an arbitrary external entity.
    Tag.usage_count tracks the number of rows referencing each tag.
    """
    __tablename__ = "entity_tags"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tag_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("tags.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    entity_type: Mapped[str] = mapped_column(String(100), nullable=False)
    entity_id: Mapped[str] = mapped_column(String(100), nullable=False)
    tenant_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    added_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    added_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
    )

    __table_args__ = (
        UniqueConstraint("tag_id", "entity_type", "entity_id", name="uq_entity_tags_tag_entity"),
        Index("ix_entity_tags_entity", "entity_type", "entity_id"),
    )

    def __repr__(self) -> str:
        return f"<EntityTag(tag_id={self.tag_id}, entity={self.entity_type}:{self.entity_id})>"


class TagInheritance(Base):
    """
    Inheritance marker: a tenant has opted into a platform tag.
    Without a marker the platform tag is invisible to that tenant.
    """
    __tablename__ = "tag_inheritances"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    source_tag_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("tags.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    target_scope: Mapped[str] = mapped_column(String(20), nullable=False, default="tenant")
    target_tenant_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    inherited_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
    )

    __table_args__ = (
        UniqueConstraint(
            "source_tag_id", "target_scope", "target_tenant_id",
            name="uq_tag_inheritances_source_target",
        ),
    )
