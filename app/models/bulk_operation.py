"""
Bulk operation job record.
Persists per-item progress so a run can be paused, resumed and retried.
"""

import enum
from datetime import datetime
from uuid import uuid4

from sqlalchemy import JSON, DateTime, Enum, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base
from app.models.tag import TagScope, utc_now


class BulkOperationType(str, enum.Enum):
    """Supported batch actions over tags."""
    ACTIVATE = "activate"
    DEACTIVATE = "deactivate"
    FEATURE = "feature"
    UNFEATURE = "unfeature"
    SET_CATEGORY = "set_category"
    MOVE = "move"
    MERGE = "merge"
    DELETE = "delete"


class BulkOperationStatus(str, enum.Enum):
    """Lifecycle states of a bulk operation."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    PAUSED = "paused"


class BulkOperation(Base):
    """Bulk operation over a set of tags within one scope."""
    __tablename__ = "bulk_operations"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    type: Mapped[BulkOperationType] = mapped_column(Enum(BulkOperationType), nullable=False)
    status: Mapped[BulkOperationStatus] = mapped_column(
        Enum(BulkOperationStatus),
        nullable=False,
        default=BulkOperationStatus.PENDING,
        index=True,
    )
    scope: Mapped[TagScope] = mapped_column(Enum(TagScope), nullable=False)
    tenant_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)

    # Tag UUIDs
    item_ids: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    pending_item_ids: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    failed_item_ids: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    total_items: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    processed_items: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    failed_items: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    errors: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    warnings: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    options: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

    created_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
    )
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    @property
    def progress(self) -> int:
        """Percentage of items attempted so far."""
        if not self.total_items:
            return 0
        return round(self.processed_items * 100 / self.total_items)

    def __repr__(self) -> str:
        return f"<BulkOperation(id={self.id}, type={self.type}, status={self.status})>"
