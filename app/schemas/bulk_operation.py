"""
Pydantic schemas for bulk tag operations.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from app.models.bulk_operation import BulkOperationStatus, BulkOperationType
from app.models.tag import TagScope


class BulkOperationCreate(BaseModel):
    """
    Request to start a bulk operation.

    Options by type:
        set_category: {"category": str | None}
        move:         {"parentUuid": str | None}
        merge:        {"targetUuid": str}
    """

    type: BulkOperationType
    scope: TagScope = TagScope.TENANT
    tenant_id: int | None = Field(default=None, alias="tenantId")
    tag_uuids: list[str] = Field(..., min_length=1, alias="tagUuids")
    options: dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(populate_by_name=True)


class BulkOperationError(BaseModel):
    item_id: str = Field(alias="itemId")
    error: str
    message: str

    model_config = ConfigDict(populate_by_name=True)


class BulkOperationResponse(BaseModel):
    """Progress snapshot of a bulk operation."""

    id: str
    type: BulkOperationType
    status: BulkOperationStatus
    scope: TagScope
    tenant_id: int | None = Field(default=None, alias="tenantId")
    progress: int
    total_items: int = Field(alias="totalItems")
    processed_items: int = Field(alias="processedItems")
    failed_items: int = Field(alias="failedItems")
    pending_item_ids: list[str] = Field(alias="pendingItemIds")
    failed_item_ids: list[str] = Field(alias="failedItemIds")
    errors: list[BulkOperationError]
    warnings: list[str]
    options: dict[str, Any]
    created_by: str | None = Field(default=None, alias="createdBy")
    created_at: datetime = Field(alias="createdAt")
    started_at: datetime | None = Field(default=None, alias="startedAt")
    completed_at: datetime | None = Field(default=None, alias="completedAt")

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
    )


class BulkOperationListResponse(BaseModel):
    items: list[BulkOperationResponse]
    total: int
