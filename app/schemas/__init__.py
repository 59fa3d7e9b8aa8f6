"""
Pydantic schemas for request/response validation.
"""

from app.schemas.tag import (
    TagFilter,
    TagCreate,
    TagUpdate,
    TagMove,
    TagResponse,
    TagListResponse,
    TagTreeNode,
    TagTreeResponse,
    TagStatsResponse,
    EntityTagsRequest,
    EntityTagsResponse,
)
from app.schemas.bulk_operation import (
    BulkOperationCreate,
    BulkOperationResponse,
    BulkOperationListResponse,
)
from app.schemas.workflow import (
    WorkflowExecutionCreate,
    WorkflowExecutionResponse,
    WorkflowExecutionListResponse,
)
from app.schemas.error import ErrorResponse, ValidationErrorResponse

__all__ = [
    # Tag schemas
    "TagFilter",
    "TagCreate",
    "TagUpdate",
    "TagMove",
    "TagResponse",
    "TagListResponse",
    "TagTreeNode",
    "TagTreeResponse",
    "TagStatsResponse",
    "EntityTagsRequest",
    "EntityTagsResponse",
    # Bulk operation schemas
    "BulkOperationCreate",
    "BulkOperationResponse",
    "BulkOperationListResponse",
    # Workflow schemas
    "WorkflowExecutionCreate",
    "WorkflowExecutionResponse",
    "WorkflowExecutionListResponse",
    # Error schemas
    "ErrorResponse",
    "ValidationErrorResponse",
]
