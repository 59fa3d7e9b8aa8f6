"""
SQLAlchemy ORM models for the Tag Taxonomy API.
"""

from app.models.tag import Tag, TagScope
from app.models.associations import EntityTag, TagInheritance
from app.models.bulk_operation import BulkOperation, BulkOperationStatus, BulkOperationType
from app.models.workflow import WorkflowExecution, WorkflowExecutionStatus

__all__ = [
    "Tag",
    "TagScope",
    "EntityTag",
    "TagInheritance",
    "BulkOperation",
    "BulkOperationStatus",
    "BulkOperationType",
    "WorkflowExecution",
    "WorkflowExecutionStatus",
]
