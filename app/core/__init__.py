"""Core utilities and exceptions for the Tag Taxonomy API."""

from app.core.exceptions import (
    TaxonomyAPIException,
    ValidationException,
    UnauthorizedException,
    ForbiddenException,
    TagNotFoundException,
    SlugConflictException,
    CycleDetectedException,
    MaxDepthExceededException,
    SystemTagProtectedException,
    TagInUseException,
    TagHasChildrenException,
    TagInheritedException,
    BulkOperationNotFoundException,
    InvalidStateTransitionException,
    WorkflowExecutionNotFoundException,
    OrchestrationUnavailableException,
)

__all__ = [
    "TaxonomyAPIException",
    "ValidationException",
    "UnauthorizedException",
    "ForbiddenException",
    "TagNotFoundException",
    "SlugConflictException",
    "CycleDetectedException",
    "MaxDepthExceededException",
    "SystemTagProtectedException",
    "TagInUseException",
    "TagHasChildrenException",
    "TagInheritedException",
    "BulkOperationNotFoundException",
    "InvalidStateTransitionException",
    "WorkflowExecutionNotFoundException",
    "OrchestrationUnavailableException",
]
