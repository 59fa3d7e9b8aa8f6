"""
Custom exceptions for the Tag Taxonomy API.
Every error carries a machine-readable code and an HTTP status.
"""

from typing import Any


class TaxonomyAPIException(Exception):
    """Base exception for all Tag Taxonomy API errors."""

    def __init__(
        self,
        error: str,
        message: str,
        status_code: int = 500,
        details: dict[str, Any] | None = None,
    ):
        self.error = error
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to response dictionary."""
        response = {
            "error": self.error,
            "message": self.message,
        }
        if self.details:
            response["details"] = self.details
        return response


class ValidationException(TaxonomyAPIException):
    """400 - Malformed request (blank name, malformed slug, bad options)."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(
            error="validation_failed",
            message=message,
            status_code=400,
            details=details,
        )


class UnauthorizedException(TaxonomyAPIException):
    """401 - Missing or invalid bearer token."""

    def __init__(self, message: str = "Valid token required"):
        super().__init__(
            error="unauthorized",
            message=message,
            status_code=401,
        )


class ForbiddenException(TaxonomyAPIException):
    """403 - Valid token but insufficient permissions."""

    def __init__(self, message: str = "Access denied", details: dict[str, Any] | None = None):
        super().__init__(
            error="forbidden",
            message=message,
            status_code=403,
            details=details,
        )


class TagNotFoundException(TaxonomyAPIException):
    """404 - Tag not found or not visible in the requested scope."""

    def __init__(self, tag_id: str):
        super().__init__(
            error="tag_not_found",
            message=f"Tag with ID '{tag_id}' not found",
            status_code=404,
        )


class SlugConflictException(TaxonomyAPIException):
    """409 - Slug already used within the same scope."""

    def __init__(self, slug: str, scope: str, tenant_id: int | None = None):
        details: dict[str, Any] = {"slug": slug, "scope": scope}
        if tenant_id is not None:
            details["tenantId"] = tenant_id
        super().__init__(
            error="tag_slug_exists",
            message=f"A {scope} tag with slug '{slug}' already exists",
            status_code=409,
            details=details,
        )


class CycleDetectedException(TaxonomyAPIException):
    """409 - Reparenting would make a tag its own ancestor."""

    def __init__(self, tag_id: str, parent_id: str):
        super().__init__(
            error="tag_cycle_detected",
            message="Moving this tag would create a circular hierarchy",
            status_code=409,
            details={"tagId": tag_id, "parentId": parent_id},
        )


class MaxDepthExceededException(TaxonomyAPIException):
    """422 - Hierarchy would exceed the configured nesting level."""

    def __init__(self, max_depth: int, depth: int):
        super().__init__(
            error="tag_max_depth_exceeded",
            message=f"Maximum nesting level is {max_depth}",
            status_code=422,
            details={"maxDepth": max_depth, "requestedDepth": depth},
        )


class SystemTagProtectedException(TaxonomyAPIException):
    """403 - System tags cannot be edited, moved or deleted."""

    def __init__(self, tag_id: str, action: str = "modify"):
        super().__init__(
            error="system_tag_protected",
            message=f"Cannot {action} system tag",
            status_code=403,
            details={"tagId": tag_id},
        )


class TagInUseException(TaxonomyAPIException):
    """409 - Tag still attached to entities."""

    def __init__(self, tag_id: str, usage_count: int):
        super().__init__(
            error="tag_in_use",
            message=f"Cannot delete tag in use by {usage_count} entities",
            status_code=409,
            details={"tagId": tag_id, "usageCount": usage_count},
        )


class TagHasChildrenException(TaxonomyAPIException):
    """409 - Tag still has child tags."""

    def __init__(self, tag_id: str, child_count: int):
        super().__init__(
            error="tag_has_children",
            message="Cannot delete tag with children. Move or delete child tags first.",
            status_code=409,
            details={"tagId": tag_id, "childCount": child_count},
        )


class TagInheritedException(TaxonomyAPIException):
    """409 - Platform tag still inherited by tenants."""

    def __init__(self, tag_id: str, tenant_count: int):
        super().__init__(
            error="tag_inherited",
            message=f"Cannot delete tag that has been inherited by {tenant_count} tenants",
            status_code=409,
            details={"tagId": tag_id, "inheritedByTenants": tenant_count},
        )


class BulkOperationNotFoundException(TaxonomyAPIException):
    """404 - Bulk operation not found."""

    def __init__(self, operation_id: str):
        super().__init__(
            error="bulk_operation_not_found",
            message=f"Bulk operation '{operation_id}' not found",
            status_code=404,
        )


class InvalidStateTransitionException(TaxonomyAPIException):
    """409 - Operation cannot move from its current state to the requested one."""

    def __init__(self, current: str, target: str):
        super().__init__(
            error="invalid_state_transition",
            message=f"Cannot transition from '{current}' to '{target}'",
            status_code=409,
            details={"current": current, "target": target},
        )


class WorkflowExecutionNotFoundException(TaxonomyAPIException):
    """404 - Workflow execution not found."""

    def __init__(self, execution_id: str):
        super().__init__(
            error="workflow_execution_not_found",
            message=f"Workflow execution '{execution_id}' not found",
            status_code=404,
        )


class OrchestrationUnavailableException(TaxonomyAPIException):
    """503 - Workflow orchestration backend disabled or unreachable."""

    def __init__(self, message: str = "Workflow orchestration is unavailable", details: dict[str, Any] | None = None):
        super().__init__(
            error="orchestration_unavailable",
            message=message,
            status_code=503,
            details=details,
        )
