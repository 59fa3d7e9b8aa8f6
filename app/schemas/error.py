"""
Pydantic schemas for error responses.
Every error body is {"error": <code>, "message": <text>, "details": {...}}.
"""

from typing import Any

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """
    Standard error response format.

    Examples:
        400: {"error": "validation_failed", "message": "..."}
        404: {"error": "tag_not_found", "message": "Tag with ID '...' not found"}
        409: {"error": "tag_cycle_detected", "message": "...", "details": {...}}
        503: {"error": "orchestration_unavailable", "message": "..."}
    """

    error: str = Field(
        ...,
        description="Machine-readable error code",
        examples=["validation_failed", "tag_not_found", "tag_slug_exists", "invalid_state_transition"],
    )
    message: str = Field(
        ...,
        description="Human-readable error message",
    )
    details: dict[str, Any] | None = Field(
        default=None,
        description="Optional additional error details",
    )


class ValidationErrorDetail(BaseModel):
    """One field-level request validation failure."""

    loc: list[str | int]
    msg: str
    type: str


class ValidationErrorResponse(BaseModel):
    """Response for request validation errors (400)."""

    error: str = "validation_failed"
    message: str = "Request validation failed"
    details: dict[str, list[ValidationErrorDetail]]
