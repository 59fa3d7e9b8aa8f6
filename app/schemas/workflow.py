"""
Pydantic schemas for workflow executions.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from app.models.workflow import WorkflowExecutionStatus


class WorkflowExecutionCreate(BaseModel):
    workflow_type: str = Field(..., min_length=1, max_length=100, alias="workflowType")
    input: dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(populate_by_name=True)


class WorkflowExecutionResponse(BaseModel):
    id: str
    workflow_type: str = Field(alias="workflowType")
    tenant_id: int = Field(alias="tenantId")
    status: WorkflowExecutionStatus
    input: dict[str, Any]
    orchestrator_workflow_id: str | None = Field(default=None, alias="workflowId")
    orchestrator_run_id: str | None = Field(default=None, alias="runId")
    error: str | None = None
    started_by: str | None = Field(default=None, alias="startedBy")
    started_at: datetime = Field(alias="startedAt")
    completed_at: datetime | None = Field(default=None, alias="completedAt")

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
    )


class WorkflowExecutionListResponse(BaseModel):
    items: list[WorkflowExecutionResponse]
    total: int
