"""
Workflow execution endpoints.
Workflows run in the orchestrator; these endpoints submit and track them.
"""

from fastapi import APIRouter, Query, status

from app.auth.dependencies import RequireWorkflow
from app.dependencies import DbSession, Orchestrator, TenantScope
from app.models.workflow import WorkflowExecutionStatus
from app.schemas.workflow import (
    WorkflowExecutionCreate,
    WorkflowExecutionListResponse,
    WorkflowExecutionResponse,
)
from app.services.workflow_service import WorkflowService

router = APIRouter()


@router.post("", response_model=WorkflowExecutionResponse, status_code=status.HTTP_201_CREATED)
async def start_workflow_execution(
    data: WorkflowExecutionCreate,
    db: DbSession,
    orchestrator: Orchestrator,
    ctx: TenantScope,
    user: RequireWorkflow,
):
    """
    Submit a workflow for the tenant.

    Answers 503 when the orchestrator is disabled or unreachable; the
    attempt is still recorded as a failed execution.
    """
    service = WorkflowService(db, orchestrator)
    execution = await service.start_execution(ctx.tenant_id, data, started_by=user.get("user_id"))
    return WorkflowExecutionResponse.model_validate(execution)


@router.get("", response_model=WorkflowExecutionListResponse)
async def list_workflow_executions(
    db: DbSession,
    orchestrator: Orchestrator,
    ctx: TenantScope,
    user: RequireWorkflow,
    status_filter: WorkflowExecutionStatus | None = Query(default=None, alias="status", description="Filter by status"),
):
    """List the tenant's workflow executions, newest first."""
    executions = await WorkflowService(db, orchestrator).list_executions(ctx.tenant_id, status_filter)
    return WorkflowExecutionListResponse(
        items=[WorkflowExecutionResponse.model_validate(e) for e in executions],
        total=len(executions),
    )


@router.get("/{execution_id}", response_model=WorkflowExecutionResponse)
async def get_workflow_execution(
    execution_id: str,
    db: DbSession,
    orchestrator: Orchestrator,
    ctx: TenantScope,
    user: RequireWorkflow,
):
    """Get an execution; running executions are refreshed from the orchestrator."""
    execution = await WorkflowService(db, orchestrator).get_execution(ctx.tenant_id, execution_id)
    return WorkflowExecutionResponse.model_validate(execution)


@router.post("/{execution_id}/cancel", response_model=WorkflowExecutionResponse)
async def cancel_workflow_execution(
    execution_id: str,
    db: DbSession,
    orchestrator: Orchestrator,
    ctx: TenantScope,
    user: RequireWorkflow,
):
    """Cancel a running execution."""
    execution = await WorkflowService(db, orchestrator).cancel_execution(ctx.tenant_id, execution_id)
    return WorkflowExecutionResponse.model_validate(execution)
