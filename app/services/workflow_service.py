"""
Workflow service - Facade over the orchestrator with local bookkeeping.
"""

import logging
from typing import Sequence
from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    InvalidStateTransitionException,
    OrchestrationUnavailableException,
    ValidationException,
    WorkflowExecutionNotFoundException,
)
from app.models.tag import utc_now
from app.models.workflow import WorkflowExecution, WorkflowExecutionStatus
from app.schemas.workflow import WorkflowExecutionCreate
from app.services.orchestrator import WorkflowOrchestrator

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = frozenset({
    WorkflowExecutionStatus.COMPLETED,
    WorkflowExecutionStatus.FAILED,
    WorkflowExecutionStatus.CANCELLED,
    WorkflowExecutionStatus.TERMINATED,
})


class WorkflowService:
    """Service class for workflow executions."""

    def __init__(self, db: AsyncSession, orchestrator: WorkflowOrchestrator):
        self.db = db
        self.orchestrator = orchestrator

    async def start_execution(
        self,
        tenant_id: int,
        data: WorkflowExecutionCreate,
        started_by: str | None = None,
    ) -> WorkflowExecution:
        """
        Record and submit a workflow execution.

        The record is persisted before submission. If the orchestrator is
        unavailable the record is kept as failed and the error is re-raised,
        so callers never see a phantom success.

        Raises:
            OrchestrationUnavailableException: Orchestrator disabled or unreachable
        """
        workflow_type = data.workflow_type.strip()
        if not workflow_type:
            raise ValidationException("workflowType must not be blank")

        execution = WorkflowExecution(
            id=str(uuid4()),
            workflow_type=workflow_type,
            tenant_id=tenant_id,
            status=WorkflowExecutionStatus.RUNNING,
            input=dict(data.input),
            started_by=started_by,
            started_at=utc_now(),
        )
        self.db.add(execution)
        await self.db.flush()

        workflow_id = f"{workflow_type}-{execution.id}"
        payload = {"tenantId": tenant_id, "executionId": execution.id, "input": execution.input}

        try:
            run_id = await self.orchestrator.start(workflow_type, workflow_id, payload)
        except OrchestrationUnavailableException as e:
            execution.status = WorkflowExecutionStatus.FAILED
            execution.error = e.message
            execution.completed_at = utc_now()
            # Keep the failed record even though the request errors out
            await self.db.commit()
            logger.error("Workflow %s for tenant %d could not be started: %s", workflow_type, tenant_id, e.message)
            raise

        execution.orchestrator_workflow_id = workflow_id
        execution.orchestrator_run_id = run_id
        await self.db.flush()

        logger.info(
            "Workflow started: %s type=%s tenant=%d run=%s by %s",
            execution.id, workflow_type, tenant_id, run_id, started_by,
        )
        return execution

    async def get_execution(
        self,
        tenant_id: int,
        execution_id: str,
        refresh: bool = True,
    ) -> WorkflowExecution:
        """
        Get an execution, refreshing its status from the orchestrator
        when it is still running. Refresh failures are logged only.
        """
        result = await self.db.execute(
            select(WorkflowExecution).where(
                WorkflowExecution.id == execution_id,
                WorkflowExecution.tenant_id == tenant_id,
            )
        )
        execution = result.scalar_one_or_none()
        if execution is None:
            raise WorkflowExecutionNotFoundException(execution_id)

        if (
            refresh
            and execution.status == WorkflowExecutionStatus.RUNNING
            and execution.orchestrator_workflow_id
        ):
            try:
                status = await self.orchestrator.describe(execution.orchestrator_workflow_id)
            except OrchestrationUnavailableException as e:
                logger.warning("Could not refresh workflow %s: %s", execution.id, e.message)
            else:
                if status != execution.status:
                    execution.status = status
                    if status in TERMINAL_STATUSES:
                        execution.completed_at = utc_now()
                    await self.db.flush()

        return execution

    async def cancel_execution(self, tenant_id: int, execution_id: str) -> WorkflowExecution:
        """
        Cancel a running execution.

        Raises:
            InvalidStateTransitionException: If the execution is not running
            OrchestrationUnavailableException: If the cancel request cannot be delivered
        """
        execution = await self.get_execution(tenant_id, execution_id, refresh=False)
        if execution.status != WorkflowExecutionStatus.RUNNING:
            raise InvalidStateTransitionException(
                execution.status.value, WorkflowExecutionStatus.CANCELLED.value
            )

        if execution.orchestrator_workflow_id:
            await self.orchestrator.cancel(execution.orchestrator_workflow_id)

        execution.status = WorkflowExecutionStatus.CANCELLED
        execution.completed_at = utc_now()
        await self.db.flush()

        logger.info("Workflow cancelled: %s", execution.id)
        return execution

    async def list_executions(
        self,
        tenant_id: int,
        status: WorkflowExecutionStatus | None = None,
    ) -> Sequence[WorkflowExecution]:
        query = select(WorkflowExecution).where(WorkflowExecution.tenant_id == tenant_id)
        if status is not None:
            query = query.where(WorkflowExecution.status == status)
        query = query.order_by(WorkflowExecution.started_at.desc())

        result = await self.db.execute(query)
        return result.scalars().all()
