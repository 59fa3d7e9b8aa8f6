"""
Workflow orchestrator backends.
Long-running workflows execute in Temporal; this service only submits,
inspects and cancels them.
"""

import logging
from abc import ABC, abstractmethod
from functools import lru_cache
from typing import Any

import httpx

from app.config import get_settings
from app.core.exceptions import OrchestrationUnavailableException
from app.models.workflow import WorkflowExecutionStatus

logger = logging.getLogger(__name__)
settings = get_settings()


TEMPORAL_STATUS_MAP: dict[str, WorkflowExecutionStatus] = {
    "WORKFLOW_EXECUTION_STATUS_RUNNING": WorkflowExecutionStatus.RUNNING,
    "WORKFLOW_EXECUTION_STATUS_CONTINUED_AS_NEW": WorkflowExecutionStatus.RUNNING,
    "WORKFLOW_EXECUTION_STATUS_COMPLETED": WorkflowExecutionStatus.COMPLETED,
    "WORKFLOW_EXECUTION_STATUS_FAILED": WorkflowExecutionStatus.FAILED,
    "WORKFLOW_EXECUTION_STATUS_TIMED_OUT": WorkflowExecutionStatus.FAILED,
    "WORKFLOW_EXECUTION_STATUS_CANCELED": WorkflowExecutionStatus.CANCELLED,
    "WORKFLOW_EXECUTION_STATUS_TERMINATED": WorkflowExecutionStatus.TERMINATED,
}


class WorkflowOrchestrator(ABC):
    """Abstract base class for workflow orchestration backends."""

    @abstractmethod
    async def start(self, workflow_type: str, workflow_id: str, payload: dict[str, Any]) -> str:
        """
        Submit a workflow.

        Args:
            workflow_type: Registered workflow name
            workflow_id: Caller-chosen, unique workflow ID
            payload: Workflow input

        Returns:
            Run ID assigned by the orchestrator
        """
        pass

    @abstractmethod
    async def describe(self, workflow_id: str) -> WorkflowExecutionStatus:
        """Current status of a workflow."""
        pass

    @abstractmethod
    async def cancel(self, workflow_id: str) -> None:
        """Request cancellation of a running workflow."""
        pass

    async def ping(self) -> bool:
        return False


class DisabledOrchestrator(WorkflowOrchestrator):
    """Backend used when no orchestrator is configured. Every call fails loudly."""

    def _unavailable(self) -> OrchestrationUnavailableException:
        return OrchestrationUnavailableException(
            "Workflow orchestration is not configured",
            details={"backend": "disabled"},
        )

    async def start(self, workflow_type: str, workflow_id: str, payload: dict[str, Any]) -> str:
        raise self._unavailable()

    async def describe(self, workflow_id: str) -> WorkflowExecutionStatus:
        raise self._unavailable()

    async def cancel(self, workflow_id: str) -> None:
        raise self._unavailable()


class TemporalHttpOrchestrator(WorkflowOrchestrator):
    """
    Temporal backend speaking the frontend's HTTP API.

    Endpoints:
        POST /api/v1/namespaces/{ns}/workflows/{id}         start
        GET  /api/v1/namespaces/{ns}/workflows/{id}         describe
        POST /api/v1/namespaces/{ns}/workflows/{id}/cancel  cancel
    """

    def __init__(
        self,
        base_url: str | None = None,
        namespace: str | None = None,
        task_queue: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = (base_url or settings.TEMPORAL_HTTP_URL).rstrip("/")
        self.namespace = namespace or settings.TEMPORAL_NAMESPACE
        self.task_queue = task_queue or settings.TEMPORAL_TASK_QUEUE
        self.timeout = timeout or settings.ORCHESTRATOR_TIMEOUT
        self._transport = transport

    def _workflow_url(self, workflow_id: str) -> str:
        return f"{self.base_url}/api/v1/namespaces/{self.namespace}/workflows/{workflow_id}"

    async def _request(self, method: str, url: str, json: dict[str, Any] | None = None) -> dict[str, Any]:
        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self.timeout) as client:
                response = await client.request(method, url, json=json)
                response.raise_for_status()
                return response.json() if response.content else {}
        except httpx.HTTPStatusError as e:
            logger.error("Temporal %s %s returned %d", method, url, e.response.status_code)
            raise OrchestrationUnavailableException(
                f"Orchestrator rejected the request: HTTP {e.response.status_code}",
                details={"backend": "temporal", "status": e.response.status_code},
            )
        except httpx.HTTPError as e:
            logger.error("Temporal %s %s failed: %s", method, url, e)
            raise OrchestrationUnavailableException(
                f"Orchestrator unreachable: {str(e)}",
                details={"backend": "temporal"},
            )

    async def start(self, workflow_type: str, workflow_id: str, payload: dict[str, Any]) -> str:
        body = {
            "workflowId": workflow_id,
            "workflowType": {"name": workflow_type},
            "taskQueue": {"name": self.task_queue},
            "input": [payload],
        }
        data = await self._request("POST", self._workflow_url(workflow_id), json=body)
        run_id = data.get("runId")
        if not run_id:
            raise OrchestrationUnavailableException(
                "Orchestrator did not return a run ID",
                details={"backend": "temporal"},
            )
        return run_id

    async def describe(self, workflow_id: str) -> WorkflowExecutionStatus:
        data = await self._request("GET", self._workflow_url(workflow_id))
        raw_status = data.get("workflowExecutionInfo", {}).get("status", "")
        return TEMPORAL_STATUS_MAP.get(raw_status, WorkflowExecutionStatus.RUNNING)

    async def cancel(self, workflow_id: str) -> None:
        await self._request("POST", f"{self._workflow_url(workflow_id)}/cancel", json={})

    async def ping(self) -> bool:
        try:
            await self._request("GET", f"{self.base_url}/api/v1/namespaces/{self.namespace}")
            return True
        except OrchestrationUnavailableException:
            return False


@lru_cache
def get_orchestrator() -> WorkflowOrchestrator:
    """
    Get the configured orchestrator backend.

    Uses LRU cache to ensure only one instance is created.

    Raises:
        ValueError: If an unknown backend is configured
    """
    backend = settings.ORCHESTRATOR_BACKEND.lower()

    if backend == "disabled":
        return DisabledOrchestrator()
    elif backend == "temporal":
        return TemporalHttpOrchestrator()
    else:
        raise ValueError(f"Unknown orchestrator backend: {backend}")
