"""
MCP tool for running workflows and tracing their executions.
"""

from typing import Any, Dict

from loguru import logger

from flowgraph.core.config import settings
from flowgraph.mcp.tools.base import WorkflowTool
from flowgraph.schemas.tools import ExecuteParams
from flowgraph.services.execution_tracer import compare_executions, trace, wait_for_execution
from flowgraph.services.workflow_store import resolve_workflow
from flowgraph.utils.exceptions import ExecutionTimeoutError, ValidationError


class ExecuteTool(WorkflowTool):
    name = "execute"
    description = "Run a workflow, trace an execution in causal node order, compare or list executions"
    params_model = ExecuteParams

    def __init__(self, store=None, discovery=None, poll_interval: float = None):
        super().__init__(store=store, discovery=discovery)
        self.poll_interval = poll_interval if poll_interval is not None else settings.EXECUTION_POLL_INTERVAL_SECONDS

    async def execute(self, params: ExecuteParams) -> Dict[str, Any]:
        logger.info(f"MCP execute: action={params.action}")
        if params.action == "run":
            return await self._run(params)
        if params.action == "trace":
            return await self._trace(params)
        if params.action == "compare":
            first = await self.store.get_execution(params.execution_id)
            second = await self.store.get_execution(params.compare_with)
            return compare_executions(first, second)
        return await self._list(params)

    async def _run(self, params: ExecuteParams) -> Dict[str, Any]:
        workflow = await self.load_workflow(params.workflow)
        if not workflow.nodes:
            raise ValidationError("Workflow has no nodes to execute", field="workflow")
        if params.mode == "production" and not workflow.active:
            raise ValidationError("Workflow must be active for production execution", field="mode")

        handle = await self.store.execute_workflow(workflow.id, params.data)
        result: Dict[str, Any] = {
            "workflow": {"id": workflow.id, "name": workflow.name},
            "execution_id": handle.execution_id,
            "status": "started",
        }
        if not params.wait or not handle.execution_id:
            return result

        outcome = await wait_for_execution(
            self.store, handle.execution_id, timeout=params.timeout, interval=self.poll_interval
        )
        if outcome.status == "timeout":
            raise ExecutionTimeoutError(
                f"Execution {handle.execution_id}", outcome.duration_ms / 1000, detail=outcome.error
            )
        result.update(outcome.model_dump(exclude_none=True))
        return result

    async def _trace(self, params: ExecuteParams) -> Dict[str, Any]:
        execution = await self.store.get_execution(params.execution_id)
        workflow_ref = params.workflow or execution.workflow_id
        if not workflow_ref:
            raise ValidationError("Execution has no workflow id; pass workflow explicitly", field="workflow")
        workflow = await resolve_workflow(self.store, workflow_ref)
        result = trace(workflow, execution, include_data=params.include_data, verbose=params.verbose)
        return result.model_dump(mode="json", exclude_none=True)

    async def _list(self, params: ExecuteParams) -> Dict[str, Any]:
        workflow_id = None
        if params.workflow:
            workflow_id = (await self.load_workflow(params.workflow)).id
        executions = await self.store.list_executions(workflow_id=workflow_id, limit=params.limit)
        return {
            "total": len(executions),
            "executions": [
                {
                    "id": e.id,
                    "workflow_id": e.workflow_id,
                    "status": e.status or ("success" if e.succeeded else "error"),
                    "finished": e.finished,
                    "duration_ms": e.duration_ms,
                }
                for e in executions
            ],
        }
