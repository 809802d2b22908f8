"""
MCP tool for bulk operations across workflows.
"""

from typing import Any, Dict

from loguru import logger

from flowgraph.core.config import settings
from flowgraph.mcp.tools.base import WorkflowTool
from flowgraph.schemas.tools import BatchParams
from flowgraph.services.batch_orchestrator import BatchOrchestrator


class BatchTool(WorkflowTool):
    name = "batch"
    description = (
        "Create, update, delete, execute, activate, deactivate, clone or migrate many workflows "
        "with bounded concurrency, dry-run and backups"
    )
    params_model = BatchParams

    def __init__(self, store=None, discovery=None, poll_interval: float = None):
        super().__init__(store=store, discovery=discovery)
        self.poll_interval = poll_interval if poll_interval is not None else settings.EXECUTION_POLL_INTERVAL_SECONDS

    async def execute(self, params: BatchParams) -> Dict[str, Any]:
        logger.info(
            f"MCP batch: operation={params.operation}, dry_run={params.options.dry_run}, "
            f"concurrent={params.options.concurrent}"
        )
        orchestrator = BatchOrchestrator(self.store, poll_interval=self.poll_interval)
        try:
            result = await orchestrator.run(params)
        finally:
            if not params.options.dry_run and params.operation != "execute":
                # graph shapes changed; the next discovery must rescan
                self.discovery.invalidate()
        return result.model_dump(mode="json", exclude_none=True)
