"""
MCP tool for editing a workflow's connections.
"""

from typing import Any, Dict

from loguru import logger

from flowgraph.mcp.tools.base import WorkflowTool
from flowgraph.schemas.tools import ConnectParams
from flowgraph.services.workflow_graph import ConnectionSpec, WorkflowGraph


class ConnectTool(WorkflowTool):
    name = "connect"
    description = "Add, remove, replace or list connections between workflow nodes"
    params_model = ConnectParams

    async def execute(self, params: ConnectParams) -> Dict[str, Any]:
        workflow = await self.load_workflow(params.workflow)
        graph = WorkflowGraph(workflow)
        logger.info(f"MCP connect: workflow={workflow.id}, action={params.action}")

        if params.action == "list":
            edges = graph.list_connections()
            return {
                "workflow": {"id": workflow.id, "name": workflow.name},
                "total": len(edges),
                "connections": [graph.describe_connection(edge) for edge in edges],
            }

        if params.action == "replace":
            change = graph.replace_connections(
                ConnectionSpec(**c.model_dump()) for c in params.connections or []
            )
        else:
            spec = ConnectionSpec(
                source=params.source,
                target=params.target,
                output_index=params.output_index,
                input_index=params.input_index,
                channel=params.channel,
                input_channel=params.input_channel,
            )
            if params.action == "add":
                change = graph.add_connection(spec)
            else:
                change = graph.remove_connection(spec)

        # nothing to persist when the edit was a no-op
        if change.success:
            await self.store.update_workflow(workflow.id, workflow)

        result = change.to_dict()
        result["workflow"] = {"id": workflow.id, "name": workflow.name}
        result["connection_count"] = len(graph.list_connections())
        return result
