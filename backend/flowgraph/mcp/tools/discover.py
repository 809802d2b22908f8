"""
MCP tool for discovering node types, workflows and executions.
"""

from typing import Any, Dict, List

from loguru import logger

from flowgraph.mcp.tools.base import WorkflowTool
from flowgraph.schemas.catalog import DiscoveredNodeType
from flowgraph.schemas.tools import DiscoverParams
from flowgraph.schemas.workflow import WorkflowSummary
from flowgraph.utils.exceptions import NotFoundError


def _node_view(node: DiscoveredNodeType, include_examples: bool) -> Dict[str, Any]:
    exclude = None if include_examples else {"example_configs", "parameters", "parameter_key_counts"}
    data = node.model_dump(mode="json", exclude=exclude)
    data["required_parameters"] = node.required_parameters()
    return data


class DiscoverTool(WorkflowTool):
    name = "discover"
    description = "Discover node types, workflows and executions on the n8n instance"
    params_model = DiscoverParams

    async def execute(self, params: DiscoverParams) -> Dict[str, Any]:
        logger.info(f"MCP discover: type={params.type}")
        if params.type == "workflows":
            return await self._workflows(params)
        if params.type == "executions":
            return await self._executions(params)
        if params.type == "statistics":
            stats = await self.discovery.get_statistics()
            return stats.model_dump(mode="json")
        return await self._nodes(params)

    async def _nodes(self, params: DiscoverParams) -> Dict[str, Any]:
        catalog = await self.discovery.discover(force_refresh=params.force_refresh)

        if params.node_type:
            matches = await self.discovery.get_node_details(params.node_type)
            if not matches:
                raise NotFoundError("Node type", params.node_type)
            return {"node_type": params.node_type, "versions": [_node_view(n, True) for n in matches]}

        if params.query:
            nodes: List[DiscoveredNodeType] = await self.discovery.search_nodes(params.query, limit=params.limit)
            return {
                "query": params.query,
                "total": len(nodes),
                "nodes": [_node_view(n, params.include_examples) for n in nodes],
            }

        if params.category:
            grouped = await self.discovery.get_nodes_by_category(params.category)
            return {
                "category": params.category,
                "nodes": [
                    _node_view(n, params.include_examples)
                    for nodes in grouped.values()
                    for n in nodes[: params.limit]
                ],
            }

        return {
            "total_nodes": catalog.total_nodes,
            "core_nodes": len(catalog.core_nodes),
            "community_nodes": len(catalog.community_nodes),
            "categories": {name: len(nodes) for name, nodes in catalog.categories.items()},
            "most_used": [_node_view(n, params.include_examples) for n in catalog.most_used[: params.limit]],
            "workflows_scanned": catalog.workflows_scanned,
            "workflows_skipped": catalog.workflows_skipped,
            "last_updated": catalog.last_updated.isoformat(),
        }

    async def _workflows(self, params: DiscoverParams) -> Dict[str, Any]:
        workflows = await self.store.list_workflows()
        summaries = [WorkflowSummary.from_workflow(w).model_dump() for w in workflows[: params.limit]]
        return {"total": len(workflows), "workflows": summaries}

    async def _executions(self, params: DiscoverParams) -> Dict[str, Any]:
        executions = await self.store.list_executions(workflow_id=params.workflow_id, limit=params.limit)
        return {
            "total": len(executions),
            "executions": [
                {
                    "id": e.id,
                    "workflow_id": e.workflow_id,
                    "status": e.status or ("success" if e.succeeded else "error"),
                    "mode": e.mode,
                    "started_at": e.started_at.isoformat() if e.started_at else None,
                    "stopped_at": e.stopped_at.isoformat() if e.stopped_at else None,
                    "duration_ms": e.duration_ms,
                }
                for e in executions
            ],
        }
