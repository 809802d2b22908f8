"""
MCP tool for creating workflows, nodes and triggers.
"""

from typing import Any, Dict, List, Optional

from loguru import logger

from flowgraph.mcp.tools.base import WorkflowTool
from flowgraph.schemas.tools import CreateParams
from flowgraph.schemas.workflow import Node, Workflow
from flowgraph.services.node_catalog import display_name_for
from flowgraph.services.workflow_graph import ConnectionSpec, WorkflowGraph
from flowgraph.services.workflow_validator import MANUAL_TRIGGER_TYPE, is_trigger_type
from flowgraph.utils.exceptions import ValidationError

NODE_SPACING_X = 200
DEFAULT_POSITION = [250.0, 300.0]

WORKFLOW_SKELETONS: Dict[str, List[Dict[str, Any]]] = {
    "basic": [
        {"name": "Manual Trigger", "type": MANUAL_TRIGGER_TYPE, "parameters": {}},
    ],
    "webhook": [
        {"name": "Webhook", "type": "n8n-nodes-base.webhook", "parameters": {"httpMethod": "POST", "path": "webhook"}},
        {"name": "Respond to Webhook", "type": "n8n-nodes-base.respondToWebhook", "parameters": {}},
    ],
    "scheduler": [
        {
            "name": "Schedule Trigger",
            "type": "n8n-nodes-base.scheduleTrigger",
            "parameters": {"rule": {"interval": [{"field": "hours"}]}},
        },
    ],
}


def unique_node_name(workflow: Workflow, base: str) -> str:
    existing = {node.name for node in workflow.nodes}
    if base not in existing:
        return base
    suffix = 1
    while f"{base}{suffix}" in existing:
        suffix += 1
    return f"{base}{suffix}"


def next_position(workflow: Workflow, after: Optional[Node] = None) -> List[float]:
    if after is not None:
        return [after.position[0] + NODE_SPACING_X, after.position[1]]
    if not workflow.nodes:
        return list(DEFAULT_POSITION)
    rightmost = max(workflow.nodes, key=lambda n: n.position[0])
    return [rightmost.position[0] + NODE_SPACING_X, rightmost.position[1]]


class CreateTool(WorkflowTool):
    name = "create"
    description = "Create workflows (optionally from a skeleton), add nodes or add triggers"
    params_model = CreateParams

    async def execute(self, params: CreateParams) -> Dict[str, Any]:
        logger.info(f"MCP create: type={params.type}")
        if params.type == "workflow":
            return await self._create_workflow(params)
        return await self._add_node(params, trigger=params.type == "trigger")

    async def _create_workflow(self, params: CreateParams) -> Dict[str, Any]:
        workflow = Workflow(name=params.name, active=False)
        if params.nodes:
            workflow = Workflow.model_validate(
                {"name": params.name, "nodes": params.nodes, "connections": params.connections or {}}
            )
        elif params.template:
            graph = WorkflowGraph(workflow)
            previous: Optional[Node] = None
            for spec in WORKFLOW_SKELETONS[params.template]:
                node = Node(
                    name=spec["name"],
                    type=spec["type"],
                    position=next_position(workflow, previous),
                    parameters=dict(spec["parameters"]),
                )
                workflow.nodes.append(node)
                if previous is not None:
                    graph.add_connection(ConnectionSpec(source=previous.id, target=node.id))
                previous = node

        created = await self.store.create_workflow(workflow)
        return {
            "workflow": {"id": created.id, "name": created.name, "active": created.active},
            "node_count": len(created.nodes),
            "template": params.template,
        }

    async def _add_node(self, params: CreateParams, trigger: bool) -> Dict[str, Any]:
        workflow = await self.load_workflow(params.workflow)
        graph = WorkflowGraph(workflow)

        node_type = params.node_type or (MANUAL_TRIGGER_TYPE if trigger else None)
        if trigger and not is_trigger_type(node_type):
            raise ValidationError(f"'{node_type}' is not a trigger node type", field="node_type")

        after = graph.require_node(params.after) if params.after else None
        if params.position is not None and len(params.position) != 2:
            raise ValidationError("position must be [x, y]", field="position")

        node = Node(
            name=unique_node_name(workflow, params.name or display_name_for(node_type)),
            type=node_type,
            type_version=params.type_version,
            position=params.position or next_position(workflow, after),
            parameters=params.parameters,
            credentials=params.credentials,
        )
        workflow.nodes.append(node)

        connection = None
        if after is not None:
            connection = graph.add_connection(ConnectionSpec(source=after.id, target=node.id)).to_dict()

        updated = await self.store.update_workflow(workflow.id, workflow)
        return {
            "workflow": {"id": updated.id, "name": updated.name},
            "node": node.model_dump(by_alias=True, exclude_none=True, mode="json"),
            "connection": connection,
        }
