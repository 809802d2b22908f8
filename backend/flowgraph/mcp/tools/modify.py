"""
MCP tool for modifying workflow properties and individual nodes.
"""

import math
from typing import Any, Dict, List

from loguru import logger

from flowgraph.mcp.tools.base import WorkflowTool
from flowgraph.schemas.tools import ModifyParams
from flowgraph.services.workflow_graph import WorkflowGraph
from flowgraph.services.workflow_validator import ensure_activatable
from flowgraph.utils.exceptions import ValidationError

WORKFLOW_FIELDS = ("name", "active", "settings")
NODE_FIELDS = ("name", "parameters", "position", "disabled", "credentials", "type_version")


def validate_position(position: Any) -> List[float]:
    if not isinstance(position, (list, tuple)) or len(position) != 2:
        raise ValidationError("position must be a list of two numbers", field="position")
    if not all(isinstance(v, (int, float)) and not isinstance(v, bool) and math.isfinite(v) for v in position):
        raise ValidationError("position values must be finite numbers", field="position")
    return [float(position[0]), float(position[1])]


class ModifyTool(WorkflowTool):
    name = "modify"
    description = "Modify workflow properties or a node's name, parameters, position or state"
    params_model = ModifyParams

    async def execute(self, params: ModifyParams) -> Dict[str, Any]:
        workflow = await self.load_workflow(params.workflow)
        logger.info(f"MCP modify: workflow={workflow.id}, type={params.type}")

        if params.type == "workflow":
            unknown = sorted(set(params.changes) - set(WORKFLOW_FIELDS))
            if unknown:
                raise ValidationError(f"Unsupported workflow fields: {', '.join(unknown)}", field="changes")
            changes = dict(params.changes)
            active = changes.pop("active", None)
            for key, value in changes.items():
                if key == "name" and not str(value or "").strip():
                    raise ValidationError("name must not be empty", field="name")
                setattr(workflow, key, value)
            updated = await self.store.update_workflow(workflow.id, workflow) if changes else workflow

            # activation state has its own endpoints in the n8n API
            if active is not None and bool(active) != workflow.active:
                if active:
                    ensure_activatable(updated)
                    updated = await self.store.activate_workflow(workflow.id)
                else:
                    updated = await self.store.deactivate_workflow(workflow.id)
            return {
                "workflow": {"id": updated.id, "name": updated.name, "active": updated.active},
                "changed": sorted(params.changes),
            }

        unknown = sorted(set(params.changes) - set(NODE_FIELDS))
        if unknown:
            raise ValidationError(f"Unsupported node fields: {', '.join(unknown)}", field="changes")

        graph = WorkflowGraph(workflow)
        node = graph.require_node(params.node)
        changes = params.changes

        if "name" in changes:
            new_name = str(changes["name"] or "").strip()
            if not new_name:
                raise ValidationError("name must not be empty", field="name")
            if any(n.name == new_name and n.id != node.id for n in workflow.nodes):
                raise ValidationError(f"A node named '{new_name}' already exists", field="name")
            graph.rename_node(node.id, new_name)
        if "parameters" in changes:
            if not isinstance(changes["parameters"], dict):
                raise ValidationError("parameters must be an object", field="parameters")
            if params.merge_parameters:
                node.parameters.update(changes["parameters"])
            else:
                node.parameters = dict(changes["parameters"])
        if "position" in changes:
            node.position = validate_position(changes["position"])
        if "disabled" in changes:
            node.disabled = bool(changes["disabled"])
        if "credentials" in changes:
            node.credentials = changes["credentials"] or None
        if "type_version" in changes:
            node.type_version = changes["type_version"]

        updated = await self.store.update_workflow(workflow.id, workflow)
        return {
            "workflow": {"id": updated.id, "name": updated.name},
            "node": node.model_dump(by_alias=True, exclude_none=True, mode="json"),
            "changed": sorted(changes),
        }
