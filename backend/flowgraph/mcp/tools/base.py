"""
Shared plumbing for workflow tools.
"""

from typing import Any, Dict, Optional, Type

from flowgraph.schemas.tools import ToolParams
from flowgraph.schemas.workflow import Workflow
from flowgraph.services.node_catalog import NodeDiscoveryService, get_discovery_service
from flowgraph.services.workflow_store import get_workflow_store, resolve_workflow


class WorkflowTool:
    name: str = ""
    description: str = ""
    params_model: Type[ToolParams] = ToolParams

    def __init__(self, store=None, discovery: Optional[NodeDiscoveryService] = None):
        self._store = store
        self._discovery = discovery

    @property
    def store(self):
        if self._store is None:
            self._store = get_workflow_store()
        return self._store

    @property
    def discovery(self) -> NodeDiscoveryService:
        if self._discovery is None:
            self._discovery = get_discovery_service(self.store)
        return self._discovery

    @property
    def input_schema(self) -> Dict[str, Any]:
        return self.params_model.model_json_schema()

    async def load_workflow(self, identifier: str) -> Workflow:
        return await resolve_workflow(self.store, identifier)

    async def execute(self, params: ToolParams) -> Dict[str, Any]:
        raise NotImplementedError
