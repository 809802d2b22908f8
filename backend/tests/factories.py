"""
Test factories for creating workflows, executions and an in-memory workflow store.
"""

from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from flowgraph.schemas.workflow import Execution, ExecutionHandle, Node, Workflow
from flowgraph.utils.exceptions import NotFoundError

MANUAL_TRIGGER = "n8n-nodes-base.manualTrigger"
SET_NODE = "n8n-nodes-base.set"
HTTP_NODE = "n8n-nodes-base.httpRequest"


def make_node(
    name: str,
    node_type: str = SET_NODE,
    node_id: Optional[str] = None,
    parameters: Optional[Dict[str, Any]] = None,
    position: Optional[List[float]] = None,
    credentials: Optional[Dict[str, Any]] = None,
) -> Node:
    return Node(
        id=node_id or f"id-{name.lower().replace(' ', '-')}",
        name=name,
        type=node_type,
        position=position or [0, 0],
        parameters=parameters or {},
        credentials=credentials,
    )


def edge(target: str, index: int = 0) -> Dict[str, Any]:
    return {"node": target, "type": "main", "index": index}


def chain(*refs: str) -> Dict[str, Any]:
    """Connection map linking each reference to the next on output 0."""
    return {source: {"main": [[edge(target)]]} for source, target in zip(refs, refs[1:])}


def make_workflow(
    name: str = "Test Workflow",
    nodes: Optional[List[Node]] = None,
    connections: Optional[Dict[str, Any]] = None,
    workflow_id: Optional[str] = None,
    active: bool = False,
    tags: Optional[List[str]] = None,
) -> Workflow:
    return Workflow(
        id=workflow_id,
        name=name,
        active=active,
        nodes=nodes or [],
        connections=connections or {},
        tags=tags or [],
    )


def simple_workflow(workflow_id: str = "wf-1", name: str = "Simple") -> Workflow:
    """Manual trigger -> Set -> HTTP Request, connections keyed by node name."""
    return make_workflow(
        name=name,
        workflow_id=workflow_id,
        nodes=[
            make_node("Start", MANUAL_TRIGGER),
            make_node("Set", SET_NODE, parameters={"values": {}}),
            make_node("Fetch", HTTP_NODE, parameters={"url": "https://api.example.com/items"}),
        ],
        connections=chain("Start", "Set", "Fetch"),
    )


def run_entry(items: int = 1, error: Optional[Dict[str, Any]] = None, execution_time: int = 5) -> Dict[str, Any]:
    entry: Dict[str, Any] = {
        "startTime": 1700000000000,
        "executionTime": execution_time,
        "data": {"main": [[{"json": {"n": i}} for i in range(items)]]},
    }
    if error is not None:
        entry["error"] = error
    return entry


def make_execution(
    execution_id: str = "ex-1",
    status: Optional[str] = "success",
    run_data: Optional[Dict[str, List[Dict[str, Any]]]] = None,
    workflow_id: Optional[str] = "wf-1",
    error: Optional[Dict[str, Any]] = None,
    duration_ms: Optional[int] = 1200,
    finished: bool = True,
) -> Execution:
    started = datetime(2024, 1, 1, tzinfo=timezone.utc)
    result_data: Dict[str, Any] = {"runData": run_data or {}}
    if error is not None:
        result_data["error"] = error
    return Execution(
        id=execution_id,
        status=status,
        finished=finished,
        workflow_id=workflow_id,
        started_at=started,
        stopped_at=started + timedelta(milliseconds=duration_ms) if duration_ms is not None else None,
        data={"resultData": result_data},
    )


class FakeWorkflowStore:
    """
    In-memory stand-in for the n8n API.

    ``failures`` maps ``(method, id)`` to an exception raised on that call.
    ``executions`` maps an execution id to the sequence of states returned by
    successive ``get_execution`` calls; the last state repeats.
    """

    def __init__(self, workflows: Optional[List[Workflow]] = None):
        self.workflows: Dict[str, Workflow] = {}
        self.executions: Dict[str, List[Execution]] = {}
        self.execution_ids: Dict[str, str] = {}
        self.failures: Dict[tuple, Exception] = {}
        self.calls: Counter = Counter()
        self._next_id = 100
        for workflow in workflows or []:
            self.add(workflow)

    def add(self, workflow: Workflow) -> Workflow:
        if workflow.id is None:
            workflow = workflow.model_copy(update={"id": self._new_id()})
        self.workflows[workflow.id] = workflow.model_copy(deep=True)
        return workflow

    def script_execution(self, workflow_id: str, execution_id: str, states: List[Execution]) -> None:
        self.execution_ids[workflow_id] = execution_id
        self.executions[execution_id] = list(states)

    def _new_id(self) -> str:
        self._next_id += 1
        return f"wf-{self._next_id}"

    def _check(self, method: str, key: Optional[str] = None) -> None:
        self.calls[method] += 1
        error = self.failures.get((method, key))
        if error is not None:
            raise error

    def _require(self, workflow_id: str) -> Workflow:
        if workflow_id not in self.workflows:
            raise NotFoundError("Workflow", workflow_id)
        return self.workflows[workflow_id]

    async def list_workflows(self) -> List[Workflow]:
        self._check("list_workflows")
        return [w.model_copy(deep=True) for w in self.workflows.values()]

    async def get_workflow(self, workflow_id: str) -> Workflow:
        self._check("get_workflow", workflow_id)
        return self._require(workflow_id).model_copy(deep=True)

    async def create_workflow(self, workflow: Workflow) -> Workflow:
        self._check("create_workflow", workflow.name)
        created = workflow.model_copy(deep=True, update={"id": self._new_id(), "active": False})
        self.workflows[created.id] = created
        return created.model_copy(deep=True)

    async def update_workflow(self, workflow_id: str, workflow: Workflow) -> Workflow:
        self._check("update_workflow", workflow_id)
        current = self._require(workflow_id)
        updated = workflow.model_copy(deep=True, update={"id": workflow_id, "active": current.active})
        self.workflows[workflow_id] = updated
        return updated.model_copy(deep=True)

    async def delete_workflow(self, workflow_id: str) -> None:
        self._check("delete_workflow", workflow_id)
        self._require(workflow_id)
        del self.workflows[workflow_id]

    async def activate_workflow(self, workflow_id: str) -> Workflow:
        self._check("activate_workflow", workflow_id)
        self._require(workflow_id).active = True
        return self.workflows[workflow_id].model_copy(deep=True)

    async def deactivate_workflow(self, workflow_id: str) -> Workflow:
        self._check("deactivate_workflow", workflow_id)
        self._require(workflow_id).active = False
        return self.workflows[workflow_id].model_copy(deep=True)

    async def execute_workflow(self, workflow_id: str, data: Optional[Dict[str, Any]] = None) -> ExecutionHandle:
        self._check("execute_workflow", workflow_id)
        self._require(workflow_id)
        return ExecutionHandle(execution_id=self.execution_ids.get(workflow_id))

    async def get_execution(self, execution_id: str) -> Execution:
        self._check("get_execution", execution_id)
        states = self.executions.get(execution_id)
        if not states:
            raise NotFoundError("Execution", execution_id)
        return states.pop(0) if len(states) > 1 else states[0]

    async def list_executions(self, workflow_id: Optional[str] = None, limit: int = 20) -> List[Execution]:
        self._check("list_executions", workflow_id)
        latest = [states[-1] for states in self.executions.values()]
        if workflow_id:
            latest = [e for e in latest if e.workflow_id == workflow_id]
        return latest[:limit]
