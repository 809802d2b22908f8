"""
Pydantic schemas for n8n workflows, nodes, connections and executions.

Wire models keep n8n's camelCase field names as aliases and allow extra fields,
so server-side attributes survive a fetch/replace round trip.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


DEFAULT_CHANNEL = "main"
ERROR_CHANNEL = "error"

# Fields the n8n public API accepts on create/update.
WRITABLE_WORKFLOW_FIELDS = ("name", "nodes", "connections", "settings", "staticData")


def _coerce_id(v: Any) -> Any:
    if v is None:
        return v
    return str(v)


# =============================================================================
# Graph
# =============================================================================

class Node(BaseModel):
    """A single step in a workflow."""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str
    type: str
    type_version: Union[int, float] = Field(1, alias="typeVersion")
    position: List[float] = Field(default_factory=lambda: [0.0, 0.0])
    parameters: Dict[str, Any] = Field(default_factory=dict)
    credentials: Optional[Dict[str, Any]] = None
    disabled: Optional[bool] = None

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v):
        return _coerce_id(v) if v is not None else str(uuid.uuid4())

    @field_validator("parameters", mode="before")
    @classmethod
    def default_parameters(cls, v):
        return v or {}


class ConnectionTarget(BaseModel):
    """Input side of an edge: target node reference, input channel and input index."""
    model_config = ConfigDict(extra="allow")

    node: str
    type: str = DEFAULT_CHANNEL
    index: int = 0


# source key -> channel -> output slot index -> targets
ConnectionMap = Dict[str, Dict[str, List[List[ConnectionTarget]]]]


class Workflow(BaseModel):
    """A workflow graph as stored by n8n."""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: Optional[str] = None
    name: str
    active: bool = False
    nodes: List[Node] = Field(default_factory=list)
    connections: ConnectionMap = Field(default_factory=dict)
    settings: Dict[str, Any] = Field(default_factory=dict)
    tags: List[str] = Field(default_factory=list)

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v):
        return _coerce_id(v)

    @field_validator("connections", mode="before")
    @classmethod
    def normalize_connections(cls, v):
        # n8n occasionally stores null for an unused output slot.
        if not v:
            return {}
        normalized: Dict[str, Dict[str, list]] = {}
        for source, channels in v.items():
            normalized[source] = {
                channel: [list(slot or []) for slot in (slots or [])]
                for channel, slots in (channels or {}).items()
            }
        return normalized

    @field_validator("tags", mode="before")
    @classmethod
    def normalize_tags(cls, v):
        if not v:
            return []
        names = []
        for tag in v:
            if isinstance(tag, dict):
                if tag.get("name"):
                    names.append(str(tag["name"]))
            elif tag is not None:
                names.append(str(tag))
        return names

    def to_payload(self) -> Dict[str, Any]:
        """Full JSON-ready representation using n8n field names."""
        # exclude_none would also strip null parameter values, so unset optionals are dropped by hand
        data = self.model_dump(by_alias=True, mode="json")
        if data.get("id") is None:
            data.pop("id", None)
        for node in data.get("nodes", []):
            for key in ("credentials", "disabled"):
                if node.get(key) is None:
                    node.pop(key, None)
        return data

    def writable_payload(self) -> Dict[str, Any]:
        """Subset accepted by the n8n create/update endpoints."""
        payload = self.to_payload()
        return {k: payload[k] for k in WRITABLE_WORKFLOW_FIELDS if k in payload}


class WorkflowSummary(BaseModel):
    """Lightweight description of a workflow used in listings and previews."""
    id: Optional[str] = None
    name: str
    active: bool = False
    node_count: int = 0
    tags: List[str] = Field(default_factory=list)

    @classmethod
    def from_workflow(cls, workflow: Workflow) -> "WorkflowSummary":
        return cls(
            id=workflow.id,
            name=workflow.name,
            active=workflow.active,
            node_count=len(workflow.nodes),
            tags=list(workflow.tags),
        )


# =============================================================================
# Executions
# =============================================================================

class Execution(BaseModel):
    """An execution record produced by n8n."""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str
    finished: bool = False
    mode: Optional[str] = None
    status: Optional[str] = None
    started_at: Optional[datetime] = Field(None, alias="startedAt")
    stopped_at: Optional[datetime] = Field(None, alias="stoppedAt")
    workflow_id: Optional[str] = Field(None, alias="workflowId")
    data: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("id", "workflow_id", mode="before")
    @classmethod
    def coerce_ids(cls, v):
        return _coerce_id(v)

    @field_validator("data", mode="before")
    @classmethod
    def default_data(cls, v):
        return v or {}

    @property
    def result_data(self) -> Dict[str, Any]:
        return self.data.get("resultData") or {}

    @property
    def run_data(self) -> Dict[str, List[Dict[str, Any]]]:
        return self.result_data.get("runData") or {}

    @property
    def error(self) -> Optional[Dict[str, Any]]:
        return self.result_data.get("error")

    @property
    def duration_ms(self) -> Optional[float]:
        if self.started_at is None or self.stopped_at is None:
            return None
        return (self.stopped_at - self.started_at).total_seconds() * 1000

    @property
    def is_terminal(self) -> bool:
        if self.status in ("success", "error", "crashed", "canceled"):
            return True
        if self.status in ("running", "waiting", "new"):
            return False
        return self.finished or self.stopped_at is not None

    @property
    def succeeded(self) -> bool:
        if self.status is not None:
            return self.status == "success" and self.error is None
        return self.finished and self.error is None


class ExecutionHandle(BaseModel):
    """Reference returned when a workflow run is triggered."""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    execution_id: Optional[str] = Field(None, alias="executionId")
    data: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("execution_id", mode="before")
    @classmethod
    def coerce_id(cls, v):
        return _coerce_id(v)
