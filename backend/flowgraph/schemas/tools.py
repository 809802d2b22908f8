"""
Parameter schemas for the MCP tools.

Each tool validates its arguments against one of these models before touching
the workflow store.
"""

import re
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from flowgraph.core.config import settings


class ToolParams(BaseModel):
    model_config = ConfigDict(extra="forbid")


# =============================================================================
# Discover
# =============================================================================

class DiscoverParams(ToolParams):
    type: Literal["nodes", "workflows", "executions", "statistics"] = "nodes"
    category: Optional[str] = Field(None, description="Restrict node results to one category")
    query: Optional[str] = Field(None, description="Search node types by name, description or category")
    node_type: Optional[str] = Field(None, description="Return details for one node type")
    workflow_id: Optional[str] = Field(None, description="Filter executions by workflow")
    limit: int = Field(50, ge=1, le=500)
    force_refresh: bool = False
    include_examples: bool = False


# =============================================================================
# Create / Modify / Connect
# =============================================================================

class CreateParams(ToolParams):
    type: Literal["workflow", "node", "trigger"]
    name: Optional[str] = None
    template: Optional[Literal["basic", "webhook", "scheduler"]] = None
    workflow: Optional[str] = Field(None, description="Target workflow id or name (node/trigger)")
    node_type: Optional[str] = None
    type_version: float = 1
    parameters: Dict[str, Any] = Field(default_factory=dict)
    credentials: Optional[Dict[str, Any]] = None
    position: Optional[List[float]] = None
    after: Optional[str] = Field(None, description="Connect the new node after this node (id or name)")
    nodes: Optional[List[Dict[str, Any]]] = None
    connections: Optional[Dict[str, Any]] = None

    @model_validator(mode="after")
    def check_requirements(self):
        if self.type == "workflow" and not self.name:
            raise ValueError("name is required when creating a workflow")
        if self.type in ("node", "trigger") and not self.workflow:
            raise ValueError(f"workflow is required when creating a {self.type}")
        if self.type == "node" and not self.node_type:
            raise ValueError("node_type is required when creating a node")
        return self


class ModifyParams(ToolParams):
    workflow: str = Field(..., min_length=1)
    type: Literal["workflow", "node"]
    node: Optional[str] = Field(None, description="Node id or name (type=node)")
    changes: Dict[str, Any] = Field(..., description="Properties to change")
    merge_parameters: bool = True

    @model_validator(mode="after")
    def check_requirements(self):
        if self.type == "node" and not self.node:
            raise ValueError("node is required when modifying a node")
        if not self.changes:
            raise ValueError("changes must not be empty")
        return self


class ConnectionInput(BaseModel):
    source: str
    target: str
    output_index: int = Field(0, ge=0)
    input_index: int = Field(0, ge=0)
    channel: str = "main"
    input_channel: str = "main"


class ConnectParams(ToolParams):
    workflow: str = Field(..., min_length=1)
    action: Literal["add", "remove", "replace", "list"]
    source: Optional[str] = None
    target: Optional[str] = None
    output_index: int = Field(0, ge=0)
    input_index: int = Field(0, ge=0)
    channel: str = "main"
    input_channel: str = "main"
    connections: Optional[List[ConnectionInput]] = None

    @model_validator(mode="after")
    def check_requirements(self):
        if self.action in ("add", "remove") and not (self.source and self.target):
            raise ValueError(f"source and target are required for action '{self.action}'")
        if self.action == "replace" and self.connections is None:
            raise ValueError("connections is required for action 'replace'")
        return self


# =============================================================================
# Validate / Execute
# =============================================================================

class ValidateParams(ToolParams):
    type: Literal["workflow", "parameters", "credentials", "readiness"] = "workflow"
    workflow: Optional[str] = None
    execution_id: Optional[str] = None
    deep: bool = False
    node_type: Optional[str] = None
    type_version: Optional[float] = None
    parameters: Dict[str, Any] = Field(default_factory=dict)
    force_refresh_catalog: bool = False

    @model_validator(mode="after")
    def check_requirements(self):
        if self.type == "parameters":
            if not self.node_type:
                raise ValueError("node_type is required for parameter validation")
        elif not self.workflow:
            raise ValueError(f"workflow is required for {self.type} validation")
        return self


class ExecuteParams(ToolParams):
    action: Literal["run", "trace", "compare", "list"]
    workflow: Optional[str] = None
    execution_id: Optional[str] = None
    compare_with: Optional[str] = None
    data: Optional[Dict[str, Any]] = None
    mode: Literal["manual", "production"] = "manual"
    wait: bool = False
    timeout: float = Field(default_factory=lambda: settings.EXECUTION_DEFAULT_TIMEOUT_SECONDS, gt=0, le=3600)
    include_data: bool = False
    verbose: bool = False
    limit: int = Field(20, ge=1, le=250)

    @model_validator(mode="after")
    def check_requirements(self):
        if self.action == "run" and not self.workflow:
            raise ValueError("workflow is required for action 'run'")
        if self.action == "trace" and not self.execution_id:
            raise ValueError("execution_id is required for action 'trace'")
        if self.action == "compare" and not (self.execution_id and self.compare_with):
            raise ValueError("execution_id and compare_with are required for action 'compare'")
        return self


# =============================================================================
# Batch
# =============================================================================

class BatchFilter(BaseModel):
    tags: Optional[List[str]] = Field(None, description="Match workflows carrying any of these tags")
    status: Optional[Literal["active", "inactive"]] = None
    name_pattern: Optional[str] = Field(None, description="Case-insensitive regular expression")
    node_type: Optional[str] = None

    @field_validator("name_pattern")
    @classmethod
    def check_pattern(cls, v):
        if v is not None:
            try:
                re.compile(v)
            except re.error as e:
                raise ValueError(f"invalid regular expression: {e}")
        return v

    def is_empty(self) -> bool:
        return not (self.tags or self.status or self.name_pattern or self.node_type)


class BatchTargets(BaseModel):
    workflow_ids: List[str] = Field(default_factory=list)
    filter: Optional[BatchFilter] = None


class BatchOptions(BaseModel):
    concurrent: int = Field(
        default_factory=lambda: settings.BATCH_DEFAULT_CONCURRENCY,
        ge=1,
        le=settings.BATCH_MAX_CONCURRENCY,
    )
    dry_run: bool = False
    continue_on_error: bool = True
    timeout: float = Field(default_factory=lambda: settings.EXECUTION_DEFAULT_TIMEOUT_SECONDS, gt=0, le=3600)
    backup: bool = True


BatchOperation = Literal["create", "update", "delete", "execute", "activate", "deactivate", "clone", "migrate"]


class BatchParams(ToolParams):
    operation: BatchOperation
    targets: BatchTargets = Field(default_factory=BatchTargets)
    data: Dict[str, Any] = Field(default_factory=dict)
    options: BatchOptions = Field(default_factory=BatchOptions)

    @model_validator(mode="after")
    def check_requirements(self):
        if self.operation == "create":
            if not isinstance(self.data.get("workflows"), list) or not self.data["workflows"]:
                raise ValueError("data.workflows must be a non-empty list for batch create")
        else:
            has_filter = self.targets.filter is not None and not self.targets.filter.is_empty()
            if not self.targets.workflow_ids and not has_filter:
                raise ValueError("targets.workflow_ids or targets.filter is required")
        if self.operation == "update" and not isinstance(self.data.get("updates"), dict):
            raise ValueError("data.updates must be an object for batch update")
        if self.operation == "migrate" and not isinstance(self.data.get("migrations"), list):
            raise ValueError("data.migrations must be a list for batch migrate")
        return self


# =============================================================================
# Template
# =============================================================================

PatternName = Literal["webhook_api", "scheduled_task", "data_transformation", "notification_system"]


class TemplateParams(ToolParams):
    action: Literal["create", "apply", "generate", "list", "analyze"]
    workflow: Optional[str] = Field(None, description="Source workflow id or name (create)")
    name: Optional[str] = None
    description: Optional[str] = None
    include_credentials: bool = False
    generate_variables: bool = True
    template: Optional[Dict[str, Any]] = Field(None, description="Template object to apply")
    pattern: Optional[PatternName] = None
    variables: Dict[str, Any] = Field(default_factory=dict)
    credentials: Dict[str, Any] = Field(default_factory=dict, description="credential type -> {id, name}")
    save: bool = Field(True, description="Create the resulting workflow in n8n (apply/generate)")

    @model_validator(mode="after")
    def check_requirements(self):
        if self.action == "create" and not self.workflow:
            raise ValueError("workflow is required for action 'create'")
        if self.action == "apply" and not self.template:
            raise ValueError("template is required for action 'apply'")
        if self.action == "generate" and not self.pattern:
            raise ValueError("pattern is required for action 'generate'")
        return self
