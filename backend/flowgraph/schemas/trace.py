"""
Pydantic schemas for execution traces.
"""

from typing import Any, List, Literal, Optional
from pydantic import BaseModel, Field


class TraceError(BaseModel):
    message: str
    type: Optional[str] = None
    stack: Optional[str] = None


class TraceEntry(BaseModel):
    node_id: str
    node_name: Optional[str] = None
    node_type: Optional[str] = None
    status: Literal["success", "error"]
    start_time: Optional[Any] = None
    execution_time: Optional[float] = None
    items_processed: int = 0
    error: Optional[TraceError] = None
    output_sample: Optional[List[Any]] = None


class TraceSummary(BaseModel):
    total_nodes: int = 0
    successful_nodes: int = 0
    failed_nodes: int = 0
    total_items: int = 0


class ExecutionTrace(BaseModel):
    execution_id: Optional[str] = None
    workflow_id: Optional[str] = None
    status: Optional[str] = None
    duration_ms: Optional[float] = None
    order: List[str] = Field(default_factory=list)
    entries: List[TraceEntry] = Field(default_factory=list)
    summary: TraceSummary = Field(default_factory=TraceSummary)
    last_node_executed: Optional[str] = None


class ExecutionOutcome(BaseModel):
    """Result of waiting on a triggered execution."""
    execution_id: Optional[str] = None
    status: Literal["success", "failed", "timeout"]
    duration_ms: float
    error: Optional[str] = None
