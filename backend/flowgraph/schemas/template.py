"""
Pydantic schemas for workflow templates.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


class TemplateVariable(BaseModel):
    description: str
    default_value: Optional[Any] = None
    type: str = "string"
    required: bool = True


class TemplateMetadata(BaseModel):
    original_id: Optional[str] = None
    node_types: List[str] = Field(default_factory=list)
    connection_count: int = 0
    required_credentials: List[str] = Field(default_factory=list)
    complexity: int = 1


class WorkflowTemplate(BaseModel):
    """A workflow graph with concrete values replaced by ``{{name}}`` placeholders."""
    id: str
    name: str
    description: str = ""
    category: str = "general"
    tags: List[str] = Field(default_factory=list)
    workflow: Dict[str, Any]
    variables: Dict[str, TemplateVariable] = Field(default_factory=dict)
    metadata: TemplateMetadata = Field(default_factory=TemplateMetadata)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
