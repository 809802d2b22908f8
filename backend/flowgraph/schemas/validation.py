"""
Pydantic schemas for validation issues and reports.
"""

from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, Field

Severity = Literal["critical", "high", "medium", "low"]

SEVERITY_RANK: Dict[str, int] = {"critical": 3, "high": 2, "medium": 1, "low": 0}


class Issue(BaseModel):
    """A single problem found in a workflow or execution."""
    severity: Severity
    kind: str
    message: str
    node_id: Optional[str] = None
    suggestion: Optional[str] = None


class ValidationReport(BaseModel):
    workflow_id: Optional[str] = None
    workflow_name: Optional[str] = None
    valid: bool
    issues: List[Issue] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
    counts: Dict[str, int] = Field(default_factory=dict)
    execution_id: Optional[str] = None


class CheckResult(BaseModel):
    """Outcome of one of the stand-alone checks (parameters, credentials, readiness)."""
    valid: bool
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    details: Dict[str, Any] = Field(default_factory=dict)
