"""
Common Pydantic schemas for tool responses.
"""

from typing import Any, Optional
from pydantic import BaseModel, Field


class ToolResponse(BaseModel):
    """
    Uniform envelope returned by every tool.

    Attributes:
        success: Whether the tool completed
        data: Tool result when successful
        error: Human-readable error when unsuccessful
        code: Machine-readable error category
        detail: Optional extra context for the error
    """
    success: bool
    data: Optional[Any] = None
    error: Optional[str] = None
    code: Optional[str] = Field(None, description="Error category, e.g. validation_error or not_found")
    detail: Optional[Any] = None

    @classmethod
    def ok(cls, data: Any) -> "ToolResponse":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str, code: str = "internal_error", detail: Any = None) -> "ToolResponse":
        return cls(success=False, error=error, code=code, detail=detail)

    def to_dict(self) -> dict:
        return self.model_dump(mode="json", exclude_none=True)
