"""
Shared MCP tool executor.

Used by:
- MCP HTTP endpoints
- Direct in-process calls from tests and scripts
"""

from __future__ import annotations

import time
from typing import Any, Dict, Optional

import pydantic
from loguru import logger

from flowgraph.core.logging import log_tool_call, log_tool_result
from flowgraph.mcp.tools import (
    BatchTool,
    ConnectTool,
    CreateTool,
    DiscoverTool,
    ExecuteTool,
    ModifyTool,
    TemplateTool,
    ValidateTool,
)
from flowgraph.mcp.tools.base import WorkflowTool
from flowgraph.schemas.common import ToolResponse
from flowgraph.utils.exceptions import BatchAbortedError, FlowGraphException, StructuralError


TOOL_CLASSES = (
    DiscoverTool,
    CreateTool,
    ModifyTool,
    ConnectTool,
    ValidateTool,
    ExecuteTool,
    BatchTool,
    TemplateTool,
)


def build_tools(store=None, discovery=None) -> Dict[str, WorkflowTool]:
    """Instantiate every tool against one store and discovery service."""
    return {cls.name: cls(store=store, discovery=discovery) for cls in TOOL_CLASSES}


_default_tools: Optional[Dict[str, WorkflowTool]] = None


def get_tools() -> Dict[str, WorkflowTool]:
    global _default_tools
    if _default_tools is None:
        _default_tools = build_tools()
    return _default_tools


def _error_detail(e: FlowGraphException) -> Any:
    if isinstance(e, StructuralError) and e.issues:
        return e.issues
    if isinstance(e, BatchAbortedError):
        return {**e.result, "cause": {"code": e.cause_code, "message": str(e.cause)}}
    return e.detail


async def execute_mcp_tool(
    *,
    tool_name: str,
    args: Dict[str, Any],
    tools: Optional[Dict[str, WorkflowTool]] = None,
) -> Dict[str, Any]:
    """Run a tool and wrap its outcome in the uniform response envelope."""
    name = str(tool_name or "").strip()
    if not name:
        return ToolResponse.fail("Missing tool name", code="validation_error").to_dict()

    registry = tools if tools is not None else get_tools()
    tool = registry.get(name)
    if tool is None:
        logger.warning(f"Unknown MCP tool: {name}")
        return ToolResponse.fail(f"Unknown tool '{name}'", code="not_found").to_dict()

    args = args or {}
    log_tool_call(name, args)
    start_time = time.time()

    try:
        params = tool.params_model.model_validate(args)
        response = ToolResponse.ok(await tool.execute(params))
    except pydantic.ValidationError as e:
        errors = e.errors(include_url=False, include_context=False, include_input=False)
        response = ToolResponse.fail(
            f"Invalid arguments for '{name}': {errors[0]['msg'] if errors else str(e)}",
            code="validation_error",
            detail=errors,
        )
    except FlowGraphException as e:
        response = ToolResponse.fail(e.message, code=e.code, detail=_error_detail(e))
    except Exception as e:
        logger.exception(f"MCP tool '{name}' crashed: {e}")
        response = ToolResponse.fail(f"Tool '{name}' failed: {str(e)}", code="internal_error")

    log_tool_result(name, response.success, (time.time() - start_time) * 1000, error=response.error)
    return response.to_dict()
