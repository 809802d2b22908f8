"""
MCP Server implementation using FastAPI.

This module provides MCP-compatible endpoints that external AI agents
can use to inspect and change n8n workflow graphs.
"""

import json
from typing import Any, Dict, List

from fastapi import APIRouter
from loguru import logger
from pydantic import BaseModel, Field

from flowgraph import __version__
from flowgraph.core.config import settings
from flowgraph.mcp.executor import execute_mcp_tool, get_tools


# Create router
mcp_router = APIRouter(prefix="/mcp", tags=["MCP"])


# =============================================================================
# Pydantic Models for MCP Protocol
# =============================================================================

class MCPToolDefinition(BaseModel):
    """MCP tool definition."""
    name: str
    description: str
    inputSchema: Dict[str, Any]


class MCPListToolsResponse(BaseModel):
    """Response for listing available tools."""
    tools: List[MCPToolDefinition]


class MCPToolCallRequest(BaseModel):
    """Request to call a tool."""
    name: str
    arguments: Dict[str, Any] = Field(default_factory=dict)


class MCPToolCallResponse(BaseModel):
    """Response from a tool call."""
    content: List[Dict[str, Any]]
    isError: bool = False


class MCPServerInfo(BaseModel):
    """MCP server information."""
    name: str = settings.APP_NAME
    version: str = __version__
    description: str = "MCP server for managing n8n workflow graphs"
    protocolVersion: str = "2024-11-05"


# =============================================================================
# MCP Protocol Endpoints
# =============================================================================

@mcp_router.get("/info", response_model=MCPServerInfo)
async def get_server_info():
    """Get MCP server information."""
    return MCPServerInfo()


@mcp_router.get("/tools", response_model=MCPListToolsResponse)
async def list_tools():
    """List available MCP tools with their input schemas."""
    return MCPListToolsResponse(
        tools=[
            MCPToolDefinition(name=tool.name, description=tool.description, inputSchema=tool.input_schema)
            for tool in get_tools().values()
        ]
    )


@mcp_router.post("/tools/call", response_model=MCPToolCallResponse)
async def call_tool(tool_call: MCPToolCallRequest):
    """
    Call an MCP tool.

    Tool failures are reported in-band: the envelope is returned as text content
    and ``isError`` is set, the HTTP status stays 200.
    """
    logger.info(f"MCP tool call: {tool_call.name}")
    result = await execute_mcp_tool(tool_name=tool_call.name, args=tool_call.arguments)
    return MCPToolCallResponse(
        content=[{"type": "text", "text": json.dumps(result, indent=2, default=str)}],
        isError=not result.get("success", False),
    )
