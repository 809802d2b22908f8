"""
MCP tools for managing n8n workflow graphs.

Each tool validates its own parameter model and exposes one capability to agents.
"""

from flowgraph.mcp.tools.discover import DiscoverTool
from flowgraph.mcp.tools.create import CreateTool
from flowgraph.mcp.tools.modify import ModifyTool
from flowgraph.mcp.tools.connect import ConnectTool
from flowgraph.mcp.tools.validate import ValidateTool
from flowgraph.mcp.tools.execute import ExecuteTool
from flowgraph.mcp.tools.batch import BatchTool
from flowgraph.mcp.tools.template import TemplateTool

__all__ = [
    "DiscoverTool",
    "CreateTool",
    "ModifyTool",
    "ConnectTool",
    "ValidateTool",
    "ExecuteTool",
    "BatchTool",
    "TemplateTool",
]
