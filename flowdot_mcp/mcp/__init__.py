"""FlowDot MCP tool surface and stdio server."""

from flowdot_mcp.mcp.tools import FlowDotMCPTools, ToolResult
from flowdot_mcp.mcp.server import create_server

__all__ = ["FlowDotMCPTools", "ToolResult", "create_server"]
