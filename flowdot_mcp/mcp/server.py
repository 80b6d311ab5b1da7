"""MCP server exposing FlowDotMCPTools.

Uses the low-level ``mcp.server.Server`` with a single ``call_tool`` dispatcher
driven by ``TOOL_CATALOG``.  A tool that returns ``ok=False`` raises, which the
MCP layer reports to the caller as an ``isError`` result carrying the summary.
"""

from __future__ import annotations

import logging
from typing import Any

from mcp import types
from mcp.server import Server

from flowdot_mcp.mcp.registry import TOOL_CATALOG
from flowdot_mcp.mcp.tools import FlowDotMCPTools, ToolResult

logger = logging.getLogger(__name__)

# Pre-compute name → method_name for O(1) dispatch.
_DISPATCH: dict[str, str] = {td.name: method_name for method_name, td in TOOL_CATALOG}


class ToolCallError(Exception):
    """A tool completed with ok=False; the message is the markdown summary."""


def create_server(tools: FlowDotMCPTools) -> Server:
    """Create an MCP Server wired to the given *tools* instance."""
    server = Server("flowdot")

    @server.list_tools()
    async def list_tools() -> list[types.Tool]:
        return [
            types.Tool(
                name=td.name,
                description=td.description or "",
                inputSchema=td.parameters,
            )
            for _method_name, td in TOOL_CATALOG
        ]

    @server.call_tool()
    async def call_tool(name: str, arguments: dict[str, Any] | None = None) -> list[types.TextContent]:
        method_name = _DISPATCH.get(name)
        if method_name is None:
            raise ToolCallError(f"Unknown tool: {name}")

        method = getattr(tools, method_name)
        try:
            result: ToolResult = await method(**(arguments or {}))
        except TypeError as e:
            raise ToolCallError(f"Invalid arguments for {name}: {e}") from e

        if not result.ok:
            logger.info("Tool %s failed: %s", name, (result.error or {}).get("type"))
            raise ToolCallError(result.summary)
        return [types.TextContent(type="text", text=result.summary)]

    return server
