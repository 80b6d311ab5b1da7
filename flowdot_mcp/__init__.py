"""MCP server for FlowDot workflows and custom nodes."""

__version__ = "0.1.0"
