"""FlowDot Hub HTTP client."""

from flowdot_mcp.client.config import Settings
from flowdot_mcp.client.flowdot_client import FlowDotAPIError, FlowDotClient

__all__ = ["FlowDotAPIError", "FlowDotClient", "Settings"]
