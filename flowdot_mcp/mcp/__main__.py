"""Entry point: ``python -m flowdot_mcp.mcp`` (or the ``flowdot-mcp`` script).

Starts the FlowDot MCP server over stdio.

Environment variables
---------------------
FLOWDOT_API_TOKEN          FlowDot API token (required for authenticated calls).
FLOWDOT_HUB_URL            FlowDot hub URL (default ``https://flowdot.ai``).
FLOWDOT_TIMEOUT            Request timeout in seconds (default ``120``).
FLOWDOT_LOG_LEVEL          Python log level (default ``WARNING``).
FLOWDOT_MAX_SCRIPT_BYTES   Largest script the validator accepts (default ``51200``).
FLOWDOT_MAX_SCRIPT_DEPTH   Deepest syntax tree the validator accepts (default ``200``).
"""

from __future__ import annotations

import asyncio
import logging
import os

from dotenv import load_dotenv

load_dotenv()

logging.basicConfig(
    level=os.environ.get("FLOWDOT_LOG_LEVEL", "WARNING").upper(),
    format="%(asctime)s %(name)s %(levelname)s %(message)s",
)

from mcp.server.stdio import stdio_server  # noqa: E402

from flowdot_mcp.client import FlowDotClient, Settings  # noqa: E402
from flowdot_mcp.mcp.server import create_server  # noqa: E402
from flowdot_mcp.mcp.tools import FlowDotMCPTools  # noqa: E402
from flowdot_mcp.validation import ValidatorConfig  # noqa: E402

logger = logging.getLogger("flowdot_mcp.mcp")


async def main() -> None:
    settings = Settings.from_env()
    if not settings.api_token:
        logger.warning("FLOWDOT_API_TOKEN is not set; authenticated calls will fail")
    client = FlowDotClient(settings)
    try:
        server = create_server(FlowDotMCPTools(client, ValidatorConfig.from_env()))
        async with stdio_server() as (read_stream, write_stream):
            init_options = server.create_initialization_options()
            await server.run(read_stream, write_stream, init_options)
    finally:
        await client.close()


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
