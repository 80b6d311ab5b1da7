"""MCP server — catalogue integrity, dispatch and error surfacing."""

from __future__ import annotations

import inspect
from unittest.mock import AsyncMock, MagicMock

import pytest
from mcp import types

from flowdot_mcp.mcp.registry import TOOL_CATALOG
from flowdot_mcp.mcp.server import create_server
from flowdot_mcp.mcp.tools import FlowDotMCPTools, ToolResult

# ---------------------------------------------------------------------------
# Catalog integrity
# ---------------------------------------------------------------------------


def test_catalog_has_18_tools():
    assert len(TOOL_CATALOG) == 18


def test_catalog_names_are_unique():
    names = [td.name for _m, td in TOOL_CATALOG]
    assert len(names) == len(set(names))


def test_catalog_method_names_match_tools_class():
    for method_name, _td in TOOL_CATALOG:
        assert hasattr(FlowDotMCPTools, method_name), (
            f"TOOL_CATALOG references '{method_name}' but FlowDotMCPTools has no such method"
        )


def test_catalog_parameters_match_method_signatures():
    for method_name, td in TOOL_CATALOG:
        sig = inspect.signature(getattr(FlowDotMCPTools, method_name))
        params = set(sig.parameters) - {"self"}
        assert set(td.parameters["properties"]) == params, method_name
        required = {n for n, p in sig.parameters.items() if n != "self" and p.default is inspect.Parameter.empty}
        assert set(td.parameters["required"]) == required, method_name


def test_port_schema_restricts_data_type():
    schema = dict(TOOL_CATALOG)["create_custom_node"].parameters["properties"]["outputs"]
    assert schema["items"]["properties"]["dataType"]["enum"] == ["text", "number", "boolean", "json", "array", "any"]


# ---------------------------------------------------------------------------
# list_tools handler
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_list_tools_returns_mcp_types():
    server = create_server(MagicMock(spec=FlowDotMCPTools))

    handler = server.request_handlers[types.ListToolsRequest]
    server_result = await handler(types.ListToolsRequest(method="tools/list"))
    tool_list = server_result.root.tools

    assert len(tool_list) == 18
    assert all(isinstance(t, types.Tool) for t in tool_list)
    assert tool_list[0].name == "list_workflows"


# ---------------------------------------------------------------------------
# call_tool handler
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_tools():
    tools = MagicMock(spec=FlowDotMCPTools)
    tools.get_custom_node = AsyncMock(return_value=ToolResult(ok=True, summary="## adder", data={"id": "n1"}))
    tools.delete_custom_node = AsyncMock(return_value=ToolResult(
        ok=False, summary="Error deleting custom node: Forbidden", error={"type": "FlowDotAPIError"},
    ))
    return tools


async def _call(server, name: str, arguments: dict):
    handler = server.request_handlers[types.CallToolRequest]
    server_result = await handler(types.CallToolRequest(
        method="tools/call",
        params=types.CallToolRequestParams(name=name, arguments=arguments),
    ))
    return server_result.root


@pytest.mark.asyncio
async def test_call_tool_dispatches_by_name(mock_tools):
    result = await _call(create_server(mock_tools), "get_custom_node", {"node_id": "n1"})

    mock_tools.get_custom_node.assert_awaited_once_with(node_id="n1")
    assert not result.isError
    assert result.content[0].text == "## adder"


@pytest.mark.asyncio
async def test_failed_tool_result_is_an_error_response(mock_tools):
    result = await _call(create_server(mock_tools), "delete_custom_node", {"node_id": "n1"})

    assert result.isError
    assert "Error deleting custom node: Forbidden" in result.content[0].text


@pytest.mark.asyncio
async def test_call_tool_unknown_name(mock_tools):
    result = await _call(create_server(mock_tools), "nonexistent_tool", {})

    assert result.isError
    assert "Unknown tool" in result.content[0].text


@pytest.mark.asyncio
async def test_validation_runs_end_to_end():
    tools = FlowDotMCPTools(AsyncMock())
    script = "function processData(inputs, properties) {\n  return { total: inputs.a };\n}\n"
    result = await _call(create_server(tools), "validate_custom_node_script", {
        "script_code": script,
        "outputs": [{"name": "total", "dataType": "number"}],
        "inputs": [{"name": "a", "dataType": "number"}],
    })

    assert not result.isError
    assert "No issues found." in result.content[0].text


# ---------------------------------------------------------------------------
# Entry point importable
# ---------------------------------------------------------------------------


def test_entrypoint_importable():
    import flowdot_mcp.mcp.__main__  # noqa: F401
