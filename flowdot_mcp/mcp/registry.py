"""Tool catalogue for the FlowDot MCP server.

``TOOL_CATALOG`` is the single source of truth for tool metadata (name,
description, JSON schema).  The server dispatches on it directly.

Adding a tool: append to ``TOOL_CATALOG`` and add the method to
``FlowDotMCPTools``.  Two files, nothing else.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

DATA_TYPES = ["text", "number", "boolean", "json", "array", "any"]


@dataclass
class ToolDef:
    """Provider-neutral tool definition; ``parameters`` is a JSON Schema object."""

    name: str
    description: str
    parameters: dict[str, Any] = field(default_factory=dict)


def _td(name: str, desc: str, props: dict[str, Any] | None = None, req: list[str] | None = None) -> ToolDef:
    return ToolDef(
        name=name,
        description=desc,
        parameters={"type": "object", "properties": props or {}, "required": req or []},
    )


def _str(description: str, enum: list[str] | None = None) -> dict:
    schema: dict[str, Any] = {"type": "string", "description": description}
    if enum:
        schema["enum"] = enum
    return schema


def _bool(description: str) -> dict:
    return {"type": "boolean", "description": description}


def _int(description: str) -> dict:
    return {"type": "integer", "description": description}


def _arr(description: str, items: dict) -> dict:
    return {"type": "array", "description": description, "items": items}


def _obj(description: str) -> dict:
    return {"type": "object", "description": description}


_PORT = {
    "type": "object",
    "properties": {
        "name": _str("Port name (referenced as inputs.<name> / returned key)"),
        "dataType": _str("Data type", DATA_TYPES),
        "description": _str("Port description"),
    },
    "required": ["name", "dataType"],
}

_PROPERTY = {
    "type": "object",
    "properties": {
        "key": _str("Property key (referenced as properties.<key>)"),
        "label": _str("Display label"),
        "dataType": _str("Data type", DATA_TYPES),
        "value": {"description": "Default value"},
        "description": _str("Property description"),
    },
    "required": ["key", "dataType"],
}

_TAGS = _arr("Tags", {"type": "string"})

_NODE_FIELDS: dict[str, Any] = {
    "name": _str("Unique node name (letters, digits, underscores)"),
    "title": _str("Display title"),
    "description": _str("What the node does"),
    "category": _str("Category (default: custom)"),
    "version": _str("Semantic version (default: 1.0.0)"),
    "icon": _str("Icon name"),
    "inputs": _arr("Input ports", _PORT),
    "outputs": _arr("Output ports; processData must return an object with these keys", _PORT),
    "properties": _arr("Configurable properties", _PROPERTY),
    "script_code": _str("JavaScript defining function processData(inputs, properties, llm)"),
    "execution_timeout": _int("Execution timeout in ms"),
    "memory_limit": _int("Memory limit in MB"),
    "tags": _TAGS,
    "llm_enabled": _bool("Give the script access to llm.call()"),
}


# ==================================================================
# TOOL_CATALOG: every tool exposed over MCP.
# Each entry: (method_name_on_FlowDotMCPTools, ToolDef)
# ==================================================================

TOOL_CATALOG: list[tuple[str, ToolDef]] = [
    # ── WORKFLOWS (4) ─────────────────────────────────────────────
    ("list_workflows", _td("list_workflows", "List your FlowDot workflows", {
        "filter": _str("Filter workflows by name"),
        "favorites_only": _bool("Only return favorited workflows"),
    })),
    ("get_workflow", _td("get_workflow", "Get a workflow's details",
                         {"workflow_id": _str("Workflow ID")}, ["workflow_id"])),
    ("execute_workflow", _td("execute_workflow", "Execute a workflow with the given inputs", {
        "workflow_id": _str("Workflow ID"),
        "inputs": _obj("Input values keyed by input name"),
        "wait_for_completion": _bool("Wait for the run to finish (default true)"),
    }, ["workflow_id"])),
    ("get_execution", _td("get_execution", "Get the status and outputs of an execution",
                          {"execution_id": _str("Execution ID")}, ["execution_id"])),

    # ── CUSTOM NODES: READ (4) ────────────────────────────────────
    ("list_custom_nodes", _td("list_custom_nodes", "List your custom nodes", {
        "search": _str("Search term"),
        "category": _str("Category filter"),
        "limit": _int("Page size"),
        "page": _int("Page number"),
    })),
    ("search_public_custom_nodes", _td("search_public_custom_nodes", "Search public custom nodes", {
        "q": _str("Search query"),
        "category": _str("Category filter"),
        "tags": _TAGS,
        "verified_only": _bool("Only verified nodes"),
        "sort": _str("Sort order", ["trending", "popular", "recent", "most_used"]),
        "limit": _int("Page size"),
        "page": _int("Page number"),
    })),
    ("get_custom_node", _td("get_custom_node", "Get a custom node including its script",
                            {"node_id": _str("Custom node ID")}, ["node_id"])),
    ("get_custom_node_comments", _td("get_custom_node_comments", "Get comments on a custom node",
                                     {"node_id": _str("Custom node ID")}, ["node_id"])),

    # ── CUSTOM NODES: LOCAL (2) ───────────────────────────────────
    ("get_custom_node_template", _td(
        "get_custom_node_template",
        "Generate a processData script template for the given ports (no API call)",
        {
            "inputs": _NODE_FIELDS["inputs"],
            "outputs": _NODE_FIELDS["outputs"],
            "properties": _NODE_FIELDS["properties"],
            "llm_enabled": _NODE_FIELDS["llm_enabled"],
        },
        ["inputs", "outputs"],
    )),
    ("validate_custom_node_script", _td(
        "validate_custom_node_script",
        "Statically check a custom node script against its declared ports (no API call)",
        {
            "script_code": _NODE_FIELDS["script_code"],
            "outputs": _NODE_FIELDS["outputs"],
            "inputs": _NODE_FIELDS["inputs"],
        },
        ["script_code", "outputs"],
    )),

    # ── CUSTOM NODES: WRITE (8) ───────────────────────────────────
    ("create_custom_node", _td(
        "create_custom_node",
        "Create a custom node.  The script is validated first; errors block creation.",
        {**_NODE_FIELDS, "visibility": _str("Visibility", ["private", "public", "unlisted"])},
        ["name", "title", "description", "inputs", "outputs", "script_code"],
    )),
    ("update_custom_node", _td(
        "update_custom_node",
        "Update a custom node.  A new script is validated first; errors block the update.",
        {"node_id": _str("Custom node ID"), **_NODE_FIELDS},
        ["node_id"],
    )),
    ("delete_custom_node", _td("delete_custom_node", "Delete one of your custom nodes",
                               {"node_id": _str("Custom node ID")}, ["node_id"])),
    ("copy_custom_node", _td("copy_custom_node", "Copy a public custom node into your library", {
        "node_id": _str("Custom node ID"),
        "name": _str("Name for the copy"),
    }, ["node_id"])),
    ("toggle_custom_node_visibility", _td("toggle_custom_node_visibility", "Change a custom node's visibility", {
        "node_id": _str("Custom node ID"),
        "visibility": _str("New visibility", ["private", "public", "unlisted"]),
    }, ["node_id", "visibility"])),
    ("vote_custom_node", _td("vote_custom_node", "Vote on a custom node", {
        "node_id": _str("Custom node ID"),
        "vote": _str("Vote", ["up", "down", "remove"]),
    }, ["node_id", "vote"])),
    ("favorite_custom_node", _td("favorite_custom_node", "Add or remove a custom node from favorites", {
        "node_id": _str("Custom node ID"),
        "favorite": _bool("True to favorite, false to unfavorite"),
    }, ["node_id", "favorite"])),
    ("add_custom_node_comment", _td("add_custom_node_comment", "Comment on a custom node", {
        "node_id": _str("Custom node ID"),
        "content": _str("Comment text"),
        "parent_id": _int("Parent comment ID when replying"),
    }, ["node_id", "content"])),
]
