"""FlowDot MCP tool surface for workflows and custom nodes.

Each method wraps the corresponding ``FlowDotClient`` method (or a local
helper) and returns a ``ToolResult`` envelope.  ``summary`` is the markdown
shown to the caller; ``data`` keeps the raw payload for programmatic use.

Custom-node scripts are validated before they are sent: any error-severity
finding blocks the create/update call and the report is returned instead.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any

from flowdot_mcp.client import FlowDotAPIError, FlowDotClient
from flowdot_mcp.mcp.templates import render_template_response
from flowdot_mcp.validation import Finding, ValidatorConfig, ValidatorError, format_report, has_blocking, validate

logger = logging.getLogger("flowdot_mcp.mcp.tools")

# Descriptions in node listings are cut to this many characters.
_DESCRIPTION_PREVIEW = 100


@dataclass
class ToolResult:
    """Normalized envelope for every tool execution result.

    ok:       True if the tool completed without error.
    summary:  Markdown text returned to the MCP caller.
    facts:    Small structured key→value results (ids, counts).
    data:     Raw API payload or machine-readable findings.
    error:    Present when ok=False.  Dict with keys:
                type:    FlowDotAPIError / ScriptValidationError / ValidatorError / InvalidArguments
                message: Human-readable summary.
                detail:  Status code, findings, or other context.
    """

    ok: bool
    summary: str
    data: Any = None
    error: dict | None = None
    facts: dict = field(default_factory=dict)


def _ok(summary: str, data: Any, **facts: Any) -> ToolResult:
    return ToolResult(ok=True, summary=summary, data=data, facts=facts)


def _fail(action: str, e: FlowDotAPIError) -> ToolResult:
    return ToolResult(
        ok=False,
        summary=f"Error {action}: {e.message}",
        error={"type": "FlowDotAPIError", "message": e.message, "detail": {"status_code": e.status_code}},
    )


def _invalid(message: str) -> ToolResult:
    return ToolResult(ok=False, summary=message, error={"type": "InvalidArguments", "message": message})


def _validator_fault(e: Exception) -> ToolResult:
    logger.warning("Script validator fault: %s", e)
    msg = f"Script validator failed internally: {e}"
    return ToolResult(ok=False, summary=msg, error={"type": "ValidatorError", "message": msg, "detail": str(e)})


def _blocked(action: str, findings: list[Finding]) -> ToolResult:
    errors = [f for f in findings if f.blocking]
    msg = f"Custom node not {action}: the script has {len(errors)} blocking error(s)."
    return ToolResult(
        ok=False,
        summary=f"{msg} Fix them and try again.\n\n{format_report(findings)}",
        data={"findings": [f.to_dict() for f in findings]},
        error={
            "type": "ScriptValidationError",
            "message": msg,
            "detail": [f.to_dict() for f in errors],
        },
    )


def _json_block(data: Any) -> str:
    return "```json\n" + json.dumps(data, indent=2, default=str) + "\n```"


def _page_items(raw: Any) -> list[dict]:
    if isinstance(raw, dict) and isinstance(raw.get("data"), list):
        return raw["data"]
    return raw if isinstance(raw, list) else []


def _node_lines(node: dict) -> list[str]:
    lines = [f"### {node.get('name', '?')}", f"- **ID:** {node.get('id', '?')}", f"- **Title:** {node.get('title', '')}"]
    desc = node.get("description") or ""
    if desc:
        cut = "..." if len(desc) > _DESCRIPTION_PREVIEW else ""
        lines.append(f"- **Description:** {desc[:_DESCRIPTION_PREVIEW]}{cut}")
    lines.append(f"- **Category:** {node.get('category') or 'custom'}")
    lines.append(f"- **Version:** {node.get('version') or '1.0.0'}")
    lines.append(f"- **Visibility:** {node.get('visibility', '?')}")
    if node.get("is_verified"):
        lines.append("- **Verified:** Yes")
    if node.get("tags"):
        lines.append(f"- **Tags:** {', '.join(node['tags'])}")
    lines.append("")
    return lines


def _port_section(title: str, ports: list[dict] | None) -> list[str]:
    if not ports:
        return []
    lines = [f"### {title}"]
    for p in ports:
        desc = f": {p['description']}" if p.get("description") else ""
        lines.append(f"- **{p.get('name', '?')}** ({p.get('dataType', 'any')}){desc}")
    lines.append("")
    return lines


class FlowDotMCPTools:
    """FlowDot MCP tools returning ``ToolResult`` envelopes."""

    def __init__(self, client: FlowDotClient, validator_config: ValidatorConfig | None = None) -> None:
        self._client = client
        self._validator_config = validator_config

    # ==================================================================
    # WORKFLOWS
    # ==================================================================

    async def list_workflows(self, filter: str | None = None, favorites_only: bool = False) -> ToolResult:
        try:
            raw = await self._client.list_workflows(filter, favorites_only)
        except FlowDotAPIError as e:
            return _fail("listing workflows", e)
        workflows = raw if isinstance(raw, list) else []
        if not workflows:
            return _ok("No workflows found.", raw, count=0)
        lines = [f"## Workflows ({len(workflows)})", ""]
        for wf in workflows:
            desc = f": {wf['description']}" if wf.get("description") else ""
            lines.append(f"- **{wf.get('name', '?')}** (`{wf.get('id', '?')}`){desc}")
        return _ok("\n".join(lines), raw, count=len(workflows))

    async def get_workflow(self, workflow_id: str) -> ToolResult:
        try:
            raw = await self._client.get_workflow(workflow_id)
        except FlowDotAPIError as e:
            return _fail("getting workflow", e)
        name = raw.get("name", "?") if isinstance(raw, dict) else "?"
        return _ok(f"## {name}\n\n**ID:** {workflow_id}\n\n{_json_block(raw)}", raw)

    async def execute_workflow(
        self,
        workflow_id: str,
        inputs: dict[str, Any] | None = None,
        wait_for_completion: bool = True,
    ) -> ToolResult:
        try:
            raw = await self._client.execute_workflow(workflow_id, inputs, wait_for_completion)
        except FlowDotAPIError as e:
            return _fail("executing workflow", e)
        exec_id = raw.get("execution_id") if isinstance(raw, dict) else None
        status = raw.get("status", "?") if isinstance(raw, dict) else "?"
        lines = [
            "## Workflow Execution",
            "",
            f"**Execution ID:** {exec_id or 'n/a'}",
            f"**Status:** {status}",
        ]
        if isinstance(raw, dict) and raw.get("outputs"):
            lines += ["", "### Outputs", _json_block(raw["outputs"])]
        return _ok("\n".join(lines), raw, execution_id=exec_id)

    async def get_execution(self, execution_id: str) -> ToolResult:
        try:
            raw = await self._client.get_execution(execution_id)
        except FlowDotAPIError as e:
            return _fail("getting execution", e)
        status = raw.get("status", "?") if isinstance(raw, dict) else "?"
        lines = [f"## Execution {execution_id}", "", f"**Status:** {status}"]
        if isinstance(raw, dict):
            if raw.get("duration_ms") is not None:
                lines.append(f"**Duration:** {raw['duration_ms']}ms")
            if raw.get("error"):
                lines.append(f"**Error:** {raw['error']}")
            if raw.get("outputs"):
                lines += ["", "### Outputs", _json_block(raw["outputs"])]
        return _ok("\n".join(lines), raw, status=status)

    # ==================================================================
    # CUSTOM NODES: read
    # ==================================================================

    async def list_custom_nodes(
        self,
        search: str | None = None,
        category: str | None = None,
        limit: int | None = None,
        page: int | None = None,
    ) -> ToolResult:
        try:
            raw = await self._client.list_custom_nodes(search, category, limit, page)
        except FlowDotAPIError as e:
            return _fail("listing custom nodes", e)
        nodes = _page_items(raw)
        if not nodes:
            return _ok("No custom nodes found.", raw, count=0)
        total = raw.get("total", len(nodes)) if isinstance(raw, dict) else len(nodes)
        lines = ["## Your Custom Nodes", ""]
        if isinstance(raw, dict) and "current_page" in raw:
            lines += [f"Found {total} custom nodes (page {raw['current_page']}/{raw.get('last_page', '?')})", ""]
        for node in nodes:
            lines += _node_lines(node)
        return _ok("\n".join(lines).rstrip(), raw, count=len(nodes))

    async def search_public_custom_nodes(
        self,
        q: str | None = None,
        category: str | None = None,
        tags: list[str] | None = None,
        verified_only: bool = False,
        sort: str | None = None,
        limit: int | None = None,
        page: int | None = None,
    ) -> ToolResult:
        try:
            raw = await self._client.search_public_custom_nodes(q, category, tags, verified_only, sort, limit, page)
        except FlowDotAPIError as e:
            return _fail("searching custom nodes", e)
        nodes = _page_items(raw)
        if not nodes:
            return _ok("No public custom nodes matched.", raw, count=0)
        lines = [f"## Public Custom Nodes ({len(nodes)})", ""]
        for node in nodes:
            lines += _node_lines(node)
        return _ok("\n".join(lines).rstrip(), raw, count=len(nodes))

    async def get_custom_node(self, node_id: str) -> ToolResult:
        try:
            node = await self._client.get_custom_node(node_id)
        except FlowDotAPIError as e:
            return _fail("getting custom node", e)
        if not isinstance(node, dict):
            return _ok(f"## Custom node {node_id}\n\n{_json_block(node)}", node)
        verified = " [Verified]" if node.get("is_verified") else ""
        lines = [
            f"## {node.get('name', '?')}{verified}",
            "",
            f"**ID:** {node.get('id', node_id)}",
            f"**Title:** {node.get('title', '')}",
            f"**Description:** {node.get('description') or 'No description'}",
            "",
            "### Metadata",
            f"- **Category:** {node.get('category') or 'custom'}",
            f"- **Version:** {node.get('version') or '1.0.0'}",
            f"- **Author:** {node.get('user_name') or 'Unknown'}",
            f"- **Visibility:** {node.get('visibility', '?')}",
            f"- **Can Edit:** {'Yes' if node.get('can_edit') else 'No'}",
            "",
            "### Execution Settings",
            f"- **Timeout:** {node.get('execution_timeout') or 5000}ms",
            f"- **Memory Limit:** {node.get('memory_limit') or 128}MB",
            f"- **LLM Enabled:** {'Yes' if node.get('llm_config') else 'No'}",
            "",
        ]
        lines += _port_section("Inputs", node.get("inputs"))
        lines += _port_section("Outputs", node.get("outputs"))
        if node.get("properties"):
            lines.append("### Properties")
            for prop in node["properties"]:
                lines.append(f"- **{prop.get('key', '?')}** ({prop.get('dataType', 'any')}): {json.dumps(prop.get('value'))}")
            lines.append("")
        if node.get("script_code"):
            lines += ["### Script Code", "```javascript", node["script_code"], "```"]
        return _ok("\n".join(lines).rstrip(), node, node_id=node.get("id", node_id))

    async def get_custom_node_comments(self, node_id: str) -> ToolResult:
        try:
            raw = await self._client.get_custom_node_comments(node_id)
        except FlowDotAPIError as e:
            return _fail("getting custom node comments", e)
        comments = raw if isinstance(raw, list) else []
        if not comments:
            return _ok(f"No comments on custom node {node_id}.", raw, count=0)
        lines = [f"## Comments on {node_id} ({len(comments)})", ""]
        for c in comments:
            lines.append(f"- **{c.get('user_name', 'Unknown')}** ({c.get('created_at', '?')}): {c.get('content', '')}")
        return _ok("\n".join(lines), raw, count=len(comments))

    # ==================================================================
    # CUSTOM NODES: local helpers (no API call)
    # ==================================================================

    async def get_custom_node_template(
        self,
        inputs: list[dict[str, Any]],
        outputs: list[dict[str, Any]],
        properties: list[dict[str, Any]] | None = None,
        llm_enabled: bool = False,
    ) -> ToolResult:
        text = render_template_response(inputs, outputs, properties, llm_enabled)
        return _ok(text, None)

    async def validate_custom_node_script(
        self,
        script_code: str,
        outputs: list[dict[str, Any]],
        inputs: list[dict[str, Any]] | None = None,
    ) -> ToolResult:
        try:
            findings = validate(script_code, outputs, inputs or (), config=self._validator_config)
        except ValidatorError as e:
            return _validator_fault(e)
        except ValueError as e:
            return _invalid(str(e))
        blocking = has_blocking(findings)
        verdict = (
            "**Result:** blocked, the platform will reject this script."
            if blocking else "**Result:** accepted."
        )
        return _ok(
            f"{format_report(findings)}\n\n{verdict}",
            {"valid": not blocking, "findings": [f.to_dict() for f in findings]},
            valid=not blocking,
            finding_count=len(findings),
        )

    # ==================================================================
    # CUSTOM NODES: write
    # ==================================================================

    def _check_script(
        self,
        action: str,
        script_code: str,
        outputs: list[dict[str, Any]],
        inputs: list[dict[str, Any]] | None,
    ) -> tuple[list[Finding], ToolResult | None]:
        """Run the validator.  Returns (findings, early_result); early_result is set when the call must stop."""
        try:
            findings = validate(script_code, outputs, inputs or (), config=self._validator_config)
        except ValidatorError as e:
            return [], _validator_fault(e)
        except ValueError as e:
            return [], _invalid(str(e))
        if has_blocking(findings):
            logger.info("Custom node %s blocked by %d script finding(s)", action, len(findings))
            return findings, _blocked(action, findings)
        return findings, None

    async def create_custom_node(
        self,
        name: str,
        title: str,
        description: str,
        inputs: list[dict[str, Any]],
        outputs: list[dict[str, Any]],
        script_code: str,
        category: str | None = None,
        version: str | None = None,
        icon: str | None = None,
        properties: list[dict[str, Any]] | None = None,
        execution_timeout: int | None = None,
        memory_limit: int | None = None,
        visibility: str | None = None,
        tags: list[str] | None = None,
        llm_enabled: bool | None = None,
    ) -> ToolResult:
        findings, early = self._check_script("created", script_code, outputs, inputs)
        if early is not None:
            return early

        payload: dict[str, Any] = {
            "name": name,
            "title": title,
            "description": description,
            "category": category,
            "version": version,
            "icon": icon,
            "inputs": inputs,
            "outputs": outputs,
            "properties": properties,
            "script_code": script_code,
            "execution_timeout": execution_timeout,
            "memory_limit": memory_limit,
            "visibility": visibility,
            "tags": tags,
            "llm_config": {"enabled": True} if llm_enabled else None,
        }
        try:
            raw = await self._client.create_custom_node({k: v for k, v in payload.items() if v is not None})
        except FlowDotAPIError as e:
            return _fail("creating custom node", e)

        node_id = raw.get("id", "?") if isinstance(raw, dict) else "?"
        lines = [
            "## Custom Node Created Successfully",
            "",
            f"**ID:** {node_id}",
            f"**Name:** {raw.get('name', name) if isinstance(raw, dict) else name}",
            "",
            "You can now use this custom node in your workflows.",
        ]
        if findings:
            lines += ["", format_report(findings)]
        return _ok("\n".join(lines), raw, node_id=node_id, finding_count=len(findings))

    async def update_custom_node(
        self,
        node_id: str,
        name: str | None = None,
        title: str | None = None,
        description: str | None = None,
        category: str | None = None,
        version: str | None = None,
        icon: str | None = None,
        inputs: list[dict[str, Any]] | None = None,
        outputs: list[dict[str, Any]] | None = None,
        properties: list[dict[str, Any]] | None = None,
        script_code: str | None = None,
        execution_timeout: int | None = None,
        memory_limit: int | None = None,
        tags: list[str] | None = None,
        llm_enabled: bool | None = None,
    ) -> ToolResult:
        fields = {
            "name": name,
            "title": title,
            "description": description,
            "category": category,
            "version": version,
            "icon": icon,
            "inputs": inputs,
            "outputs": outputs,
            "properties": properties,
            "script_code": script_code,
            "execution_timeout": execution_timeout,
            "memory_limit": memory_limit,
            "tags": tags,
        }
        updates: dict[str, Any] = {k: v for k, v in fields.items() if v is not None}
        if llm_enabled is not None:
            # null disables the LLM capability server-side
            updates["llm_config"] = {"enabled": True} if llm_enabled else None
        if not updates:
            return _invalid("No updates provided. Please specify at least one field to update.")

        findings: list[Finding] = []
        if script_code:
            findings, early = self._check_script("updated", script_code, outputs or [], inputs)
            if early is not None:
                return early

        try:
            raw = await self._client.update_custom_node(node_id, updates)
        except FlowDotAPIError as e:
            return _fail("updating custom node", e)

        lines = [
            "## Custom Node Updated Successfully",
            "",
            f"**Node ID:** {node_id}",
            f"**Fields Updated:** {', '.join(updates)}",
        ]
        if findings:
            lines += ["", format_report(findings)]
        if script_code and outputs is None:
            lines += ["", "**Note:** Output name validation skipped (outputs not provided in update)."]
        return _ok("\n".join(lines), raw, node_id=node_id, fields=list(updates))

    async def delete_custom_node(self, node_id: str) -> ToolResult:
        try:
            raw = await self._client.delete_custom_node(node_id)
        except FlowDotAPIError as e:
            return _fail("deleting custom node", e)
        return _ok(f"Deleted custom node {node_id}.", raw, node_id=node_id)

    async def copy_custom_node(self, node_id: str, name: str | None = None) -> ToolResult:
        try:
            raw = await self._client.copy_custom_node(node_id, name)
        except FlowDotAPIError as e:
            return _fail("copying custom node", e)
        new_id = raw.get("id", "?") if isinstance(raw, dict) else "?"
        return _ok(f"## Custom Node Copied\n\n**New ID:** {new_id}\n**Source:** {node_id}", raw, node_id=new_id)

    async def toggle_custom_node_visibility(self, node_id: str, visibility: str) -> ToolResult:
        try:
            raw = await self._client.toggle_custom_node_visibility(node_id, visibility)
        except FlowDotAPIError as e:
            return _fail("changing custom node visibility", e)
        return _ok(f"Custom node {node_id} is now {visibility}.", raw, visibility=visibility)

    async def vote_custom_node(self, node_id: str, vote: str) -> ToolResult:
        try:
            raw = await self._client.vote_custom_node(node_id, vote)
        except FlowDotAPIError as e:
            return _fail("voting on custom node", e)
        count = raw.get("vote_count", "?") if isinstance(raw, dict) else "?"
        return _ok(f"Vote '{vote}' recorded for custom node {node_id} (votes: {count}).", raw)

    async def favorite_custom_node(self, node_id: str, favorite: bool) -> ToolResult:
        try:
            raw = await self._client.favorite_custom_node(node_id, favorite)
        except FlowDotAPIError as e:
            return _fail("updating favorite", e)
        state = "added to" if favorite else "removed from"
        return _ok(f"Custom node {node_id} {state} favorites.", raw)

    async def add_custom_node_comment(self, node_id: str, content: str, parent_id: int | None = None) -> ToolResult:
        try:
            raw = await self._client.add_custom_node_comment(node_id, content, parent_id)
        except FlowDotAPIError as e:
            return _fail("adding comment", e)
        comment_id = raw.get("id", "?") if isinstance(raw, dict) else "?"
        return _ok(f"Comment {comment_id} added to custom node {node_id}.", raw, comment_id=comment_id)
