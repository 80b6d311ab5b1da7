"""Async FlowDot Hub REST API client using httpx.

Every endpoint answers with an envelope::

    {"success": true,  "data": ...}
    {"success": false, "error": "...", "message": "...", "debug": {"hints": [...], "code_preview": "..."}}

Methods return the unwrapped ``data``.  Any failure (transport error, non-2xx
status, ``success: false`` or a non-JSON body) raises FlowDotAPIError.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from flowdot_mcp.client.config import Settings

logger = logging.getLogger("flowdot_mcp.client")

# debug.code_preview is cut to this many characters in error messages.
_CODE_PREVIEW_LIMIT = 50


class FlowDotAPIError(Exception):
    """A FlowDot API call failed.  ``status_code`` is None for transport errors."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def _error_message(body: Any, status_code: int) -> str:
    if not isinstance(body, dict):
        return f"API error: {status_code}"
    msg = str(body.get("error") or body.get("message") or f"API error: {status_code}")
    debug = body.get("debug")
    if isinstance(debug, dict):
        hints = debug.get("hints")
        if isinstance(hints, list) and hints:
            msg += " | Hints: " + "; ".join(str(h) for h in hints)
        preview = debug.get("code_preview")
        if preview:
            msg += f' | Code starts with: "{str(preview)[:_CODE_PREVIEW_LIMIT]}..."'
    return msg


def _drop_none(d: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in d.items() if v is not None}


class FlowDotClient:
    """Thin async wrapper around the FlowDot Hub MCP API."""

    def __init__(self, settings: Settings, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._settings = settings
        self._client = httpx.AsyncClient(
            base_url=settings.base_url,
            headers=settings.headers,
            timeout=httpx.Timeout(settings.timeout, connect=10.0),
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _request(
        self,
        method: str,
        path: str,
        params: dict | None = None,
        payload: dict | None = None,
    ) -> Any:
        try:
            r = await self._client.request(method, path, params=params or None, json=payload)
        except httpx.HTTPError as e:
            logger.error("%s %s failed: %s", method, path, e)
            raise FlowDotAPIError(f"Request to FlowDot failed: {e}") from e

        try:
            body = r.json()
        except ValueError:
            body = None

        if r.is_error or not isinstance(body, dict) or not body.get("success"):
            logger.error("%s %s -> %s", method, path, r.status_code)
            raise FlowDotAPIError(_error_message(body, r.status_code), r.status_code)
        return body.get("data")

    async def _get(self, path: str, params: dict | None = None) -> Any:
        return await self._request("GET", path, params=params)

    async def _post(self, path: str, payload: dict | None = None) -> Any:
        return await self._request("POST", path, payload=payload or {})

    async def _put(self, path: str, payload: dict | None = None) -> Any:
        return await self._request("PUT", path, payload=payload or {})

    async def _delete(self, path: str) -> Any:
        return await self._request("DELETE", path)

    # ==================================================================
    # WORKFLOWS
    # ==================================================================

    async def list_workflows(self, filter: str | None = None, favorites_only: bool = False) -> Any:
        params: dict[str, Any] = {}
        if filter:
            params["filter"] = filter
        if favorites_only:
            params["favorites_only"] = "true"
        return await self._get("/workflows", params)

    async def get_workflow(self, workflow_id: str) -> Any:
        return await self._get(f"/workflows/{workflow_id}")

    async def execute_workflow(
        self,
        workflow_id: str,
        inputs: dict[str, Any] | None = None,
        wait_for_completion: bool = True,
        mode: str = "flowdot",
    ) -> Any:
        payload = {"inputs": inputs or {}, "wait_for_completion": wait_for_completion, "mode": mode}
        return await self._post(f"/workflows/{workflow_id}/execute", payload)

    async def get_execution(self, execution_id: str) -> Any:
        return await self._get(f"/executions/{execution_id}")

    # ==================================================================
    # CUSTOM NODES
    # ==================================================================

    async def list_custom_nodes(
        self,
        search: str | None = None,
        category: str | None = None,
        limit: int | None = None,
        page: int | None = None,
    ) -> Any:
        params = _drop_none({"search": search, "category": category, "limit": limit, "page": page})
        return await self._get("/custom-nodes", params)

    async def search_public_custom_nodes(
        self,
        q: str | None = None,
        category: str | None = None,
        tags: list[str] | None = None,
        verified_only: bool = False,
        sort: str | None = None,
        limit: int | None = None,
        page: int | None = None,
    ) -> Any:
        params = _drop_none({"q": q, "category": category, "sort": sort, "limit": limit, "page": page})
        if tags:
            params["tags"] = json.dumps(tags, separators=(",", ":"))
        if verified_only:
            params["verified_only"] = "true"
        return await self._get("/custom-nodes/search", params)

    async def get_custom_node(self, node_id: str) -> Any:
        return await self._get(f"/custom-nodes/{node_id}")

    async def get_custom_node_comments(self, node_id: str) -> Any:
        return await self._get(f"/custom-nodes/{node_id}/comments")

    async def create_custom_node(self, node: dict[str, Any]) -> Any:
        return await self._post("/custom-nodes", node)

    async def update_custom_node(self, node_id: str, updates: dict[str, Any]) -> Any:
        return await self._put(f"/custom-nodes/{node_id}", updates)

    async def delete_custom_node(self, node_id: str) -> Any:
        return await self._delete(f"/custom-nodes/{node_id}")

    async def copy_custom_node(self, node_id: str, name: str | None = None) -> Any:
        return await self._post(f"/custom-nodes/{node_id}/copy", _drop_none({"name": name}))

    async def toggle_custom_node_visibility(self, node_id: str, visibility: str) -> Any:
        return await self._post(f"/custom-nodes/{node_id}/visibility", {"visibility": visibility})

    async def vote_custom_node(self, node_id: str, vote: str) -> Any:
        return await self._post(f"/custom-nodes/{node_id}/vote", {"vote": vote})

    async def favorite_custom_node(self, node_id: str, favorite: bool) -> Any:
        return await self._post(f"/custom-nodes/{node_id}/favorite", {"favorite": favorite})

    async def add_custom_node_comment(self, node_id: str, content: str, parent_id: int | None = None) -> Any:
        payload = _drop_none({"content": content, "parent_id": parent_id})
        return await self._post(f"/custom-nodes/{node_id}/comments", payload)

