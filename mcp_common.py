from __future__ import annotations

import json
from typing import Any, Callable, Dict, Optional


MCP_SERVER_INFO = {"name": "placescan MCP", "version": "0.1.0"}

SCOPE_ENUM = ["tree", "scripts", "remotes", "properties", "services"]


def tool_list() -> Dict[str, Any]:
    return {
        "tools": [
            {
                "name": "list_games",
                "description": "List scanned places (newest first) with their tree hash and counts.",
                "inputSchema": {"type": "object", "properties": {}},
            },
            {
                "name": "get_game",
                "description": "Fetch the manifest of one scanned place.",
                "inputSchema": {
                    "type": "object",
                    "properties": {"place_id": {"type": "integer"}},
                    "required": ["place_id"],
                },
            },
            {
                "name": "get_game_scope",
                "description": "Query one scope of a scanned place. Scripts return outlines unless include_source is set.",
                "inputSchema": {
                    "type": "object",
                    "properties": {
                        "place_id": {"type": "integer"},
                        "scope": {"type": "string", "enum": SCOPE_ENUM},
                        "path": {"type": "string", "description": "Case-insensitive path prefix."},
                        "search": {"type": "string", "description": "Case-insensitive substring."},
                        "class": {"type": "string", "description": "Exact class name (case-insensitive)."},
                        "include_source": {"type": "boolean"},
                        "max_depth": {"type": "integer", "minimum": 0},
                    },
                    "required": ["place_id", "scope"],
                },
            },
            {
                "name": "get_scan_status",
                "description": "List scans that are still receiving chunks.",
                "inputSchema": {"type": "object", "properties": {}},
            },
        ]
    }


def tool_result(payload: Any, is_error: bool = False) -> Dict[str, Any]:
    return {
        "content": [{"type": "text", "text": json.dumps(payload, indent=2, ensure_ascii=False)}],
        "isError": is_error,
    }


def _reply(req_id: Any, result: Dict[str, Any]) -> Dict[str, Any]:
    return {"jsonrpc": "2.0", "id": req_id, "result": result}


def _rpc_error(req_id: Any, code: int, message: str) -> Dict[str, Any]:
    return {"jsonrpc": "2.0", "id": req_id, "error": {"code": code, "message": message}}


TOOL_NAMES = {tool["name"] for tool in tool_list()["tools"]}


def handle_request(
    req: Dict[str, Any],
    tool_call: Callable[[str, Dict[str, Any]], Dict[str, Any]],
) -> Optional[Dict[str, Any]]:
    """Dispatch one JSON-RPC message. Notifications get no reply (None)."""
    req_id = req.get("id")
    method = req.get("method")
    params = req.get("params") or {}
    if not isinstance(method, str) or not isinstance(params, dict):
        return _rpc_error(req_id, -32600, "Invalid request")

    if method == "initialize":
        return _reply(req_id, {
            "protocolVersion": params.get("protocolVersion") or "2024-11-05",
            "serverInfo": MCP_SERVER_INFO,
            "capabilities": {"tools": {"listChanged": False}},
        })

    if method == "tools/list":
        return _reply(req_id, tool_list())

    if method == "tools/call":
        name = params.get("name")
        args = params.get("arguments") or {}
        if not isinstance(name, str) or name not in TOOL_NAMES:
            return _rpc_error(req_id, -32602, f"Unknown tool: {name}")
        if not isinstance(args, dict):
            return _rpc_error(req_id, -32602, "Tool arguments must be an object")
        return _reply(req_id, tool_call(name, args))

    if method == "resources/list":
        return _reply(req_id, {"resources": []})

    if method == "prompts/list":
        return _reply(req_id, {"prompts": []})

    if method == "ping":
        return _reply(req_id, {"ok": True})

    if req_id is None:
        return None
    return _rpc_error(req_id, -32601, f"Method not found: {method}")
