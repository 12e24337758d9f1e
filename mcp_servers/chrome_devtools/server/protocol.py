"""JSON-RPC method routing shared by the stdio and HTTP transports.

`McpProtocol.handle()` takes one decoded message and returns the reply (or
None for notifications and stray responses). It never raises: hard faults
from the dispatcher are mapped to JSON-RPC errors here.
"""

from __future__ import annotations

import logging
from typing import Any

from .contract import initialize_result, select_protocol, tools_list
from .dispatch import InvalidParamsError, ToolDispatcher, UnknownToolError

logger = logging.getLogger("mcp.devtools.protocol")

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603


def error_response(request_id: Any, code: int, message: str) -> dict[str, Any]:
    return {"jsonrpc": "2.0", "id": request_id, "error": {"code": code, "message": message}}


def result_response(request_id: Any, result: dict[str, Any]) -> dict[str, Any]:
    return {"jsonrpc": "2.0", "id": request_id, "result": result}


def is_request(message: Any) -> bool:
    """True when the message expects a reply (has a method and an id)."""
    return isinstance(message, dict) and "method" in message and message.get("id") is not None


class McpProtocol:
    """MCP method table on top of a `ToolDispatcher`."""

    def __init__(self, dispatcher: ToolDispatcher) -> None:
        self.dispatcher = dispatcher
        self.log_level = "info"

    async def handle(self, message: Any) -> dict[str, Any] | None:
        if not isinstance(message, dict):
            return error_response(None, INVALID_REQUEST, "Invalid Request")

        method = message.get("method")
        request_id = message.get("id")

        if method is None:
            # A response from the client; we never issue requests, nothing to route.
            if "result" in message or "error" in message:
                return None
            return error_response(request_id, INVALID_REQUEST, "Invalid Request")
        if not isinstance(method, str) or message.get("jsonrpc", "2.0") != "2.0":
            return error_response(request_id, INVALID_REQUEST, "Invalid Request")

        params = message.get("params") or {}
        if not isinstance(params, dict):
            return error_response(request_id, INVALID_PARAMS, "params must be an object")

        if request_id is None:
            if not method.startswith("notifications/"):
                logger.debug("ignoring notification %s", method)
            return None

        if method == "initialize":
            return result_response(request_id, initialize_result(select_protocol(params.get("protocolVersion"))))
        if method == "ping":
            return result_response(request_id, {})
        if method == "logging/setLevel":
            level = params.get("level")
            if isinstance(level, str):
                self.log_level = level
            return result_response(request_id, {})
        if method in ("tools/list", "list_tools"):
            return result_response(request_id, {"tools": tools_list(self.dispatcher.registry)})
        if method in ("tools/call", "call_tool"):
            return await self._call_tool(request_id, params)
        return error_response(request_id, METHOD_NOT_FOUND, f"Method {method} not found")

    async def _call_tool(self, request_id: Any, params: dict[str, Any]) -> dict[str, Any]:
        name = params.get("name")
        arguments = params.get("arguments") or {}
        if not isinstance(name, str) or not name:
            return error_response(request_id, INVALID_PARAMS, "Missing tool name")
        if not isinstance(arguments, dict):
            return error_response(request_id, INVALID_PARAMS, "arguments must be an object")
        try:
            result = await self.dispatcher.dispatch(name, arguments)
        except (UnknownToolError, InvalidParamsError) as exc:
            return error_response(request_id, INVALID_PARAMS, str(exc))
        except Exception as exc:  # noqa: BLE001
            message = str(exc) or type(exc).__name__
            return error_response(request_id, INTERNAL_ERROR, f"MCP error: {message}")
        return result_response(request_id, result)
