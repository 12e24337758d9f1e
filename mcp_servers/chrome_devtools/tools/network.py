"""Network tools: list requests of the selected page and inspect one of them."""

from __future__ import annotations

import contextlib
from typing import TYPE_CHECKING, Any

from ..cdp import CdpError
from .base import NETWORK, define_tool, object_schema

if TYPE_CHECKING:
    from ..context import McpContext, NetworkRequest
    from ..response import McpResponse
    from ..server.types import Invocation

MAX_BODY_CHARS = 10_000

RESOURCE_TYPES = [
    "document",
    "stylesheet",
    "image",
    "media",
    "font",
    "script",
    "texttrack",
    "xhr",
    "fetch",
    "prefetch",
    "eventsource",
    "websocket",
    "manifest",
    "signedexchange",
    "ping",
    "cspviolationreport",
    "preflight",
    "other",
]


async def list_network_requests(invocation: Invocation, response: McpResponse, context: McpContext) -> None:
    params = invocation.params
    response.set_include_network_requests(
        True,
        page_size=params.get("pageSize"),
        page_idx=params.get("pageIdx"),
        resource_types=params.get("resourceTypes"),
    )


def _headers(title: str, headers: dict[str, Any]) -> list[str]:
    lines = [f"### {title}"]
    if not headers:
        lines.append("<none>")
    lines.extend(f"- {name}:{value}" for name, value in headers.items())
    return lines


async def _response_body(context: McpContext, request: NetworkRequest) -> str | None:
    body = None
    with contextlib.suppress(CdpError):
        result = await context.get_selected_page().send("Network.getResponseBody", {"requestId": request.request_id})
        if result.get("base64Encoded"):
            return "<binary data>"
        body = str(result.get("body") or "")
    if body is not None and len(body) > MAX_BODY_CHARS:
        body = body[:MAX_BODY_CHARS] + "... <truncated>"
    return body


async def get_network_request(invocation: Invocation, response: McpResponse, context: McpContext) -> None:
    request = context.get_network_request(invocation.params["reqid"])
    response.append_response_line(f"## Request {request.url}")
    response.append_response_line(f"Status:  {request.state}")
    response.extend_lines(_headers("Request Headers", request.request_headers))
    if request.post_data:
        response.append_response_line("### Request Body")
        response.append_response_line(request.post_data)
    if request.status is not None:
        response.extend_lines(_headers("Response Headers", request.response_headers))
        body = await _response_body(context, request)
        if body is not None:
            response.append_response_line("### Response Body")
            response.append_response_line(body)
    if request.failure:
        response.append_response_line(f"### Request failed with\n{request.failure}")


TOOLS = [
    define_tool(
        "list_network_requests",
        "List all requests for the currently selected page since the last navigation.",
        category=NETWORK,
        read_only=True,
        schema=object_schema(
            {
                "pageSize": {
                    "type": "integer",
                    "minimum": 1,
                    "description": "Maximum number of requests to return. When omitted, returns all requests.",
                },
                "pageIdx": {
                    "type": "integer",
                    "minimum": 0,
                    "description": "Page number to return (0-based). When omitted, returns the first page.",
                },
                "resourceTypes": {
                    "type": "array",
                    "items": {"type": "string", "enum": RESOURCE_TYPES},
                    "description": "Filter requests to only return requests of the specified resource types. "
                    "When omitted or empty, returns all requests.",
                },
            }
        ),
        handler=list_network_requests,
    ),
    define_tool(
        "get_network_request",
        "Gets a network request by reqid. Use list_network_requests to find the reqid.",
        category=NETWORK,
        read_only=True,
        schema=object_schema(
            {"reqid": {"type": "integer", "description": "The reqid of a request on the page from the listed requests"}},
            required=["reqid"],
        ),
        handler=get_network_request,
    ),
]
