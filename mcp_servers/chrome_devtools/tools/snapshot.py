"""Accessibility snapshot tools."""

from __future__ import annotations

from typing import TYPE_CHECKING

from .base import DEBUGGING, NAVIGATION_AUTOMATION, define_tool, object_schema

if TYPE_CHECKING:
    from ..context import McpContext
    from ..response import McpResponse
    from ..server.types import Invocation


async def take_snapshot(invocation: Invocation, response: McpResponse, context: McpContext) -> None:
    response.set_include_snapshot(True)


async def wait_for(invocation: Invocation, response: McpResponse, context: McpContext) -> None:
    text = invocation.params["text"]
    await context.wait_for_text(text)
    response.append_response_line(f'Element with text "{text}" found.')
    response.set_include_snapshot(True)


TOOLS = [
    define_tool(
        "take_snapshot",
        "Take a text snapshot of the currently selected page. The snapshot lists page elements along with a "
        "unique identifier (uid). Always use the latest snapshot. Prefer taking a snapshot over taking a "
        "screenshot.",
        category=DEBUGGING,
        read_only=True,
        schema=object_schema({}),
        handler=take_snapshot,
    ),
    define_tool(
        "wait_for",
        "Wait for the specified text to appear on the selected page.",
        category=NAVIGATION_AUTOMATION,
        read_only=True,
        schema=object_schema(
            {"text": {"type": "string", "description": "Text to appear on the page"}},
            required=["text"],
        ),
        handler=wait_for,
    ),
]
