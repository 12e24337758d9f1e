"""Console tools."""

from __future__ import annotations

from typing import TYPE_CHECKING

from .base import DEBUGGING, define_tool, object_schema

if TYPE_CHECKING:
    from ..context import McpContext
    from ..response import McpResponse
    from ..server.types import Invocation


async def list_console_messages(invocation: Invocation, response: McpResponse, context: McpContext) -> None:
    response.set_include_console_data(True)


TOOLS = [
    define_tool(
        "list_console_messages",
        "List all console messages for the currently selected page since the last navigation.",
        category=DEBUGGING,
        read_only=True,
        schema=object_schema({}),
        handler=list_console_messages,
    ),
]
