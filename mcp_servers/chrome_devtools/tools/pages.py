"""
Page tools: list, select, open, close, navigate, resize pages and handle dialogs.

All of them include the refreshed page list in their response.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from ..browser import PageError
from ..context import ToolError
from .base import EMULATION, INPUT_AUTOMATION, NAVIGATION_AUTOMATION, define_tool, object_schema

if TYPE_CHECKING:
    from ..context import McpContext
    from ..response import McpResponse
    from ..server.types import Invocation

PAGE_IDX = {
    "type": "integer",
    "minimum": 0,
    "description": "The index of the page. Call list_pages to list pages.",
}


async def list_pages(invocation: Invocation, response: McpResponse, context: McpContext) -> None:
    response.set_include_pages(True)


async def select_page(invocation: Invocation, response: McpResponse, context: McpContext) -> None:
    await context.select_page(invocation.params["pageIdx"])
    response.set_include_pages(True)


async def close_page(invocation: Invocation, response: McpResponse, context: McpContext) -> None:
    await context.close_page(invocation.params["pageIdx"])
    response.set_include_pages(True)


async def new_page(invocation: Invocation, response: McpResponse, context: McpContext) -> None:
    await context.new_page(invocation.params["url"])
    response.set_include_pages(True)


async def navigate_page(invocation: Invocation, response: McpResponse, context: McpContext) -> None:
    page = context.get_selected_page()
    await page.goto(invocation.params["url"])
    response.set_include_pages(True)


async def navigate_page_history(invocation: Invocation, response: McpResponse, context: McpContext) -> None:
    page = context.get_selected_page()
    navigate = invocation.params["navigate"]
    try:
        await page.go_history(-1 if navigate == "back" else 1)
    except PageError:
        response.append_response_line(f"Unable to navigate {navigate} in currently selected page.")
    response.set_include_pages(True)


async def resize_page(invocation: Invocation, response: McpResponse, context: McpContext) -> None:
    page = context.get_selected_page()
    await page.set_viewport(invocation.params["width"], invocation.params["height"])
    response.set_include_pages(True)


async def handle_dialog(invocation: Invocation, response: McpResponse, context: McpContext) -> None:
    dialog = context.get_dialog()
    if dialog is None:
        raise ToolError("No open dialog found")
    action = invocation.params["action"]
    params: dict[str, object] = {"accept": action == "accept"}
    if action == "accept" and invocation.params.get("promptText") is not None:
        params["promptText"] = invocation.params["promptText"]
    await context.get_selected_page().send("Page.handleJavaScriptDialog", params)
    context.clear_dialog()
    response.append_response_line(f"Successfully {'accepted' if action == 'accept' else 'dismissed'} the dialog")
    response.set_include_pages(True)


TOOLS = [
    define_tool(
        "list_pages",
        "Get a list of pages open in the browser.",
        category=NAVIGATION_AUTOMATION,
        read_only=True,
        schema=object_schema({}),
        handler=list_pages,
    ),
    define_tool(
        "select_page",
        "Select a page as a context for future tool calls.",
        category=NAVIGATION_AUTOMATION,
        read_only=True,
        schema=object_schema({"pageIdx": PAGE_IDX}, required=["pageIdx"]),
        handler=select_page,
    ),
    define_tool(
        "close_page",
        "Closes the page by its index. The last open page cannot be closed.",
        category=NAVIGATION_AUTOMATION,
        read_only=False,
        schema=object_schema({"pageIdx": PAGE_IDX}, required=["pageIdx"]),
        handler=close_page,
    ),
    define_tool(
        "new_page",
        "Creates a new page",
        category=NAVIGATION_AUTOMATION,
        read_only=False,
        schema=object_schema(
            {"url": {"type": "string", "description": "URL to load in a new page."}},
            required=["url"],
        ),
        handler=new_page,
    ),
    define_tool(
        "navigate_page",
        "Navigates the currently selected page to a URL.",
        category=NAVIGATION_AUTOMATION,
        read_only=False,
        schema=object_schema(
            {"url": {"type": "string", "description": "URL to navigate the page to"}},
            required=["url"],
        ),
        handler=navigate_page,
    ),
    define_tool(
        "navigate_page_history",
        "Navigates the currently selected page.",
        category=NAVIGATION_AUTOMATION,
        read_only=False,
        schema=object_schema(
            {
                "navigate": {
                    "type": "string",
                    "enum": ["back", "forward"],
                    "description": "Whether to navigate back or navigate forward in the selected pages history",
                },
            },
            required=["navigate"],
        ),
        handler=navigate_page_history,
    ),
    define_tool(
        "resize_page",
        "Resizes the selected page's window so that the page has specified dimension",
        category=EMULATION,
        read_only=False,
        schema=object_schema(
            {
                "width": {"type": "integer", "minimum": 1, "description": "Page width"},
                "height": {"type": "integer", "minimum": 1, "description": "Page height"},
            },
            required=["width", "height"],
        ),
        handler=resize_page,
    ),
    define_tool(
        "handle_dialog",
        "If a browser dialog was opened, use this command to handle it",
        category=INPUT_AUTOMATION,
        read_only=False,
        schema=object_schema(
            {
                "action": {
                    "type": "string",
                    "enum": ["accept", "dismiss"],
                    "description": "Whether to dismiss or accept the dialog",
                },
                "promptText": {"type": "string", "description": "Optional prompt text to enter into the dialog."},
            },
            required=["action"],
        ),
        handler=handle_dialog,
    ),
]
