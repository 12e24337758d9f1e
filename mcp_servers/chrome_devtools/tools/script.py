"""Script evaluation tool."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

from .base import DEBUGGING, UID_PROPERTY, define_tool, object_schema

if TYPE_CHECKING:
    from ..context import McpContext
    from ..response import McpResponse
    from ..server.types import Invocation

# The user function is embedded as an expression; its result is serialized in the page.
_WRAPPER = """async (...args) => {{
  const fn = ({function});
  const result = await fn(...args);
  return JSON.stringify(result === undefined ? null : result);
}}"""


async def evaluate_script(invocation: Invocation, response: McpResponse, context: McpContext) -> None:
    page = context.get_selected_page()
    arguments = []
    for arg in invocation.params.get("args") or []:
        object_id = await context.resolve_uid(arg["uid"])
        arguments.append({"objectId": object_id})
    raw = await page.call_function(_WRAPPER.format(function=invocation.params["function"]), arguments)
    try:
        result = json.dumps(json.loads(raw), indent=2) if isinstance(raw, str) else json.dumps(raw)
    except json.JSONDecodeError:
        result = str(raw)
    response.append_response_line("Script ran on page and returned:")
    response.append_response_line("```json")
    response.append_response_line(result)
    response.append_response_line("```")


TOOLS = [
    define_tool(
        "evaluate_script",
        "Evaluate a JavaScript function inside the currently selected page. Returns the response as JSON "
        "so returned values have to JSON-serializable.",
        category=DEBUGGING,
        read_only=False,
        schema=object_schema(
            {
                "function": {
                    "type": "string",
                    "description": "A JavaScript function to run in the currently selected page.\n"
                    "Example without arguments: `() => {\n  return document.title\n}` or "
                    "`async () => {\n  return await fetch(\"example.com\")\n}`.\n"
                    "Example with arguments: `(el) => {\n  return el.innerText;\n}`\n",
                },
                "args": {
                    "type": "array",
                    "items": object_schema({"uid": UID_PROPERTY}, required=["uid"]),
                    "description": "An optional list of arguments to pass to the function.",
                },
            },
            required=["function"],
        ),
        handler=evaluate_script,
    ),
]
