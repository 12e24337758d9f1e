"""
Input tools acting on elements from the last accessibility snapshot.

Elements are addressed by snapshot `uid`; every tool returns a fresh
snapshot so the caller can keep addressing the page.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from ..context import ToolError
from .base import INPUT_AUTOMATION, UID_PROPERTY, define_tool, object_schema

if TYPE_CHECKING:
    from ..browser import Page
    from ..context import McpContext
    from ..response import McpResponse
    from ..server.types import Invocation

_CENTER_JS = """(el) => {
  el.scrollIntoView({block: 'center', inline: 'center', behavior: 'instant'});
  const r = el.getBoundingClientRect();
  return {x: r.left + r.width / 2, y: r.top + r.height / 2, width: r.width, height: r.height};
}"""

_FILL_JS = """(el, value) => {
  el.scrollIntoView({block: 'center', inline: 'center', behavior: 'instant'});
  if (el instanceof HTMLSelectElement) {
    const option = Array.from(el.options).find((o) => o.value === value || o.textContent.trim() === value);
    if (!option) throw new Error(`Could not find option with text "${value}"`);
    el.value = option.value;
    el.dispatchEvent(new Event('input', {bubbles: true}));
    el.dispatchEvent(new Event('change', {bubbles: true}));
    return 'select';
  }
  el.focus();
  if ('select' in el && typeof el.select === 'function') el.select();
  else if (el.isContentEditable) document.execCommand('selectAll', false, null);
  return 'text';
}"""


async def element_center(page: Page, object_id: str) -> tuple[float, float]:
    box = await page.call_function(_CENTER_JS, [{"objectId": object_id}])
    if not isinstance(box, dict) or not box.get("width") or not box.get("height"):
        raise ToolError("Element is not visible")
    return float(box["x"]), float(box["y"])


async def _mouse(page: Page, kind: str, x: float, y: float, **extra: Any) -> None:
    await page.send("Input.dispatchMouseEvent", {"type": kind, "x": x, "y": y, **extra})


async def click(invocation: Invocation, response: McpResponse, context: McpContext) -> None:
    object_id = await context.resolve_uid(invocation.params["uid"])
    page = context.get_selected_page()
    x, y = await element_center(page, object_id)
    double = bool(invocation.params.get("dblClick"))
    await _mouse(page, "mouseMoved", x, y)
    for count in (1, 2) if double else (1,):
        await _mouse(page, "mousePressed", x, y, button="left", clickCount=count)
        await _mouse(page, "mouseReleased", x, y, button="left", clickCount=count)
    response.append_response_line(
        "Successfully double clicked on the element" if double else "Successfully clicked on the element"
    )
    response.set_include_snapshot(True)


async def hover(invocation: Invocation, response: McpResponse, context: McpContext) -> None:
    object_id = await context.resolve_uid(invocation.params["uid"])
    page = context.get_selected_page()
    x, y = await element_center(page, object_id)
    await _mouse(page, "mouseMoved", x, y)
    response.append_response_line("Successfully hovered over the element")
    response.set_include_snapshot(True)


async def fill(invocation: Invocation, response: McpResponse, context: McpContext) -> None:
    object_id = await context.resolve_uid(invocation.params["uid"])
    page = context.get_selected_page()
    value = invocation.params["value"]
    kind = await page.call_function(_FILL_JS, [{"objectId": object_id}, {"value": value}])
    if kind != "select":
        await page.send("Input.insertText", {"text": value})
    response.append_response_line("Successfully filled out the element")
    response.set_include_snapshot(True)


TOOLS = [
    define_tool(
        "click",
        "Clicks on the provided element",
        category=INPUT_AUTOMATION,
        read_only=False,
        schema=object_schema(
            {
                "uid": UID_PROPERTY,
                "dblClick": {"type": "boolean", "description": "Set to true for double clicks. Default is false."},
            },
            required=["uid"],
        ),
        handler=click,
    ),
    define_tool(
        "hover",
        "Hover over the provided element",
        category=INPUT_AUTOMATION,
        read_only=False,
        schema=object_schema({"uid": UID_PROPERTY}, required=["uid"]),
        handler=hover,
    ),
    define_tool(
        "fill",
        "Type text into a input, text area or select an option from a <select> element.",
        category=INPUT_AUTOMATION,
        read_only=False,
        schema=object_schema(
            {
                "uid": UID_PROPERTY,
                "value": {"type": "string", "description": "The value to fill in"},
            },
            required=["uid", "value"],
        ),
        handler=fill,
    ),
]
