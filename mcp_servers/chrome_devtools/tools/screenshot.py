"""Screenshot tool."""

from __future__ import annotations

from typing import TYPE_CHECKING

from ..context import ToolError
from .base import DEBUGGING, define_tool, object_schema

if TYPE_CHECKING:
    from ..context import McpContext
    from ..response import McpResponse
    from ..server.types import Invocation

_RECT_JS = """(el) => {
  el.scrollIntoView({block: 'center', inline: 'center', behavior: 'instant'});
  const r = el.getBoundingClientRect();
  return {x: r.left + window.scrollX, y: r.top + window.scrollY, width: r.width, height: r.height};
}"""

MIME_TYPES = {"png": "image/png", "jpeg": "image/jpeg", "webp": "image/webp"}


async def take_screenshot(invocation: Invocation, response: McpResponse, context: McpContext) -> None:
    params = invocation.params
    uid = params.get("uid")
    full_page = bool(params.get("fullPage"))
    if uid and full_page:
        raise ToolError('Providing both "uid" and "fullPage" is not allowed.')

    image_format = params.get("format", "png")
    page = context.get_selected_page()
    clip = None
    if uid:
        object_id = await context.resolve_uid(uid)
        rect = await page.call_function(_RECT_JS, [{"objectId": object_id}])
        if not isinstance(rect, dict) or not rect.get("width") or not rect.get("height"):
            raise ToolError(f"Element {uid} has no visible box")
        clip = {k: float(rect[k]) for k in ("x", "y", "width", "height")}

    data = await page.screenshot(
        image_format=image_format,
        quality=params.get("quality"),
        full_page=full_page,
        clip=clip,
    )
    if uid:
        response.append_response_line(f"Took a screenshot of node with uid \"{uid}\".")
    elif full_page:
        response.append_response_line("Took a screenshot of the full current page.")
    else:
        response.append_response_line("Took a screenshot of the current page's viewport.")
    response.attach_image(data, MIME_TYPES[image_format])


TOOLS = [
    define_tool(
        "take_screenshot",
        "Take a screenshot of the page or element.",
        category=DEBUGGING,
        read_only=True,
        schema=object_schema(
            {
                "format": {
                    "type": "string",
                    "enum": list(MIME_TYPES),
                    "default": "png",
                    "description": 'Type of format to save the screenshot as. Default is "png"',
                },
                "quality": {
                    "type": "integer",
                    "minimum": 0,
                    "maximum": 100,
                    "description": "Compression quality for JPEG and WebP formats (0-100). "
                    "Higher values mean better quality but larger file sizes. Ignored for PNG format.",
                },
                "uid": {
                    "type": "string",
                    "description": "The uid of an element on the page from the page content snapshot. "
                    "If omitted takes a pages screenshot.",
                },
                "fullPage": {
                    "type": "boolean",
                    "description": "If set to true takes a screenshot of the full page instead of the currently "
                    "visible viewport. Incompatible with uid.",
                },
            }
        ),
        handler=take_screenshot,
    ),
]
