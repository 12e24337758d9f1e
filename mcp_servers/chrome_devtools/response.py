"""Per-call response builder.

Handlers describe what they did by mutating an `McpResponse`; the dispatcher
finalizes it with `handle()` once the handler has returned. Finalizing may
read live browser state (page list, accessibility tree) and may fail.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from .server.types import ToolContent

if TYPE_CHECKING:
    from .context import McpContext, NetworkRequest


@dataclass(slots=True)
class PaginationOptions:
    page_size: int | None = None
    page_idx: int | None = None


def paginate(items: list[Any], options: PaginationOptions) -> tuple[list[Any], str | None]:
    """Slice `items` and describe the window (None when not paginated)."""
    if not options.page_size:
        return items, None
    total = len(items)
    pages = max(1, math.ceil(total / options.page_size))
    page_idx = options.page_idx or 0
    if not 0 <= page_idx < pages:
        page_idx = 0
        note = "Invalid page number provided. Showing first page."
    else:
        note = None
    start = page_idx * options.page_size
    chunk = items[start : start + options.page_size]
    header = f"Showing {start + 1 if chunk else 0}-{start + len(chunk)} of {total} (Page {page_idx + 1} of {pages})."
    if note:
        header = f"{note}\n{header}"
    if page_idx + 1 < pages:
        header += f"\nNext page: {page_idx + 1}"
    if page_idx > 0:
        header += f"\nPrevious page: {page_idx - 1}"
    return chunk, header


class McpResponse:
    def __init__(self) -> None:
        self._lines: list[str] = []
        self._images: list[ToolContent] = []
        self._include_pages = False
        self._include_snapshot = False
        self._include_console = False
        self._include_network = False
        self._network_pagination = PaginationOptions()
        self._network_resource_types: list[str] | None = None

    def append_response_line(self, value: str) -> None:
        self._lines.append(value)

    def extend_lines(self, values: list[str]) -> None:
        self._lines.extend(values)

    def attach_image(self, data: str, mime_type: str = "image/png") -> None:
        self._images.append(ToolContent(type="image", data=data, mime_type=mime_type))

    def set_include_pages(self, value: bool) -> None:
        self._include_pages = value

    def set_include_snapshot(self, value: bool) -> None:
        self._include_snapshot = value

    def set_include_console_data(self, value: bool) -> None:
        self._include_console = value

    def set_include_network_requests(
        self,
        value: bool,
        *,
        page_size: int | None = None,
        page_idx: int | None = None,
        resource_types: list[str] | None = None,
    ) -> None:
        self._include_network = value
        self._network_pagination = PaginationOptions(page_size=page_size, page_idx=page_idx)
        self._network_resource_types = [t.lower() for t in resource_types] if resource_types else None

    @property
    def response_lines(self) -> list[str]:
        return list(self._lines)

    @property
    def images(self) -> list[ToolContent]:
        return list(self._images)

    @property
    def include_pages(self) -> bool:
        return self._include_pages

    @property
    def include_snapshot(self) -> bool:
        return self._include_snapshot

    @property
    def include_console_data(self) -> bool:
        return self._include_console

    @property
    def include_network_requests(self) -> bool:
        return self._include_network

    async def handle(self, tool_name: str, context: McpContext) -> list[dict[str, Any]]:
        if self._include_pages:
            await context.create_pages_snapshot()
        if self._include_snapshot:
            await context.create_text_snapshot()
        return self.format(tool_name, context)

    def format(self, tool_name: str, context: McpContext) -> list[dict[str, Any]]:
        parts = [f"# {tool_name} response"]
        parts.extend(self._lines)

        dialog = context.get_dialog()
        if dialog is not None:
            parts.append("# Open dialog")
            line = f"{dialog.type}: {dialog.message}"
            if dialog.default_prompt:
                line += f" (default value: {dialog.default_prompt})"
            parts.append(line + ".")
            parts.append("Call handle_dialog to handle it before continuing.")

        if self._include_pages:
            parts.append("## Pages")
            selected = context.selected_page_idx
            for idx, page in enumerate(context.get_pages()):
                parts.append(f"{idx}: {page.url}{' [selected]' if idx == selected else ''}")

        if self._include_snapshot and context.text_snapshot is not None:
            parts.append("## Page content")
            parts.append(context.text_snapshot.text)

        if self._include_network:
            parts.extend(self._format_network(context.network_requests()))

        if self._include_console:
            parts.append("## Console messages")
            messages = context.console_messages()
            if messages:
                parts.extend(f"{msg.type}> {msg.text}" for msg in messages)
            else:
                parts.append("<no console messages found>")

        content = [ToolContent(type="text", text="\n".join(parts))]
        content.extend(self._images)
        return [c.to_dict() for c in content]

    def _format_network(self, requests: list[NetworkRequest]) -> list[str]:
        if self._network_resource_types:
            requests = [r for r in requests if r.resource_type in self._network_resource_types]
        out = ["## Network requests"]
        if not requests:
            out.append("No requests found.")
            return out
        chunk, header = paginate(requests, self._network_pagination)
        if header:
            out.append(header)
        out.extend(f"reqid={r.reqid} {r.method} {r.url} {r.state}" for r in chunk)
        return out
