"""
Type definitions for tool descriptors, invocations and response content.
"""

from __future__ import annotations

from collections.abc import Awaitable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from ..context import McpContext
    from ..response import McpResponse


@dataclass(slots=True)
class ToolContent:
    """Single content item in tool response."""

    type: str  # "text" or "image"
    text: str | None = None
    data: str | None = None  # base64 for images
    mime_type: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to MCP content format."""
        if self.type == "image":
            return {"type": "image", "data": self.data, "mimeType": self.mime_type}
        return {"type": "text", "text": self.text}


@dataclass(slots=True, frozen=True)
class ToolAnnotations:
    """Capability hints advertised with a tool."""

    category: str
    read_only_hint: bool = False
    destructive_hint: bool | None = None
    title: str | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"category": self.category, "readOnlyHint": self.read_only_hint}
        if self.destructive_hint is not None:
            out["destructiveHint"] = self.destructive_hint
        if self.title:
            out["title"] = self.title
        return out


@dataclass(slots=True, frozen=True)
class Invocation:
    """One tool call: the tool name and its validated parameters."""

    tool_name: str
    params: dict[str, Any] = field(default_factory=dict)


class ToolHandler(Protocol):
    """Protocol for tool handler coroutines."""

    def __call__(
        self,
        invocation: Invocation,
        response: McpResponse,
        context: McpContext,
    ) -> Awaitable[None]: ...


@dataclass(slots=True, frozen=True)
class ToolDefinition:
    """A registered tool: name, schema, annotations and handler."""

    name: str
    description: str
    schema: dict[str, Any]
    annotations: ToolAnnotations
    handler: ToolHandler

    def to_dict(self) -> dict[str, Any]:
        """Tool entry for `tools/list`."""
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.schema,
            "annotations": self.annotations.to_dict(),
        }
