"""
Base utilities for tool modules.

Provides:
- Tool categories used in annotations
- define_tool: build a ToolDefinition from a handler
- object_schema: JSON Schema (draft-07) for tool arguments
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from ..server.types import ToolAnnotations, ToolDefinition, ToolHandler

INPUT_AUTOMATION = "Input automation"
NAVIGATION_AUTOMATION = "Navigation automation"
EMULATION = "Emulation"
PERFORMANCE = "Performance"
NETWORK = "Network"
DEBUGGING = "Debugging"


def object_schema(properties: dict[str, Any], required: Iterable[str] = ()) -> dict[str, Any]:
    schema: dict[str, Any] = {
        "$schema": "http://json-schema.org/draft-07/schema#",
        "type": "object",
        "properties": properties,
        "additionalProperties": False,
    }
    required = list(required)
    if required:
        schema["required"] = required
    return schema


def define_tool(
    name: str,
    description: str,
    *,
    category: str,
    read_only: bool,
    schema: dict[str, Any],
    handler: ToolHandler,
) -> ToolDefinition:
    return ToolDefinition(
        name=name,
        description=description,
        schema=schema,
        annotations=ToolAnnotations(category=category, read_only_hint=read_only),
        handler=handler,
    )


UID_PROPERTY: dict[str, Any] = {
    "type": "string",
    "description": "The uid of an element on the page from the page content snapshot",
}
