"""
Tool catalogue for the Chrome DevTools MCP server.

Each module exports `TOOLS`, a list of ToolDefinitions; the registry is
built from `ALL_TOOLS`.
"""

from __future__ import annotations

from ..server.types import ToolDefinition
from . import console, emulation, input, network, pages, performance, screenshot, script, snapshot

ALL_TOOLS: list[ToolDefinition] = [
    *console.TOOLS,
    *emulation.TOOLS,
    *input.TOOLS,
    *network.TOOLS,
    *pages.TOOLS,
    *performance.TOOLS,
    *screenshot.TOOLS,
    *script.TOOLS,
    *snapshot.TOOLS,
]

__all__ = ["ALL_TOOLS"]
