"""
Tool registry: name -> ToolDefinition, listed in name order.
"""

from __future__ import annotations

from collections.abc import Iterable

from .types import ToolDefinition


class ToolRegistry:
    """Registry of tool descriptors. Populated once at startup."""

    def __init__(self, tools: Iterable[ToolDefinition] = ()) -> None:
        self._tools: dict[str, ToolDefinition] = {}
        self.register_many(tools)

    def register(self, tool: ToolDefinition) -> None:
        """Register a tool; names must be unique."""
        if tool.name in self._tools:
            raise ValueError(f"Duplicate tool name: {tool.name}")
        self._tools[tool.name] = tool

    def register_many(self, tools: Iterable[ToolDefinition]) -> None:
        for tool in tools:
            self.register(tool)

    def get(self, name: str) -> ToolDefinition | None:
        return self._tools.get(name)

    def has(self, name: str) -> bool:
        return name in self._tools

    @property
    def tools(self) -> list[ToolDefinition]:
        """Registered tools sorted by name."""
        return [self._tools[name] for name in sorted(self._tools)]

    @property
    def tool_names(self) -> list[str]:
        return sorted(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)


def create_default_registry() -> ToolRegistry:
    """Create registry with every built-in tool."""
    from ..tools import ALL_TOOLS

    return ToolRegistry(ALL_TOOLS)
