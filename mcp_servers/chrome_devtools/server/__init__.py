"""Server package for the Chrome DevTools MCP server.

Keep this package import light: importing `mcp_servers.chrome_devtools.server.*`
should not eagerly pull the tool modules (they import the browser context).
"""

from __future__ import annotations

from typing import Any

__all__ = ["ToolRegistry", "create_default_registry"]


def __getattr__(name: str) -> Any:  # pragma: no cover
    if name in {"ToolRegistry", "create_default_registry"}:
        from .registry import ToolRegistry, create_default_registry

        return {"ToolRegistry": ToolRegistry, "create_default_registry": create_default_registry}[name]
    raise AttributeError(name)
