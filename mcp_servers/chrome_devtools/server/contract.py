"""Protocol and server identity.

Single source of truth for:
- supported MCP protocol versions
- server identity
- capabilities advertised by initialize
"""

from __future__ import annotations

from typing import Any

from .registry import ToolRegistry

__version__ = "0.8.1"

SERVICE_NAME = "Chrome DevTools MCP Server"

SERVER_INFO: dict[str, str] = {
    "name": "chrome_devtools",
    "title": "Chrome DevTools MCP server",
    "version": __version__,
}

SUPPORTED_PROTOCOL_VERSIONS = ["2025-06-18", "2025-03-26", "2024-11-05"]
LATEST_PROTOCOL_VERSION = SUPPORTED_PROTOCOL_VERSIONS[0]
DEFAULT_PROTOCOL_VERSION = LATEST_PROTOCOL_VERSION

CAPABILITIES: dict[str, Any] = {
    "logging": {},
    "tools": {"listChanged": False},
}


def select_protocol(requested: Any) -> str:
    if isinstance(requested, str) and requested in SUPPORTED_PROTOCOL_VERSIONS:
        return requested
    return DEFAULT_PROTOCOL_VERSION


def initialize_result(protocol: str) -> dict[str, Any]:
    return {
        "protocolVersion": protocol,
        "serverInfo": SERVER_INFO,
        "capabilities": CAPABILITIES,
    }


def tools_list(registry: ToolRegistry) -> list[dict[str, Any]]:
    return [tool.to_dict() for tool in registry.tools]
