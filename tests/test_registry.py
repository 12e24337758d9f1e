from __future__ import annotations

import pytest

EXPECTED_TOOLS = [
    "click",
    "close_page",
    "emulate_cpu",
    "emulate_network",
    "evaluate_script",
    "fill",
    "get_network_request",
    "handle_dialog",
    "hover",
    "list_console_messages",
    "list_network_requests",
    "list_pages",
    "navigate_page",
    "navigate_page_history",
    "new_page",
    "performance_start_trace",
    "performance_stop_trace",
    "resize_page",
    "select_page",
    "take_screenshot",
    "take_snapshot",
    "wait_for",
]


def test_default_registry_exposes_catalogue_sorted() -> None:
    from mcp_servers.chrome_devtools.server.registry import create_default_registry

    registry = create_default_registry()
    assert registry.tool_names == EXPECTED_TOOLS
    assert [t.name for t in registry.tools] == EXPECTED_TOOLS
    assert len(registry) == len(EXPECTED_TOOLS)
    assert "click" in registry
    assert registry.get("nope") is None


def test_tool_schemas_are_valid_draft7() -> None:
    from jsonschema import Draft7Validator

    from mcp_servers.chrome_devtools.server.registry import create_default_registry

    for tool in create_default_registry().tools:
        Draft7Validator.check_schema(tool.schema)
        entry = tool.to_dict()
        assert entry["inputSchema"]["type"] == "object"
        assert entry["annotations"]["category"]
        assert isinstance(entry["annotations"]["readOnlyHint"], bool)


def test_duplicate_names_rejected() -> None:
    from mcp_servers.chrome_devtools.server.registry import ToolRegistry
    from mcp_servers.chrome_devtools.tools import console

    registry = ToolRegistry(console.TOOLS)
    with pytest.raises(ValueError, match="Duplicate tool name: list_console_messages"):
        registry.register(console.TOOLS[0])
