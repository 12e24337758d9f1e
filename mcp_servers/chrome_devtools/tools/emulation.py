"""Emulation tools: CPU throttling and network conditions."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from .base import EMULATION, define_tool, object_schema

if TYPE_CHECKING:
    from ..context import McpContext
    from ..response import McpResponse
    from ..server.types import Invocation

NO_EMULATION = "No emulation"
OFFLINE = "Offline"

# Throughput in bytes/s, latency in ms (DevTools presets).
NETWORK_CONDITIONS: dict[str, dict[str, Any]] = {
    "Slow 3G": {"download": 500 * 1000 / 8 * 0.8, "upload": 500 * 1000 / 8 * 0.8, "latency": 400 * 5},
    "Fast 3G": {"download": 1.6 * 1000 * 1000 / 8 * 0.9, "upload": 750 * 1000 / 8 * 0.9, "latency": 150 * 3.75},
    "Slow 4G": {"download": 1.6 * 1000 * 1000 / 8 * 0.9, "upload": 750 * 1000 / 8 * 0.9, "latency": 150 * 3.75},
    "Fast 4G": {"download": 9 * 1000 * 1000 / 8 * 0.9, "upload": 1.5 * 1000 * 1000 / 8 * 0.9, "latency": 60 * 2.75},
}

THROTTLING_OPTIONS = [NO_EMULATION, OFFLINE, *NETWORK_CONDITIONS]


def network_conditions_params(option: str) -> dict[str, Any]:
    """`Network.emulateNetworkConditions` parameters for a throttling option."""
    if option == OFFLINE:
        return {"offline": True, "latency": 0, "downloadThroughput": 0, "uploadThroughput": 0}
    if option == NO_EMULATION:
        return {"offline": False, "latency": 0, "downloadThroughput": -1, "uploadThroughput": -1}
    preset = NETWORK_CONDITIONS[option]
    return {
        "offline": False,
        "latency": preset["latency"],
        "downloadThroughput": preset["download"],
        "uploadThroughput": preset["upload"],
    }


async def emulate_network(invocation: Invocation, response: McpResponse, context: McpContext) -> None:
    option = invocation.params["throttlingOption"]
    await context.set_network_conditions(
        None if option == NO_EMULATION else option,
        network_conditions_params(option),
    )
    if option == NO_EMULATION:
        response.append_response_line("Network emulation disabled.")
    else:
        response.append_response_line(f"Emulating network conditions: {option}.")


async def emulate_cpu(invocation: Invocation, response: McpResponse, context: McpContext) -> None:
    rate = invocation.params["throttlingRate"]
    await context.set_cpu_throttling_rate(rate)
    if rate == 1:
        response.append_response_line("CPU throttling disabled.")
    else:
        response.append_response_line(f"Emulating a {rate}x CPU slowdown.")


TOOLS = [
    define_tool(
        "emulate_network",
        "Emulates network conditions such as throttling or offline mode on the selected page.",
        category=EMULATION,
        read_only=False,
        schema=object_schema(
            {
                "throttlingOption": {
                    "type": "string",
                    "enum": THROTTLING_OPTIONS,
                    "description": "The network throttling option to emulate. Set to \"No emulation\" to disable.",
                },
            },
            required=["throttlingOption"],
        ),
        handler=emulate_network,
    ),
    define_tool(
        "emulate_cpu",
        "Emulates CPU throttling by slowing down the selected page's execution.",
        category=EMULATION,
        read_only=False,
        schema=object_schema(
            {
                "throttlingRate": {
                    "type": "number",
                    "minimum": 1,
                    "maximum": 20,
                    "description": "The CPU throttling rate representing the slowdown factor 1-20x. Set to 1 to disable.",
                },
            },
            required=["throttlingRate"],
        ),
        handler=emulate_cpu,
    ),
]
