"""
Performance tracing tools.

A trace records timeline events of the selected page; stopping it reports a
short summary of the navigation's core web vitals.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from .base import PERFORMANCE, define_tool, object_schema

if TYPE_CHECKING:
    from ..context import McpContext
    from ..response import McpResponse
    from ..server.types import Invocation

logger = logging.getLogger("mcp.devtools.tools.performance")

AUTO_STOP_DELAY = 5.0


def summarize_trace(events: list[dict[str, Any]]) -> list[str]:
    """Extract FCP, LCP and CLS from raw trace events."""
    nav_start = None
    fcp = None
    lcp = None
    cls = 0.0
    for event in events:
        name = event.get("name")
        ts = event.get("ts")
        if name == "navigationStart" and isinstance(ts, (int, float)):
            nav_start = ts if nav_start is None else min(nav_start, ts)
        elif name == "firstContentfulPaint" and isinstance(ts, (int, float)):
            fcp = ts if fcp is None else min(fcp, ts)
        elif name == "largestContentfulPaint::Candidate" and isinstance(ts, (int, float)):
            lcp = ts if lcp is None else max(lcp, ts)
        elif name == "LayoutShift":
            data = (event.get("args") or {}).get("data") or {}
            if not data.get("had_recent_input"):
                cls += float(data.get("weighted_score_delta", data.get("score", 0)) or 0)

    lines = [f"Trace events recorded: {len(events)}"]
    if nav_start is None:
        lines.append("No navigation found in the trace; metrics are unavailable.")
        return lines
    if fcp is not None:
        lines.append(f"FCP: {(fcp - nav_start) / 1000:.0f} ms")
    if lcp is not None:
        lines.append(f"LCP: {(lcp - nav_start) / 1000:.0f} ms")
    lines.append(f"CLS: {cls:.2f}")
    return lines


async def _stop_and_report(response: McpResponse, context: McpContext) -> None:
    events = await context.stop_trace()
    response.append_response_line("The performance trace has been stopped.")
    response.extend_lines(summarize_trace(events))


async def performance_start_trace(invocation: Invocation, response: McpResponse, context: McpContext) -> None:
    if context.is_running_trace:
        response.append_response_line(
            "Error: a performance trace is already running. Use performance_stop_trace to stop it. "
            "Only one trace can be running at any given time."
        )
        return
    page = context.get_selected_page()
    reload = invocation.params["reload"]
    if reload:
        # Start from a blank page so the trace covers the whole navigation.
        url = page.url
        await page.goto("about:blank")
        await context.start_trace()
        await page.goto(url)
    else:
        await context.start_trace()

    if invocation.params["autoStop"]:
        await asyncio.sleep(AUTO_STOP_DELAY)
        await _stop_and_report(response, context)
    else:
        response.append_response_line(
            "The performance trace is being recorded. Use performance_stop_trace to stop it."
        )


async def performance_stop_trace(invocation: Invocation, response: McpResponse, context: McpContext) -> None:
    if not context.is_running_trace:
        response.append_response_line("No performance trace has been started.")
        return
    await _stop_and_report(response, context)


TOOLS = [
    define_tool(
        "performance_start_trace",
        "Starts a performance trace recording on the selected page. This can be used to look for performance "
        "problems and insights to improve the performance of the page. It will also report Core Web Vital (CWV) "
        "scores for the page.",
        category=PERFORMANCE,
        read_only=True,
        schema=object_schema(
            {
                "reload": {
                    "type": "boolean",
                    "description": "Determines if, once tracing has started, the page should be automatically "
                    "reloaded.",
                },
                "autoStop": {
                    "type": "boolean",
                    "description": "Determines if the trace recording should be automatically stopped.",
                },
            },
            required=["reload", "autoStop"],
        ),
        handler=performance_start_trace,
    ),
    define_tool(
        "performance_stop_trace",
        "Stops the active performance trace recording on the selected page.",
        category=PERFORMANCE,
        read_only=True,
        schema=object_schema({}),
        handler=performance_stop_trace,
    ),
]
