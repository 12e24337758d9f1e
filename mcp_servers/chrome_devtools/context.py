"""Session context handed to tool handlers.

`McpContext` wraps one `Browser` and keeps the state tools build on between
calls: the page list and selection, per-page console/network collectors,
the last accessibility snapshot, open dialogs, emulation and tracing.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any

from .browser import Browser, Page
from .cdp import CdpError

logger = logging.getLogger("mcp.devtools.context")

MAX_CONSOLE_MESSAGES = 1000
MAX_NETWORK_REQUESTS = 1000
WAIT_FOR_TIMEOUT = 5.0


class ToolError(Exception):
    """Operational failure a tool reports with a readable message."""


@dataclass
class ConsoleMessage:
    type: str
    text: str
    timestamp: float = field(default_factory=time.time)


@dataclass
class NetworkRequest:
    reqid: int
    request_id: str
    method: str
    url: str
    resource_type: str = "other"
    status: int | None = None
    status_text: str = ""
    mime_type: str = ""
    failure: str | None = None
    request_headers: dict[str, Any] = field(default_factory=dict)
    response_headers: dict[str, Any] = field(default_factory=dict)
    post_data: str | None = None

    @property
    def state(self) -> str:
        if self.failure:
            return f"[failed - {self.failure}]"
        if self.status is None:
            return "[pending]"
        if 200 <= self.status < 400:
            return f"[success - {self.status}]"
        return f"[failed - {self.status}]"


@dataclass
class TextSnapshot:
    snapshot_id: int
    text: str
    backend_ids: dict[str, int]


@dataclass
class Dialog:
    type: str
    message: str
    default_prompt: str = ""


def _remote_object_text(obj: dict[str, Any]) -> str:
    if "value" in obj:
        value = obj["value"]
        return value if isinstance(value, str) else repr(value)
    return str(obj.get("description") or obj.get("type") or "")


class McpContext:
    def __init__(self, browser: Browser) -> None:
        self.browser = browser
        self._pages: list[Page] = []
        self._selected_idx = 0
        self._instrumented: set[str] = set()
        self._console: dict[str, deque[ConsoleMessage]] = {}
        self._network: dict[str, deque[NetworkRequest]] = {}
        self._requests_by_id: dict[tuple[str, str], NetworkRequest] = {}
        self._next_reqid = 1
        self._snapshot: TextSnapshot | None = None
        self._next_snapshot_id = 1
        self._dialogs: dict[str, Dialog] = {}
        self.cpu_throttling_rate = 1.0
        self.network_conditions: str | None = None
        self._trace_events: list[dict[str, Any]] | None = None
        self._trace_done: asyncio.Future[None] | None = None
        self._subscribe()

    @classmethod
    async def from_browser(cls, browser: Browser) -> McpContext:
        context = cls(browser)
        await context.create_pages_snapshot()
        return context

    # ─────────────────────────────────────────────────────────────────────────
    # Pages
    # ─────────────────────────────────────────────────────────────────────────

    async def create_pages_snapshot(self) -> list[Page]:
        selected = self._pages[self._selected_idx] if self._pages else None
        pages = await self.browser.pages()
        if not pages:
            pages = [await self.browser.new_page()]
        self._pages = pages
        if selected is not None and selected in pages:
            self._selected_idx = pages.index(selected)
        else:
            self._selected_idx = 0
        for page in pages:
            await self._instrument(page)
        return pages

    def get_pages(self) -> list[Page]:
        return list(self._pages)

    @property
    def selected_page_idx(self) -> int:
        return self._selected_idx

    def get_selected_page(self) -> Page:
        if not self._pages:
            raise ToolError("No page selected")
        return self._pages[self._selected_idx]

    def get_page_by_idx(self, idx: int) -> Page:
        if not 0 <= idx < len(self._pages):
            raise ToolError("No page found")
        return self._pages[idx]

    async def select_page(self, idx: int) -> Page:
        page = self.get_page_by_idx(idx)
        self._selected_idx = idx
        await page.bring_to_front()
        return page

    async def new_page(self, url: str = "about:blank") -> Page:
        page = await self.browser.new_page()
        await self._instrument(page)
        if url and url != "about:blank":
            await page.goto(url)
        self._pages.append(page)
        self._selected_idx = len(self._pages) - 1
        return page

    async def close_page(self, idx: int) -> None:
        if len(self._pages) <= 1:
            raise ToolError("The last open page cannot be closed. It is fine to keep it open.")
        page = self.get_page_by_idx(idx)
        selected = self.get_selected_page()
        await page.close()
        self._pages.remove(page)
        self._console.pop(page.target_id, None)
        self._network.pop(page.target_id, None)
        self._instrumented.discard(page.target_id)
        self._selected_idx = self._pages.index(selected) if selected in self._pages else 0

    async def _instrument(self, page: Page) -> None:
        if page.target_id in self._instrumented:
            return
        await page.session()
        for domain in ("Page", "Runtime", "Network"):
            await page.send(f"{domain}.enable")
        if self.cpu_throttling_rate != 1.0:
            await page.send("Emulation.setCPUThrottlingRate", {"rate": self.cpu_throttling_rate})
        self._instrumented.add(page.target_id)
        self._console.setdefault(page.target_id, deque(maxlen=MAX_CONSOLE_MESSAGES))
        self._network.setdefault(page.target_id, deque(maxlen=MAX_NETWORK_REQUESTS))

    # ─────────────────────────────────────────────────────────────────────────
    # Collected data
    # ─────────────────────────────────────────────────────────────────────────

    def console_messages(self) -> list[ConsoleMessage]:
        return list(self._console.get(self.get_selected_page().target_id, ()))

    def network_requests(self) -> list[NetworkRequest]:
        return list(self._network.get(self.get_selected_page().target_id, ()))

    def get_network_request(self, reqid: int) -> NetworkRequest:
        for request in self.network_requests():
            if request.reqid == reqid:
                return request
        raise ToolError(f"Request with reqid {reqid} not found for the selected page")

    def get_dialog(self) -> Dialog | None:
        if not self._pages:
            return None
        return self._dialogs.get(self.get_selected_page().target_id)

    def clear_dialog(self) -> None:
        if self._pages:
            self._dialogs.pop(self.get_selected_page().target_id, None)

    # ─────────────────────────────────────────────────────────────────────────
    # Accessibility snapshot
    # ─────────────────────────────────────────────────────────────────────────

    @property
    def text_snapshot(self) -> TextSnapshot | None:
        return self._snapshot

    async def create_text_snapshot(self) -> TextSnapshot:
        page = self.get_selected_page()
        result = await page.send("Accessibility.getFullAXTree")
        nodes = result.get("nodes") or []
        snapshot_id = self._next_snapshot_id
        self._next_snapshot_id += 1

        by_id = {node["nodeId"]: node for node in nodes if "nodeId" in node}
        roots = [node for node in nodes if not node.get("parentId")]
        lines: list[str] = []
        backend_ids: dict[str, int] = {}

        def visit(node: dict[str, Any], depth: int) -> None:
            children = [by_id[cid] for cid in node.get("childIds") or [] if cid in by_id]
            if node.get("ignored"):
                for child in children:
                    visit(child, depth)
                return
            uid = f"{snapshot_id}_{len(backend_ids)}"
            if node.get("backendDOMNodeId") is not None:
                backend_ids[uid] = int(node["backendDOMNodeId"])
            else:
                backend_ids[uid] = -1
            role = (node.get("role") or {}).get("value") or "generic"
            name = (node.get("name") or {}).get("value") or ""
            line = f"{'  ' * depth}uid={uid} {role}"
            if name:
                line += f' "{name}"'
            for prop in node.get("properties") or []:
                value = (prop.get("value") or {}).get("value")
                if value is True:
                    line += f" {prop.get('name')}"
            lines.append(line)
            for child in children:
                visit(child, depth + 1)

        for root in roots[:1]:
            visit(root, 0)

        self._snapshot = TextSnapshot(snapshot_id=snapshot_id, text="\n".join(lines), backend_ids=backend_ids)
        return self._snapshot

    async def resolve_uid(self, uid: str) -> str:
        """Return a Runtime objectId for an element from the last snapshot."""
        snapshot = self._snapshot
        if snapshot is None:
            raise ToolError("No snapshot found. Use take_snapshot to capture one.")
        if not uid.startswith(f"{snapshot.snapshot_id}_"):
            raise ToolError("This uid is coming from a stale snapshot. Call take_snapshot to get a fresh snapshot.")
        backend_id = snapshot.backend_ids.get(uid)
        if backend_id is None or backend_id < 0:
            raise ToolError(f"No such element found in the snapshot: {uid}")
        page = self.get_selected_page()
        try:
            result = await page.send("DOM.resolveNode", {"backendNodeId": backend_id})
        except CdpError as exc:
            raise ToolError(f"Element {uid} is no longer in the page: {exc}") from exc
        object_id = (result.get("object") or {}).get("objectId")
        if not object_id:
            raise ToolError(f"Element {uid} could not be resolved")
        return str(object_id)

    async def wait_for_text(self, text: str, *, timeout: float = WAIT_FOR_TIMEOUT) -> None:
        page = self.get_selected_page()
        needle = repr(text)
        expression = f"document.body !== null && document.body.innerText.includes({needle})"
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            try:
                if await page.evaluate(expression, await_promise=False):
                    return
            except CdpError:
                pass
            await asyncio.sleep(0.1)
        raise ToolError(f"Timed out after waiting {timeout * 1000:.0f}ms for text: {text}")

    # ─────────────────────────────────────────────────────────────────────────
    # Emulation / tracing
    # ─────────────────────────────────────────────────────────────────────────

    async def set_cpu_throttling_rate(self, rate: float) -> None:
        await self.get_selected_page().send("Emulation.setCPUThrottlingRate", {"rate": rate})
        self.cpu_throttling_rate = rate

    async def set_network_conditions(self, name: str | None, conditions: dict[str, Any]) -> None:
        await self.get_selected_page().send("Network.emulateNetworkConditions", conditions)
        self.network_conditions = name

    @property
    def is_running_trace(self) -> bool:
        return self._trace_events is not None

    async def start_trace(self) -> None:
        if self.is_running_trace:
            raise ToolError("Error: a performance trace is already running. Use performance_stop_trace to stop it.")
        self._trace_events = []
        self._trace_done = asyncio.get_running_loop().create_future()
        try:
            await self.get_selected_page().send(
                "Tracing.start",
                {
                    "categories": "-*,devtools.timeline,disabled-by-default-devtools.timeline,loading,blink.user_timing",
                    "transferMode": "ReportEvents",
                },
            )
        except Exception:
            self._trace_events = None
            self._trace_done = None
            raise

    async def stop_trace(self, *, timeout: float = 30.0) -> list[dict[str, Any]]:
        if not self.is_running_trace or self._trace_done is None:
            raise ToolError("No performance trace is running.")
        done = self._trace_done
        try:
            await self.get_selected_page().send("Tracing.end")
            await asyncio.wait_for(done, timeout=timeout)
            return list(self._trace_events or [])
        finally:
            self._trace_events = None
            self._trace_done = None

    # ─────────────────────────────────────────────────────────────────────────
    # CDP event routing
    # ─────────────────────────────────────────────────────────────────────────

    def _subscribe(self) -> None:
        conn = self.browser.connection
        conn.on("Runtime.consoleAPICalled", self._on_console_api)
        conn.on("Runtime.exceptionThrown", self._on_exception)
        conn.on("Network.requestWillBeSent", self._on_request)
        conn.on("Network.responseReceived", self._on_response)
        conn.on("Network.loadingFailed", self._on_loading_failed)
        conn.on("Page.frameNavigated", self._on_frame_navigated)
        conn.on("Page.javascriptDialogOpening", self._on_dialog_opening)
        conn.on("Page.javascriptDialogClosed", self._on_dialog_closed)
        conn.on("Tracing.dataCollected", self._on_trace_data)
        conn.on("Tracing.tracingComplete", self._on_trace_complete)

    def _target_for(self, session_id: str | None) -> str | None:
        page = self.browser.page_for_session(session_id)
        return page.target_id if page is not None else None

    def _on_console_api(self, params: dict[str, Any], session_id: str | None) -> None:
        target = self._target_for(session_id)
        if target is None or target not in self._console:
            return
        text = " ".join(_remote_object_text(arg) for arg in params.get("args") or [])
        self._console[target].append(ConsoleMessage(type=str(params.get("type") or "log"), text=text))

    def _on_exception(self, params: dict[str, Any], session_id: str | None) -> None:
        target = self._target_for(session_id)
        if target is None or target not in self._console:
            return
        details = params.get("exceptionDetails") or {}
        exception = details.get("exception") or {}
        text = str(exception.get("description") or details.get("text") or "Uncaught exception")
        self._console[target].append(ConsoleMessage(type="error", text=text))

    def _on_request(self, params: dict[str, Any], session_id: str | None) -> None:
        target = self._target_for(session_id)
        if target is None or target not in self._network:
            return
        request = params.get("request") or {}
        entry = NetworkRequest(
            reqid=self._next_reqid,
            request_id=str(params.get("requestId")),
            method=str(request.get("method") or "GET"),
            url=str(request.get("url") or ""),
            resource_type=str(params.get("type") or "Other").lower(),
            request_headers=dict(request.get("headers") or {}),
            post_data=request.get("postData"),
        )
        self._next_reqid += 1
        self._network[target].append(entry)
        self._requests_by_id[(target, entry.request_id)] = entry

    def _on_response(self, params: dict[str, Any], session_id: str | None) -> None:
        target = self._target_for(session_id)
        entry = self._requests_by_id.get((target or "", str(params.get("requestId"))))
        if entry is None:
            return
        response = params.get("response") or {}
        entry.status = int(response.get("status") or 0)
        entry.status_text = str(response.get("statusText") or "")
        entry.mime_type = str(response.get("mimeType") or "")
        entry.response_headers = dict(response.get("headers") or {})

    def _on_loading_failed(self, params: dict[str, Any], session_id: str | None) -> None:
        target = self._target_for(session_id)
        entry = self._requests_by_id.get((target or "", str(params.get("requestId"))))
        if entry is not None:
            entry.failure = str(params.get("errorText") or "failed")

    def _on_frame_navigated(self, params: dict[str, Any], session_id: str | None) -> None:
        frame = params.get("frame") or {}
        if frame.get("parentId"):
            return
        target = self._target_for(session_id)
        if target is None:
            return
        # New document: keep only the navigation request itself.
        if target in self._console:
            self._console[target].clear()
        if target in self._network:
            requests = self._network[target]
            nav = next(
                (r for r in reversed(requests) if r.resource_type == "document" and r.url == frame.get("url")),
                None,
            )
            requests.clear()
            if nav is not None:
                requests.append(nav)
            self._requests_by_id = {k: v for k, v in self._requests_by_id.items() if k[0] != target or v is nav}

    def _on_dialog_opening(self, params: dict[str, Any], session_id: str | None) -> None:
        target = self._target_for(session_id)
        if target is None:
            return
        self._dialogs[target] = Dialog(
            type=str(params.get("type") or "alert"),
            message=str(params.get("message") or ""),
            default_prompt=str(params.get("defaultPrompt") or ""),
        )

    def _on_dialog_closed(self, params: dict[str, Any], session_id: str | None) -> None:
        target = self._target_for(session_id)
        if target is not None:
            self._dialogs.pop(target, None)

    def _on_trace_data(self, params: dict[str, Any], session_id: str | None) -> None:
        if self._trace_events is not None:
            self._trace_events.extend(params.get("value") or [])

    def _on_trace_complete(self, params: dict[str, Any], session_id: str | None) -> None:
        if self._trace_done is not None and not self._trace_done.done():
            self._trace_done.set_result(None)
