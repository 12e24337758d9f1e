from __future__ import annotations

from typing import Any

import pytest


class FakePage:
    """Stands in for `browser.Page`: records CDP calls, answers from a script."""

    def __init__(self, target_id: str = "T1", url: str = "about:blank") -> None:
        self.target_id = target_id
        self.url = url
        self.title = ""
        self.sent: list[tuple[str, dict[str, Any] | None]] = []
        self.replies: dict[str, Any] = {}
        self.function_calls: list[tuple[str, list[dict[str, Any]]]] = []
        self.function_result: Any = None
        self.history: list[str] = []
        self.viewport: tuple[int, int] | None = None
        self.screenshots: list[dict[str, Any]] = []

    async def send(self, method: str, params: dict[str, Any] | None = None, *, timeout: float = 30.0) -> dict[str, Any]:
        self.sent.append((method, params))
        reply = self.replies.get(method, {})
        if isinstance(reply, Exception):
            raise reply
        return reply

    async def call_function(self, declaration: str, arguments: list[dict[str, Any]]) -> Any:
        self.function_calls.append((declaration, arguments))
        return self.function_result

    async def goto(self, url: str, **_: Any) -> None:
        self.history.append(url)
        self.url = url

    async def go_history(self, delta: int, **_: Any) -> None:
        from mcp_servers.chrome_devtools.browser import PageError

        direction = "back" if delta < 0 else "forward"
        raise PageError(f"Unable to navigate {direction} in currently selected page.")

    async def set_viewport(self, width: int, height: int) -> None:
        self.viewport = (width, height)

    async def screenshot(self, **kwargs: Any) -> str:
        self.screenshots.append(kwargs)
        return "aW1hZ2U="


class FakeBrowser:
    def __init__(self, name: str = "browser") -> None:
        self.name = name
        self.connected = True


class FakeContext:
    """Minimal `McpContext` surface used by the response builder and tools."""

    def __init__(self, browser: Any = None, pages: list[FakePage] | None = None) -> None:
        from mcp_servers.chrome_devtools.context import ToolError

        self._tool_error = ToolError
        self.browser = browser or FakeBrowser()
        self.pages = pages if pages is not None else [FakePage()]
        self.selected_page_idx = 0
        self.dialog: Any = None
        self.snapshot: Any = None
        self.console: list[Any] = []
        self.network: list[Any] = []
        self.pages_snapshots = 0
        self.text_snapshots = 0
        self.fail_pages_snapshot: Exception | None = None
        self.uids: dict[str, str] = {}
        self.cpu_rate: float | None = None
        self.conditions: tuple[str | None, dict[str, Any]] | None = None
        self.running_trace = False
        self.trace_events: list[dict[str, Any]] = []
        self.waited_for: list[str] = []
        self.dialog_cleared = False

    async def create_pages_snapshot(self) -> list[FakePage]:
        self.pages_snapshots += 1
        if self.fail_pages_snapshot is not None:
            raise self.fail_pages_snapshot
        return self.pages

    async def create_text_snapshot(self) -> Any:
        from mcp_servers.chrome_devtools.context import TextSnapshot

        self.text_snapshots += 1
        self.snapshot = TextSnapshot(snapshot_id=1, text='uid=1_0 RootWebArea "Example"', backend_ids={"1_0": 5})
        return self.snapshot

    @property
    def text_snapshot(self) -> Any:
        return self.snapshot

    def get_pages(self) -> list[FakePage]:
        return list(self.pages)

    def get_selected_page(self) -> FakePage:
        return self.pages[self.selected_page_idx]

    def get_page_by_idx(self, idx: int) -> FakePage:
        if not 0 <= idx < len(self.pages):
            raise self._tool_error("No page found")
        return self.pages[idx]

    async def select_page(self, idx: int) -> FakePage:
        page = self.get_page_by_idx(idx)
        self.selected_page_idx = idx
        return page

    async def new_page(self, url: str = "about:blank") -> FakePage:
        page = FakePage(target_id=f"T{len(self.pages) + 1}", url=url)
        self.pages.append(page)
        self.selected_page_idx = len(self.pages) - 1
        return page

    async def close_page(self, idx: int) -> None:
        if len(self.pages) <= 1:
            raise self._tool_error("The last open page cannot be closed. It is fine to keep it open.")
        self.get_page_by_idx(idx)
        self.pages.pop(idx)
        self.selected_page_idx = 0

    def get_dialog(self) -> Any:
        return self.dialog

    def clear_dialog(self) -> None:
        self.dialog = None
        self.dialog_cleared = True

    def console_messages(self) -> list[Any]:
        return list(self.console)

    def network_requests(self) -> list[Any]:
        return list(self.network)

    def get_network_request(self, reqid: int) -> Any:
        for request in self.network:
            if request.reqid == reqid:
                return request
        raise self._tool_error(f"Request with reqid {reqid} not found for the selected page")

    async def resolve_uid(self, uid: str) -> str:
        if uid not in self.uids:
            raise self._tool_error(f"No such element found in the snapshot: {uid}")
        return self.uids[uid]

    async def wait_for_text(self, text: str, *, timeout: float = 5.0) -> None:
        self.waited_for.append(text)

    async def set_cpu_throttling_rate(self, rate: float) -> None:
        self.cpu_rate = rate

    async def set_network_conditions(self, name: str | None, conditions: dict[str, Any]) -> None:
        self.conditions = (name, conditions)

    @property
    def is_running_trace(self) -> bool:
        return self.running_trace

    async def start_trace(self) -> None:
        self.running_trace = True

    async def stop_trace(self, *, timeout: float = 30.0) -> list[dict[str, Any]]:
        self.running_trace = False
        return list(self.trace_events)


@pytest.fixture
def fake_page() -> FakePage:
    return FakePage(url="https://example.com/")


@pytest.fixture
def fake_context(fake_page: FakePage) -> FakeContext:
    return FakeContext(pages=[fake_page])


@pytest.fixture
def make_context():
    return FakeContext
