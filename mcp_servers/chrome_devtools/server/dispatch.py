"""Tool dispatch: one call at a time against the shared browser session.

Every call for a known tool passes through the same `ExclusiveGate`, from
session resolution until its response is finalized:

- a handler failure (or a failure to obtain the session) is logged and
  re-raised; the transport reports it as a protocol error;
- a failure while finalizing the response is turned into a regular tool
  result flagged `isError`.

The gate is released in `finally` on every path.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from typing import Any

from jsonschema import Draft7Validator
from jsonschema.exceptions import best_match

from ..browser import SessionRequest
from ..mutex import ExclusiveGate
from ..response import McpResponse
from ..session_manager import SessionManager
from .redaction import redact_tool_arguments
from .registry import ToolRegistry
from .types import Invocation, ToolContent, ToolDefinition

logger = logging.getLogger("mcp.devtools.dispatch")


class UnknownToolError(LookupError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Tool {name} not found")
        self.tool_name = name


class InvalidParamsError(ValueError):
    def __init__(self, name: str, message: str) -> None:
        super().__init__(f"Invalid arguments for tool {name}: {message}")
        self.tool_name = name


class ToolDispatcher:
    def __init__(
        self,
        registry: ToolRegistry,
        sessions: SessionManager,
        request: SessionRequest,
        *,
        gate: ExclusiveGate | None = None,
        response_factory: Callable[[], McpResponse] = McpResponse,
    ) -> None:
        self.registry = registry
        self.sessions = sessions
        self.request = request
        self.gate = gate or ExclusiveGate()
        self._response_factory = response_factory
        self._validators: dict[str, Draft7Validator] = {}

    @property
    def tools(self) -> list[ToolDefinition]:
        return self.registry.tools

    def validate(self, tool: ToolDefinition, params: dict[str, Any]) -> None:
        validator = self._validators.get(tool.name)
        if validator is None:
            validator = Draft7Validator(tool.schema)
            self._validators[tool.name] = validator
        error = best_match(validator.iter_errors(params))
        if error is not None:
            where = ".".join(str(p) for p in error.absolute_path)
            raise InvalidParamsError(tool.name, f"{where}: {error.message}" if where else error.message)

    async def dispatch(self, tool_name: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        tool = self.registry.get(tool_name)
        if tool is None:
            raise UnknownToolError(tool_name)
        params = dict(params or {})
        self.validate(tool, params)
        safe_params = json.dumps(redact_tool_arguments(tool_name, params), ensure_ascii=False, default=str)

        guard = await self.gate.acquire()
        try:
            logger.info("%s request: %s", tool_name, safe_params)
            context = await self.sessions.resolve(self.request)
            response = self._response_factory()
            await tool.handler(Invocation(tool_name, params), response, context)
            try:
                content = await response.handle(tool_name, context)
            except Exception as exc:  # noqa: BLE001
                message = str(exc) or type(exc).__name__
                logger.info("%s response failed: %s", tool_name, message)
                return {"content": [ToolContent(type="text", text=message).to_dict()], "isError": True}
            return {"content": content}
        except Exception as exc:
            logger.error("%s error: %s params=%s", tool_name, exc, safe_params)
            raise
        finally:
            guard.dispose()
