"""Redaction utilities for request logging and frame dumps.

Prefers safety over fidelity: obvious secrets, typed-in form values and large
payloads (screenshots) never reach the logs verbatim.
"""

from __future__ import annotations

import os
from typing import Any
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

_SENSITIVE_SUBSTRINGS = (
    "token",
    "secret",
    "password",
    "passwd",
    "pwd",
    "authorization",
    "cookie",
    "session",
    "jwt",
    "bearer",
    "api-key",
    "api_key",
    "apikey",
)

# Avoid false-positives like "author" while still protecting obvious keys.
_SENSITIVE_EXACT = {"auth", "pass"}

# tool name -> argument keys whose values are user data (typed text, prompts).
_TOOL_VALUE_KEYS: dict[str, set[str]] = {
    "fill": {"value"},
    "handle_dialog": {"promptText"},
}


def is_sensitive_key(key: str) -> bool:
    k = (key or "").strip().lower()
    if not k:
        return False
    if k in _SENSITIVE_EXACT:
        return True
    return any(s in k for s in _SENSITIVE_SUBSTRINGS)


def _redacted_summary(value: Any) -> str:
    if isinstance(value, str):
        return f"<redacted len={len(value)}>"
    return "<redacted>"


def redact_url(url: str) -> str:
    """Redact sensitive query values and userinfo; other URLs come back unchanged."""
    if not isinstance(url, str) or not url:
        return url
    try:
        parts = urlsplit(url)
    except ValueError:
        return url

    netloc = parts.netloc
    changed = False
    if "@" in netloc:
        netloc = netloc.rsplit("@", 1)[1]
        changed = True

    query = parts.query
    if query:
        pairs = parse_qsl(query, keep_blank_values=True)
        redacted = [(k, "<redacted>" if is_sensitive_key(k) else v) for k, v in pairs]
        if redacted != pairs:
            query = urlencode(redacted, safe="<>")
            changed = True

    if not changed:
        return url
    return urlunsplit((parts.scheme, netloc, parts.path, query, parts.fragment))


def redact_headers(headers: dict[str, Any]) -> dict[str, Any]:
    return {k: (_redacted_summary(v) if is_sensitive_key(str(k)) else v) for k, v in headers.items()}


def redact_tool_arguments(tool: str, args: dict[str, Any]) -> dict[str, Any]:
    """Redact tool arguments for safe logging."""
    return _redact_any(args, tool=tool, key=None)


def _redact_any(value: Any, *, tool: str, key: str | None) -> Any:
    if isinstance(value, dict):
        if key and key.lower().endswith("headers"):
            return redact_headers(value)
        return {k: _redact_any(v, tool=tool, key=str(k)) for k, v in value.items()}

    if isinstance(value, list):
        return [_redact_any(v, tool=tool, key=key) for v in value]

    if key is None:
        return value
    if isinstance(value, str) and key.lower() == "url":
        return redact_url(value)
    if key in _TOOL_VALUE_KEYS.get(tool, ()):
        return _redacted_summary(value)
    if is_sensitive_key(key):
        return _redacted_summary(value)
    return value


def _dump_max_chars() -> int:
    raw = os.environ.get("MCP_DUMP_FRAMES_MAX_CHARS", "5000").strip()
    try:
        return max(0, int(raw))
    except ValueError:
        return 5000


def redact_jsonrpc_for_dump(payload: dict[str, Any], *, max_text_chars: int | None = None) -> dict[str, Any]:
    """Redact a JSON-RPC message for file dumps.

    - Tool call arguments are redacted per tool.
    - Image content is replaced with a short placeholder.
    - Large text blobs are truncated.
    """
    max_text_chars = max_text_chars if max_text_chars is not None else _dump_max_chars()
    msg = dict(payload) if isinstance(payload, dict) else {}

    if msg.get("method") in {"tools/call", "call_tool"}:
        params = msg.get("params")
        if isinstance(params, dict):
            name = params.get("name")
            args = params.get("arguments")
            if isinstance(name, str) and isinstance(args, dict):
                msg["params"] = {**params, "arguments": redact_tool_arguments(name, args)}

    result = msg.get("result")
    if isinstance(result, dict) and isinstance(result.get("content"), list):
        content = []
        for item in result["content"]:
            if not isinstance(item, dict):
                content.append(item)
                continue
            it = dict(item)
            if it.get("type") == "image" and isinstance(it.get("data"), str):
                it["data"] = f"<omitted image base64 len={len(it['data'])}>"
            text = it.get("text")
            if it.get("type") == "text" and isinstance(text, str) and len(text) > max_text_chars:
                it["text"] = text[:max_text_chars] + f"… <truncated len={len(text)}>"
            content.append(it)
        msg["result"] = {**result, "content": content}

    return msg


def redact_jsonrpc_for_log(payload: dict[str, Any]) -> dict[str, Any]:
    """Stricter redaction for logs (shorter + safer)."""
    return redact_jsonrpc_for_dump(payload, max_text_chars=512)
