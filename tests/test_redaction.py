from __future__ import annotations


def test_redact_url_keeps_normal_query() -> None:
    from mcp_servers.chrome_devtools.server.redaction import redact_url

    url = "https://example.com/search?q=hello&sort=asc"
    assert redact_url(url) == url


def test_redact_url_hides_credentials_and_tokens() -> None:
    from mcp_servers.chrome_devtools.server.redaction import redact_url

    out = redact_url("https://user:pw@example.com/?token=abc&q=hello&author=John")
    assert "user:pw" not in out
    assert "token=abc" not in out
    assert "q=hello" in out
    assert "author=John" in out


def test_fill_value_and_dialog_prompt_are_redacted() -> None:
    from mcp_servers.chrome_devtools.server.redaction import redact_tool_arguments

    assert redact_tool_arguments("fill", {"uid": "1_2", "value": "hunter2"}) == {
        "uid": "1_2",
        "value": "<redacted len=7>",
    }
    out = redact_tool_arguments("handle_dialog", {"action": "accept", "promptText": "secret"})
    assert out["action"] == "accept"
    assert out["promptText"] == "<redacted len=6>"
    # Same key on another tool is left alone.
    assert redact_tool_arguments("evaluate_script", {"value": "x"}) == {"value": "x"}


def test_sensitive_keys_and_headers() -> None:
    from mcp_servers.chrome_devtools.server.redaction import redact_tool_arguments

    out = redact_tool_arguments(
        "navigate_page",
        {"url": "https://example.com/?api_key=1", "headers": {"Authorization": "Bearer x", "Accept": "*/*"}},
    )
    assert "api_key=1" not in out["url"]
    assert out["headers"]["Authorization"].startswith("<redacted")
    assert out["headers"]["Accept"] == "*/*"


def test_dump_omits_images_and_truncates_text() -> None:
    from mcp_servers.chrome_devtools.server.redaction import redact_jsonrpc_for_dump, redact_jsonrpc_for_log

    msg = {
        "jsonrpc": "2.0",
        "id": 1,
        "result": {
            "content": [
                {"type": "text", "text": "x" * 2000},
                {"type": "image", "data": "A" * 100, "mimeType": "image/png"},
            ]
        },
    }
    dumped = redact_jsonrpc_for_dump(msg, max_text_chars=100)
    text, image = dumped["result"]["content"]
    assert image["data"] == "<omitted image base64 len=100>"
    assert len(text["text"]) < 200
    assert "truncated len=2000" in text["text"]
    # Source message is untouched.
    assert msg["result"]["content"][1]["data"] == "A" * 100

    logged = redact_jsonrpc_for_log(msg)
    assert "truncated" in logged["result"]["content"][0]["text"]


def test_dump_max_chars_from_env(monkeypatch) -> None:  # noqa: ANN001
    from mcp_servers.chrome_devtools.server.redaction import redact_jsonrpc_for_dump

    monkeypatch.setenv("MCP_DUMP_FRAMES_MAX_CHARS", "10")
    out = redact_jsonrpc_for_dump({"result": {"content": [{"type": "text", "text": "y" * 50}]}})
    assert out["result"]["content"][0]["text"].startswith("y" * 10 + "…")
