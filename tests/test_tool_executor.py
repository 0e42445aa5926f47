"""
Basic sanity tests for the tool executor.

Run with:
$ pytest -q
"""

import asyncio
import json
from typing import (
    Any,
    Dict,
)

import httpx
import pytest

from agentforge.agent.tool_executor import (
    call_tool_api,
    execute_tool,
    mock_result,
)
from agentforge.core.schema import (
    ExecutionContext,
    Tool,
)
from agentforge.errors import ToolDispatchError
from agentforge.tools import (
    Capabilities,
    register_adapter,
)

CONTEXT = ExecutionContext(session_id="s-1", user_id="u-1")
CAPS = Capabilities()


# This is a stub adapter for testing purposes.
@register_adapter("add")
async def _add(input: Dict[str, Any], context: ExecutionContext, caps: Capabilities) -> int:
    """Return the sum of two integers (used only for tests)."""

    return input["a"] + input["b"]


@register_adapter("explode")
async def _explode(input: Dict[str, Any], context: ExecutionContext, caps: Capabilities) -> None:
    raise RuntimeError("boom")


def _run(tool: Tool, args: Dict[str, Any] | None, **kwargs: Any) -> Any:
    return asyncio.run(execute_tool(tool, args, CONTEXT, CAPS, **kwargs))


def test_execute_adapter_success() -> None:
    """Executor should return the adapter's value when the implementation names one."""

    assert _run(Tool(name="add", implementation="adapter:add"), {"a": 2, "b": 3}) == 5
    assert _run(Tool(name="add", implementation="add"), {"a": 1, "b": 1}) == 2


def test_execute_unknown_implementation() -> None:
    """An implementation string that names no adapter is never evaluated."""

    tool = Tool(name="evil", implementation="__import__('os').system('true')")
    with pytest.raises(ToolDispatchError) as info:
        _run(tool, {})
    assert "not an available adapter" in str(info.value)


def test_execute_invalid_input() -> None:
    """Bad arguments are reported as invalid input."""

    with pytest.raises(ToolDispatchError) as info:
        _run(Tool(name="add", implementation="add"), {"a": 2})
    assert info.value.reason.startswith("invalid input")


def test_execute_adapter_crash_is_wrapped() -> None:
    """Unexpected adapter errors surface as dispatch errors."""

    with pytest.raises(ToolDispatchError) as info:
        _run(Tool(name="explode", implementation="explode"), {})
    assert info.value.reason == "boom"


def test_explicit_adapter_takes_precedence() -> None:
    """An adapter bound at registration wins over the endpoint."""

    from agentforge.tools import ADAPTER_REGISTRY  # pylint: disable=import-outside-toplevel

    tool = Tool(name="echoer", api_endpoint="https://example.com/never")
    result = _run(tool, {"x": 1}, adapter=ADAPTER_REGISTRY["echo"])
    assert result == {"echo": {"x": 1}, "sessionId": "s-1"}


def test_execute_api_endpoint() -> None:
    """Endpoint tools POST their JSON arguments."""

    seen: Dict[str, Any] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["body"] = json.loads(request.content)
        seen["agent"] = request.headers["user-agent"]
        return httpx.Response(200, json={"ok": True})

    tool = Tool(name="remote", api_endpoint="https://tools.example.com/run")
    result = _run(tool, {"q": "hi"}, transport=httpx.MockTransport(handler))

    assert result == {"ok": True}
    assert seen["method"] == "POST"
    assert seen["body"] == {"q": "hi"}
    assert seen["agent"].startswith("agentforge/")


def test_execute_api_endpoint_text_payload() -> None:
    """Non-JSON bodies come back as text."""

    transport = httpx.MockTransport(lambda request: httpx.Response(200, text="plain"))
    tool = Tool(name="remote", api_endpoint="https://tools.example.com/run")
    assert _run(tool, None, transport=transport) == "plain"


def test_execute_api_endpoint_failure() -> None:
    """HTTP errors are wrapped."""

    transport = httpx.MockTransport(lambda request: httpx.Response(503))
    tool = Tool(name="remote", api_endpoint="https://tools.example.com/run")
    with pytest.raises(ToolDispatchError) as info:
        _run(tool, {}, transport=transport)
    assert info.value.tool_name == "remote"
    assert "API call failed" in info.value.reason


def test_execute_api_endpoint_timeout() -> None:
    """Timeouts are reported with the configured limit."""

    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    tool = Tool(name="remote", api_endpoint="https://tools.example.com/run")
    with pytest.raises(ToolDispatchError) as info:
        _run(tool, {}, transport=httpx.MockTransport(handler), api_timeout=2.0)
    assert "timed out after 2.0s" in info.value.reason


def test_declarative_tool_returns_mock() -> None:
    """Tools without implementation or endpoint return a labelled mock."""

    result = _run(Tool(name="crm"), {"id": 7})
    assert result["tool"] == "crm"
    assert result["input"] == {"id": 7}
    assert result["result"] == "Mock result for crm"
    assert "timestamp" in result
    assert mock_result(Tool(name="crm"), {})["result"] == result["result"]


def test_execute_api_endpoint_with_placeholder_url() -> None:
    """An endpoint that is not a valid URL is a dispatch error, not a crash."""

    tool = Tool(name="tickets", api_endpoint="https://localhost:{port}/api/v2/tickets")
    with pytest.raises(ToolDispatchError) as info:
        _run(tool, {"id": 1})
    assert info.value.tool_name == "tickets"
    assert "invalid API endpoint" in info.value.reason


def test_execute_api_endpoint_unexpected_transport_error() -> None:
    """Anything else raised while calling the endpoint is wrapped as well."""

    def handler(request: httpx.Request) -> httpx.Response:
        raise RuntimeError("socket exploded")

    tool = Tool(name="remote", api_endpoint="https://tools.example.com/run")
    with pytest.raises(ToolDispatchError) as info:
        _run(tool, {}, transport=httpx.MockTransport(handler))
    assert "socket exploded" in info.value.reason


def test_call_tool_api_requires_an_endpoint() -> None:
    """Calling the endpoint helper on a declarative tool is rejected explicitly."""

    with pytest.raises(ToolDispatchError) as info:
        asyncio.run(call_tool_api(Tool(name="crm"), {}, timeout=1.0))
    assert info.value.reason == "no API endpoint configured"
