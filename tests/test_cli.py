"""Tests for the interactive CLI client, with the HTTP calls stubbed out."""

from typing import (
    Any,
    Dict,
    List,
)

import httpx
import pytest

from agentforge.client import cli
from agentforge.config import Settings

BUILD = {
    "agent": {"id": "a1", "name": "Support Agent", "tools": [{"name": "zendesk"}]},
    "plan": {
        "totalEstimatedTime": "2.5 hours",
        "steps": [{"title": "Setup", "estimatedTime": "15 minutes"}],
    },
}


def _script(monkeypatch: pytest.MonkeyPatch, lines: List[str | None]) -> None:
    answers = iter(lines)
    monkeypatch.setattr(cli, "prompt_user", lambda prompt: next(answers))


def test_builds_then_chats_with_session(monkeypatch: pytest.MonkeyPatch) -> None:
    """The session id from the first reply is sent with the next message."""

    calls: List[Dict[str, Any]] = []

    def fake_call_api(settings: Settings, endpoint: str, data: Dict[str, Any]) -> Dict[str, Any]:
        calls.append({"endpoint": endpoint, "data": data})
        if endpoint == "/agent/create":
            return BUILD
        return {"success": True, "response": "done", "sessionId": "s9", "toolsUsed": []}

    monkeypatch.setattr(cli, "call_api", fake_call_api)
    _script(monkeypatch, ["support bot", "hello", "", "again", "quit"])

    cli.run_cli(Settings())

    assert [c["endpoint"] for c in calls] == [
        "/agent/create",
        "/agent/a1/execute",
        "/agent/a1/execute",
    ]
    assert calls[1]["data"] == {"message": "hello", "sessionId": None}
    assert calls[2]["data"] == {"message": "again", "sessionId": "s9"}


def test_build_error_ends_the_session(monkeypatch: pytest.MonkeyPatch) -> None:
    """No chat loop starts when the build fails."""

    calls: List[str] = []

    def fake_call_api(settings: Settings, endpoint: str, data: Dict[str, Any]) -> Dict[str, Any]:
        calls.append(endpoint)
        return {"error": "Could not reach a dependency"}

    monkeypatch.setattr(cli, "call_api", fake_call_api)
    _script(monkeypatch, ["support bot", "hello"])

    cli.run_cli(Settings())

    assert calls == ["/agent/create"]


def test_eof_before_description(monkeypatch: pytest.MonkeyPatch) -> None:
    """Ctrl+D at the first prompt exits quietly."""

    monkeypatch.setattr(cli, "call_api", lambda *args, **kwargs: pytest.fail("no API call"))
    _script(monkeypatch, [None])

    cli.run_cli(Settings())


def test_call_api_gives_up_after_retries(monkeypatch: pytest.MonkeyPatch) -> None:
    """Connection failures are retried and then reported as an error body."""

    class Refusing:
        def __init__(self, **kwargs: Any) -> None:
            pass

        def __enter__(self) -> "Refusing":
            return self

        def __exit__(self, *exc: Any) -> None:
            return None

        def post(self, url: str, json: Dict[str, Any]) -> httpx.Response:
            raise httpx.ConnectError("refused")

    sleeps: List[float] = []
    monkeypatch.setattr(cli.httpx, "Client", Refusing)
    monkeypatch.setattr(cli.time, "sleep", sleeps.append)

    body = cli.call_api(Settings(API_PORT=9999), "/health", {}, max_retries=3)

    assert body["error"].startswith("Error connecting to API")
    assert sleeps == [0.5, 1.0]
