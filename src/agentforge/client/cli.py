"""Interactive CLI client for the agentforge API."""

from __future__ import annotations

import logging
import time
from typing import (
    Any,
    Dict,
    cast,
)

import httpx

from agentforge.common import (
    AnsiColors,
    colored_print,
)
from agentforge.config import Settings

logger = logging.getLogger(__name__)

EXIT_WORDS = {"exit", "quit"}


# ---------------------------------------------------------------------------
# CLI Client
# ---------------------------------------------------------------------------
def prompt_user(prompt: str) -> str | None:
    """
    Show *prompt* and read one line from standard input.

    Returns the stripped line, or ``None`` when input ends (EOF or Ctrl+C).
    """
    import signal  # pylint: disable=import-outside-toplevel

    # SIGINT must interrupt a blocking read()
    signal.siginterrupt(signal.SIGINT, True)

    colored_print(prompt, AnsiColors.BLUE, end="")
    try:
        return input().strip()
    except (EOFError, KeyboardInterrupt):
        return None


def call_api(
    settings: Settings,
    endpoint: str,
    data: Dict[str, Any],
    max_retries: int = 5,
    timeout: float = 300.0,
) -> Dict[str, Any]:
    """
    POST *data* to the API and return the JSON body.

    Connection failures are retried with exponential backoff while the server starts.  On any
    other failure the returned dict carries an ``error`` key.
    """
    api_url = f"http://localhost:{settings.API_PORT}{endpoint}"

    for attempt in range(max_retries):
        try:
            with httpx.Client(timeout=timeout) as client:
                response = client.post(api_url, json=data)
        except httpx.ConnectError as e:
            if attempt < max_retries - 1:
                retry_delay = 0.5 * (2**attempt)  # exponential backoff: 0.5s, 1s, 2s, 4s...
                logger.info(
                    "API not ready yet, retrying in %.1f seconds (attempt %d/%d)...",
                    retry_delay,
                    attempt + 1,
                    max_retries,
                )
                time.sleep(retry_delay)
                continue
            return {"error": f"Error connecting to API: {e}"}
        except httpx.HTTPError as e:
            logger.error("API request error: %s", str(e))
            return {"error": f"Error connecting to API: {e}"}

        try:
            body = cast(Dict[str, Any], response.json())
        except ValueError:
            body = {"error": response.text or f"HTTP {response.status_code}"}
        if response.is_error and "error" not in body:
            body["error"] = f"HTTP {response.status_code}"
        return body

    return {"error": f"Failed to connect to API after {max_retries} attempts"}


def _print_build(result: Dict[str, Any]) -> None:
    agent = result["agent"]
    colored_print(f"\n🤖 Built '{agent['name']}' ({agent['id']})", AnsiColors.GREEN)
    tools = ", ".join(tool["name"] for tool in agent.get("tools", [])) or "none"
    colored_print(f"Tools: {tools}", AnsiColors.CYAN)

    plan = result["plan"]
    colored_print(f"Plan ({plan['totalEstimatedTime']}):", AnsiColors.CYAN)
    for number, step in enumerate(plan["steps"], start=1):
        colored_print(f"  {number}. {step['title']} [{step['estimatedTime']}]", AnsiColors.CYAN)


def run_cli(settings: Settings) -> None:
    """Build an agent from a typed description, then chat with it through the API."""
    colored_print(
        "\n🔮 agentforge shell - type 'exit' or 'quit' (or Ctrl+C) to exit", AnsiColors.GREEN
    )
    description = prompt_user("\n📝 Describe the agent you want: ")
    if not description or description.lower() in EXIT_WORDS:
        return

    build = call_api(settings, "/agent/create", {"description": description})
    if "error" in build:
        colored_print(f"⚠️ {build['error']}", AnsiColors.RED)
        return
    _print_build(build)

    agent_id = build["agent"]["id"]
    session_id: str | None = None
    while True:
        user_msg = prompt_user("\n🧑 You: ")
        if user_msg is None or user_msg.lower() in EXIT_WORDS:
            break
        if not user_msg:
            continue

        response = call_api(
            settings,
            f"/agent/{agent_id}/execute",
            {"message": user_msg, "sessionId": session_id},
        )
        if "error" in response and "success" not in response:
            colored_print(f"⚠️ {response['error']}", AnsiColors.RED)
            continue

        session_id = response.get("sessionId", session_id)
        for tool_name in response.get("toolsUsed", []):
            colored_print(f"[{tool_name}] used", AnsiColors.GREEN)
        if response.get("success"):
            colored_print(response.get("response") or "(no text response)", AnsiColors.YELLOW)
        else:
            colored_print(f"⚠️ {response.get('error')}", AnsiColors.RED)
