"""Dispatches a single tool invocation and wraps errors."""

import logging
from datetime import (
    datetime,
    timezone,
)
from typing import (
    Any,
    Dict,
)

import httpx

from agentforge import __version__
from agentforge.core.schema import (
    ExecutionContext,
    Tool,
)
from agentforge.errors import ToolDispatchError
from agentforge.tools import (
    Capabilities,
    ToolAdapter,
    resolve_adapter,
)

logger = logging.getLogger(__name__)


def mock_result(tool: Tool, args: Dict[str, Any]) -> Dict[str, Any]:
    """Labelled placeholder for declarative-only tools."""
    return {
        "tool": tool.name,
        "input": args,
        "result": f"Mock result for {tool.name}",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


async def call_tool_api(
    tool: Tool,
    args: Dict[str, Any],
    timeout: float,
    transport: httpx.AsyncBaseTransport | None = None,
) -> Any:
    """POST *args* to the tool's endpoint and return the raw payload."""
    if not tool.api_endpoint:
        raise ToolDispatchError(tool.name, "no API endpoint configured")
    headers = {"Content-Type": "application/json", "User-Agent": f"agentforge/{__version__}"}
    async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
        resp = await client.post(tool.api_endpoint, json=args, headers=headers)
        resp.raise_for_status()
    try:
        return resp.json()
    except ValueError:
        return resp.text


async def execute_tool(
    tool: Tool,
    args: Dict[str, Any] | None,
    context: ExecutionContext,
    capabilities: Capabilities,
    adapter: ToolAdapter | None = None,
    api_timeout: float = 30.0,
    transport: httpx.AsyncBaseTransport | None = None,
) -> Any:
    """
    Run *tool* with *args*.

    Dispatch order: sandboxed adapter (bound explicitly or named by ``implementation``), then the
    remote ``api_endpoint``, then a labelled mock result.

    Parameters
    ----------
    tool:
        The registered tool definition.
    args:
        Input produced by the LLM.  If *None*, an empty dict is assumed.
    context:
        Execution context of the current conversation.
    capabilities:
        Helper capabilities handed to adapters.
    adapter:
        Adapter bound at registration time; takes precedence over ``implementation``.
    api_timeout:
        Seconds to wait for a remote endpoint.

    Returns
    -------
    Any
        Whatever the adapter or endpoint returns, or the mock payload.

    Raises
    ------
    ToolDispatchError
        If the implementation names no known adapter, or the adapter / endpoint fails.
    """

    if args is None:
        args = {}

    if tool.implementation or adapter is not None:
        adapter = adapter or resolve_adapter(tool.implementation)
        if adapter is None:
            raise ToolDispatchError(
                tool.name, f"implementation {tool.implementation!r} is not an available adapter"
            )
        try:
            logger.debug("Running adapter '%s' for tool '%s'", adapter.name, tool.name)
            return await adapter.invoke(args, context, capabilities)
        except (TypeError, ValueError, KeyError) as exc:
            logger.warning("Invalid input for tool '%s': %s", tool.name, exc)
            raise ToolDispatchError(tool.name, f"invalid input: {exc}") from exc
        except Exception as exc:  # noqa: BLE001
            logger.exception("Unhandled error in adapter for tool '%s'", tool.name)
            raise ToolDispatchError(tool.name, str(exc)) from exc

    if tool.api_endpoint:
        try:
            logger.debug("Calling endpoint %s for tool '%s'", tool.api_endpoint, tool.name)
            return await call_tool_api(tool, args, api_timeout, transport)
        except ToolDispatchError:
            raise
        except httpx.TimeoutException as exc:
            raise ToolDispatchError(tool.name, f"API call timed out after {api_timeout}s") from exc
        except httpx.HTTPError as exc:
            logger.warning("API call failed for tool '%s': %s", tool.name, exc)
            raise ToolDispatchError(tool.name, f"API call failed: {exc}") from exc
        except httpx.InvalidURL as exc:
            logger.warning("Invalid endpoint for tool '%s': %s", tool.name, exc)
            raise ToolDispatchError(tool.name, f"invalid API endpoint: {exc}") from exc
        except Exception as exc:  # noqa: BLE001
            logger.exception("Unhandled error calling endpoint for tool '%s'", tool.name)
            raise ToolDispatchError(tool.name, f"API call failed: {exc}") from exc

    return mock_result(tool, args)
