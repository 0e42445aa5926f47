"""
Sandboxed tool adapters for agentforge.

Tool definitions produced by the resolver may carry an ``implementation`` string.  That string is
never evaluated: it only *names* one of the statically defined adapters registered here.  An
adapter receives the invocation input, the execution context and a :class:`Capabilities` object,
which is the complete set of things it may do.  No filesystem, process or module access is
handed out.

Adapters are registered with a decorator:
    @register_adapter("my_adapter")
    async def my_adapter(input, context, caps):
        return {...}
"""

import hashlib
import json
import logging
from datetime import (
    datetime,
    timezone,
)
from string import Formatter
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    Mapping,
)
from urllib.parse import urlparse

import httpx

from agentforge.core.schema import ExecutionContext

logger = logging.getLogger(__name__)

ADAPTER_PREFIX = "adapter:"
MAX_RESPONSE_CHARS = 10_000

AdapterFunc = Callable[[Dict[str, Any], ExecutionContext, "Capabilities"], Awaitable[Any]]


class Capabilities:
    """The allow-listed helper capabilities available to an adapter."""

    def __init__(
        self, http_timeout: float = 10.0, transport: httpx.AsyncBaseTransport | None = None
    ) -> None:
        self._http_timeout = http_timeout
        self._transport = transport

    async def http_get(self, url: str, params: Mapping[str, Any] | None = None) -> Any:
        """Bounded GET of an http(s) URL; JSON is decoded, text is truncated."""
        if urlparse(url).scheme not in {"http", "https"}:
            raise ValueError(f"Unsupported URL scheme in {url!r}")
        async with httpx.AsyncClient(
            timeout=self._http_timeout, transport=self._transport
        ) as client:
            resp = await client.get(url, params=dict(params or {}))
            resp.raise_for_status()
        if "json" in resp.headers.get("content-type", ""):
            return resp.json()
        return resp.text[:MAX_RESPONSE_CHARS]

    @staticmethod
    def sha256(text: str) -> str:
        """Hex SHA-256 digest of *text*."""
        return hashlib.sha256(text.encode("utf-8")).hexdigest()

    @staticmethod
    def now() -> str:
        """Current UTC time in ISO-8601."""
        return datetime.now(timezone.utc).isoformat()

    @staticmethod
    def to_json(value: Any) -> str:
        """Serialize *value* as JSON."""
        return json.dumps(value, default=str)


class ToolAdapter:
    """A statically defined tool implementation with a fixed ``invoke`` contract."""

    def __init__(self, name: str, func: AdapterFunc) -> None:
        self.name = name
        self._func = func

    async def invoke(
        self, input: Dict[str, Any], context: ExecutionContext, capabilities: Capabilities
    ) -> Any:
        """Run the adapter on *input*."""
        return await self._func(input, context, capabilities)

    def __repr__(self) -> str:
        return f"ToolAdapter({self.name!r})"


ADAPTER_REGISTRY: Dict[str, ToolAdapter] = {}
"""Closed registry of adapters that tool implementations may name."""


def register_adapter(name: str) -> Callable[[AdapterFunc], AdapterFunc]:
    """
    Register an adapter coroutine function under *name*.

    Raises
    ------
    ValueError
        If an adapter with the same name is already registered.
    """
    if name in ADAPTER_REGISTRY:
        raise ValueError(f"Adapter '{name}' is already registered.")
    logger.debug("Registering adapter '%s'", name)

    def wrapper(fn: AdapterFunc) -> AdapterFunc:
        ADAPTER_REGISTRY[name] = ToolAdapter(name, fn)
        return fn

    return wrapper


def resolve_adapter(implementation: str | None) -> ToolAdapter | None:
    """Map an implementation reference (``"adapter:<name>"`` or ``"<name>"``) to an adapter."""
    if not implementation:
        return None
    ref = implementation.strip()
    if ref.startswith(ADAPTER_PREFIX):
        ref = ref[len(ADAPTER_PREFIX) :].strip()
    return ADAPTER_REGISTRY.get(ref)


# ---------------------------------------------------------------------------
# Built-in adapters
# ---------------------------------------------------------------------------
@register_adapter("echo")
async def echo_adapter(
    input: Dict[str, Any], context: ExecutionContext, caps: Capabilities
) -> Dict[str, Any]:
    """Echo the input back to the caller."""
    return {"echo": input, "sessionId": context.session_id}


@register_adapter("hash")
async def hash_adapter(
    input: Dict[str, Any], context: ExecutionContext, caps: Capabilities
) -> Dict[str, Any]:
    """SHA-256 of ``input["text"]``."""
    text = input.get("text")
    if not isinstance(text, str):
        raise ValueError("'text' must be a string")
    return {"sha256": caps.sha256(text)}


@register_adapter("template")
async def template_adapter(
    input: Dict[str, Any], context: ExecutionContext, caps: Capabilities
) -> Dict[str, Any]:
    """Fill ``input["template"]`` from ``input["values"]`` and the context variables."""
    template = input.get("template")
    if not isinstance(template, str):
        raise ValueError("'template' must be a string")
    values = {**context.variables, **(input.get("values") or {})}
    # only plain {name} fields; attribute and index lookups are refused
    for _, field, _, _ in Formatter().parse(template):
        if field is not None and not field.isidentifier():
            raise ValueError(f"Unsupported template field {field!r}")
    return {"text": template.format(**values)}


@register_adapter("http_get")
async def http_get_adapter(
    input: Dict[str, Any], context: ExecutionContext, caps: Capabilities
) -> Dict[str, Any]:
    """GET ``input["url"]`` with optional ``input["params"]``."""
    url = input.get("url")
    if not isinstance(url, str) or not url:
        raise ValueError("'url' must be a non-empty string")
    return {"url": url, "body": await caps.http_get(url, input.get("params")), "at": caps.now()}
