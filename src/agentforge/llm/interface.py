"""
LLM completion interface for agentforge.

This module is the only place that *directly* calls an LLM provider.  Every pipeline stage
depends on :class:`BaseLLMClient` and its :class:`~agentforge.core.schema.LLMResponse` shape,
never on a provider SDK.

We support two back-ends out of the box:

1. **Anthropic** messages API (``tool_use`` content blocks).
2. **OpenAI** chat completions (function tools mapped onto ``tool_use`` blocks).

Additional providers can be added by subclassing :class:`BaseLLMClient` and registering via
:func:`register_llm`.
"""

import json
import logging
from abc import (
    ABC,
    abstractmethod,
)
from typing import (
    Any,
    Callable,
    Dict,
    List,
    Sequence,
    Type,
)

from agentforge.config import Settings
from agentforge.core.schema import (
    LLMResponse,
    LLMToolSchema,
    TextBlock,
    ToolUseBlock,
)
from agentforge.errors import ExternalServiceError

logger = logging.getLogger(__name__)

Message = Dict[str, Any]
DEFAULT_MAX_TOKENS = 4000


# ---------------------------------------------------------------------------
# Registry helpers
# ---------------------------------------------------------------------------
_LLM_REGISTRY: dict[str, Type["BaseLLMClient"]] = {}


def register_llm(name: str) -> Callable:
    """Decorator to register an LLM client class under *name*."""

    def wrapper(cls: Type["BaseLLMClient"]) -> Type["BaseLLMClient"]:
        _LLM_REGISTRY[name] = cls
        return cls

    return wrapper


def load_llm(settings: Settings, name: str | None = None) -> "BaseLLMClient":
    """
    Factory that returns an instantiated LLM client.

    Fallback order:
    1. *name* arg
    2. ``settings.LLM_PROVIDER``
    """

    target = (name or settings.LLM_PROVIDER).lower()
    cls = _LLM_REGISTRY.get(target)
    if cls is None:
        raise ValueError(f"LLM provider '{target}' is not registered.")
    return cls.from_settings(settings)


# ---------------------------------------------------------------------------
# Base class
# ---------------------------------------------------------------------------
class BaseLLMClient(ABC):
    """Abstract completion client: system prompt + messages (+ tools) -> content blocks."""

    @classmethod
    def from_settings(cls, settings: Settings) -> "BaseLLMClient":
        """Build the client from explicit settings."""
        raise NotImplementedError(f"{cls.__name__} cannot be built from settings")

    @abstractmethod
    async def complete(
        self,
        system: str | None,
        messages: Sequence[Message],
        tools: Sequence[LLMToolSchema] | None = None,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ) -> LLMResponse:
        """Return the ordered content blocks of one completion."""

    async def complete_text(
        self, prompt: str, max_tokens: int = DEFAULT_MAX_TOKENS, system: str | None = None
    ) -> str:
        """Single user prompt in, trimmed text out."""
        response = await self.complete(
            system, [{"role": "user", "content": prompt}], max_tokens=max_tokens
        )
        return response.text.strip()


# ---------------------------------------------------------------------------
# Concrete clients
# ---------------------------------------------------------------------------
@register_llm("anthropic")
class AnthropicClient(BaseLLMClient):
    """Anthropic Claude client."""

    def __init__(self, api_key: str | None, model: str, timeout: float = 120.0) -> None:
        import anthropic  # pylint: disable=import-outside-toplevel

        self._client = anthropic.AsyncAnthropic(api_key=api_key, timeout=timeout)
        self._model = model

    @classmethod
    def from_settings(cls, settings: Settings) -> "AnthropicClient":
        return cls(settings.ANTHROPIC_API_KEY, settings.ANTHROPIC_MODEL, settings.LLM_TIMEOUT)

    async def complete(
        self,
        system: str | None,
        messages: Sequence[Message],
        tools: Sequence[LLMToolSchema] | None = None,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ) -> LLMResponse:
        kwargs: Dict[str, Any] = {
            "model": self._model,
            "max_tokens": max_tokens,
            "messages": list(messages),
        }
        if system:
            kwargs["system"] = system
        if tools:
            kwargs["tools"] = [tool.model_dump() for tool in tools]

        try:
            response = await self._client.messages.create(**kwargs)
        except Exception as exc:  # pylint: disable=broad-except
            logger.error("Anthropic request error: %s", str(exc))
            raise ExternalServiceError("llm", str(exc)) from exc

        blocks: List[TextBlock | ToolUseBlock] = []
        for block in response.content:
            if block.type == "text":
                blocks.append(TextBlock(text=block.text))
            elif block.type == "tool_use":
                blocks.append(ToolUseBlock(id=block.id, name=block.name, input=block.input or {}))
            else:
                logger.debug("Ignoring Anthropic content block of type '%s'", block.type)
        return LLMResponse(content=blocks)


@register_llm("openai")
class OpenAIClient(BaseLLMClient):
    """OpenAI chat-completions client."""

    def __init__(self, api_key: str | None, model: str, timeout: float = 120.0) -> None:
        import openai  # pylint: disable=import-outside-toplevel

        self._client = openai.AsyncOpenAI(api_key=api_key, timeout=timeout)
        self._model = model

    @classmethod
    def from_settings(cls, settings: Settings) -> "OpenAIClient":
        return cls(settings.OPENAI_API_KEY, settings.OPENAI_MODEL, settings.LLM_TIMEOUT)

    async def complete(
        self,
        system: str | None,
        messages: Sequence[Message],
        tools: Sequence[LLMToolSchema] | None = None,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ) -> LLMResponse:
        chat: List[Message] = [{"role": "system", "content": system}] if system else []
        chat.extend(messages)
        kwargs: Dict[str, Any] = {"model": self._model, "max_tokens": max_tokens, "messages": chat}
        if tools:
            kwargs["tools"] = [
                {
                    "type": "function",
                    "function": {
                        "name": tool.name,
                        "description": tool.description,
                        "parameters": tool.input_schema,
                    },
                }
                for tool in tools
            ]

        try:
            resp = await self._client.chat.completions.create(**kwargs)
        except Exception as exc:  # pylint: disable=broad-except
            logger.error("OpenAI request error: %s", str(exc))
            raise ExternalServiceError("llm", str(exc)) from exc

        message = resp.choices[0].message
        blocks: List[TextBlock | ToolUseBlock] = []
        if message.content:
            blocks.append(TextBlock(text=message.content))
        for call in message.tool_calls or []:
            try:
                arguments = json.loads(call.function.arguments or "{}")
            except json.JSONDecodeError:
                logger.warning("OpenAI returned non-JSON arguments for '%s'", call.function.name)
                arguments = {}
            blocks.append(ToolUseBlock(id=call.id, name=call.function.name, input=arguments))
        return LLMResponse(content=blocks)
