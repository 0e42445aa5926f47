"""Runs an assembled agent against the LLM with tool calling."""

from __future__ import annotations

import logging
import time
from typing import (
    Any,
    Dict,
    Iterable,
    List,
    Sequence,
)

import httpx

from agentforge.agent.observers import (
    ExecutionObserver,
    LoggingObserver,
    notify,
)
from agentforge.agent.tool_executor import execute_tool
from agentforge.core.schema import (
    AgentConfig,
    ConfigValidation,
    ExecutionContext,
    ExecutionResult,
    LLMToolSchema,
    TextBlock,
    Tool,
    ToolInvocation,
    ToolUseBlock,
)
from agentforge.errors import ToolDispatchError
from agentforge.llm.interface import BaseLLMClient
from agentforge.tools import (
    Capabilities,
    ToolAdapter,
)

logger = logging.getLogger(__name__)

MIN_SYSTEM_PROMPT_LENGTH = 10


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000


class ExecutionEngine:
    """
    Tool registry plus a single-turn tool-calling loop.

    Tools must be registered explicitly; the last registration for a name wins.  Registration
    and execution are expected to be sequenced by the caller.
    """

    def __init__(
        self,
        llm: BaseLLMClient,
        observers: Sequence[ExecutionObserver] | None = None,
        tool_api_timeout: float = 30.0,
        capabilities: Capabilities | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        max_tokens: int = 4000,
    ) -> None:
        self._llm = llm
        self._observers: List[ExecutionObserver] = (
            list(observers) if observers is not None else [LoggingObserver()]
        )
        self._tool_api_timeout = tool_api_timeout
        self._capabilities = capabilities or Capabilities(http_timeout=tool_api_timeout)
        self._transport = transport
        self._max_tokens = max_tokens
        self._registry: Dict[str, Tool] = {}
        self._adapters: Dict[str, ToolAdapter] = {}

    # ------------------------------------------------------------------ #
    # Registry
    # ------------------------------------------------------------------ #
    def register_tool(self, tool: Tool, adapter: ToolAdapter | None = None) -> None:
        """Register *tool*, optionally binding a sandboxed adapter to it."""
        if tool.name in self._registry:
            logger.debug("Replacing registered tool '%s'", tool.name)
        self._registry[tool.name] = tool
        if adapter is not None:
            self._adapters[tool.name] = adapter
        else:
            self._adapters.pop(tool.name, None)

    def register_tools(self, tools: Iterable[Tool]) -> None:
        """Register every tool in *tools*."""
        for tool in tools:
            self.register_tool(tool)

    def get_tool(self, name: str) -> Tool | None:
        """Return the registered tool called *name*, or None."""
        return self._registry.get(name)

    def add_observer(self, observer: ExecutionObserver) -> None:
        """Subscribe *observer* to execution events."""
        self._observers.append(observer)

    @staticmethod
    def create_execution_context(session_id: str, user_id: str) -> ExecutionContext:
        """Fresh per-conversation context."""
        return ExecutionContext(session_id=session_id, user_id=user_id)

    def prepare_tool_schemas(self, tools: Sequence[Tool]) -> List[LLMToolSchema]:
        """Registered subset of *tools* in the shape the tool-calling interface expects."""
        return [
            LLMToolSchema(
                name=tool.name,
                description=tool.description,
                input_schema={
                    "type": "object",
                    "properties": tool.parameters,
                    "required": list(tool.parameters.keys()),
                },
            )
            for tool in tools
            if tool.name in self._registry
        ]

    # ------------------------------------------------------------------ #
    # Execution
    # ------------------------------------------------------------------ #
    async def execute(
        self, agent: AgentConfig, user_message: str, context: ExecutionContext
    ) -> ExecutionResult:
        """
        Run *agent* on *user_message*.

        Never raises: a failing LLM call yields ``success=False`` with the error message, while a
        failing tool only shows up as an error payload in ``context.tool_results``.
        """
        start = time.perf_counter()
        tools_used: List[str] = []
        notify(self._observers, "on_execution_start", agent.name, context.session_id)

        try:
            response = await self._llm.complete(
                agent.system_prompt,
                [{"role": "user", "content": user_message}],
                tools=self.prepare_tool_schemas(agent.tools),
                max_tokens=self._max_tokens,
            )

            parts: List[str] = []
            for block in response.content:
                if isinstance(block, TextBlock):
                    parts.append(block.text)
                elif isinstance(block, ToolUseBlock):
                    result = await self._dispatch(block, context)
                    tools_used.append(block.name)
                    context.tool_results[block.id] = result
                    notify(
                        self._observers,
                        "on_tool_executed",
                        ToolInvocation(
                            id=block.id,
                            name=block.name,
                            input=block.input,
                            result=result,
                            session_id=context.session_id,
                        ),
                    )
        except Exception as exc:  # pylint: disable=broad-except
            failed = ExecutionResult(
                success=False,
                error=str(exc) or type(exc).__name__,
                tools_used=tools_used,
                execution_time=_elapsed_ms(start),
            )
            notify(self._observers, "on_execution_error", agent.name, context.session_id, failed)
            return failed

        result = ExecutionResult(
            success=True,
            response="".join(parts),
            tools_used=tools_used,
            execution_time=_elapsed_ms(start),
        )
        notify(self._observers, "on_execution_complete", agent.name, result)
        return result

    async def _dispatch(self, block: ToolUseBlock, context: ExecutionContext) -> Any:
        """Run one invocation; failures become a structured error payload."""
        tool = self._registry.get(block.name)
        try:
            if tool is None:
                raise ToolDispatchError(block.name, "not found in registry")
            return await execute_tool(
                tool,
                block.input,
                context,
                self._capabilities,
                adapter=self._adapters.get(tool.name),
                api_timeout=self._tool_api_timeout,
                transport=self._transport,
            )
        except ToolDispatchError as exc:
            logger.warning("%s", exc)
            return {"error": str(exc), "tool": block.name}
        except Exception as exc:  # pylint: disable=broad-except
            logger.exception("Unexpected error dispatching tool '%s'", block.name)
            return {"error": str(exc) or type(exc).__name__, "tool": block.name}

    # ------------------------------------------------------------------ #
    # Validation
    # ------------------------------------------------------------------ #
    def validate(self, agent: AgentConfig) -> ConfigValidation:
        """Structural checks on *agent*; every violation is reported."""
        errors: List[str] = []

        if not agent.system_prompt or len(agent.system_prompt) < MIN_SYSTEM_PROMPT_LENGTH:
            errors.append(
                f"System prompt is required and must be at least "
                f"{MIN_SYSTEM_PROMPT_LENGTH} characters"
            )

        for tool in agent.tools:
            if tool.name not in self._registry:
                errors.append(f"Tool '{tool.name}' is not registered")
            if not tool.description:
                errors.append(f"Tool '{tool.name}' missing description")

        if not agent.capabilities:
            errors.append("Agent must have at least one capability defined")

        return ConfigValidation(valid=not errors, errors=errors)
