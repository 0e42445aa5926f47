"""Observer interface for execution telemetry."""

import logging
from typing import (
    List,
    Sequence,
)

from agentforge.core.schema import (
    ExecutionResult,
    ToolInvocation,
)

logger = logging.getLogger(__name__)


class ExecutionObserver:
    """
    Receives execution events.  All hooks are no-ops by default.

    Observers are notified after the fact and cannot influence control flow; an exception raised
    by a hook is logged and ignored.
    """

    def on_execution_start(self, agent_name: str, session_id: str) -> None:
        """Called before the LLM call of an ``execute`` run."""

    def on_tool_executed(self, invocation: ToolInvocation) -> None:
        """Called once per dispatched tool invocation."""

    def on_execution_complete(self, agent_name: str, result: ExecutionResult) -> None:
        """Called when an ``execute`` run succeeded."""

    def on_execution_error(self, agent_name: str, session_id: str, result: ExecutionResult) -> None:
        """Called when an ``execute`` run failed."""


class LoggingObserver(ExecutionObserver):
    """Writes every event to the module logger."""

    def on_execution_start(self, agent_name: str, session_id: str) -> None:
        logger.info("Execution started: agent=%s session=%s", agent_name, session_id)

    def on_tool_executed(self, invocation: ToolInvocation) -> None:
        logger.info(
            "Tool executed: %s (session=%s) input=%s",
            invocation.name,
            invocation.session_id,
            invocation.input,
        )

    def on_execution_complete(self, agent_name: str, result: ExecutionResult) -> None:
        logger.info(
            "Execution complete: agent=%s tools=%s in %.0f ms",
            agent_name,
            result.tools_used,
            result.execution_time,
        )

    def on_execution_error(self, agent_name: str, session_id: str, result: ExecutionResult) -> None:
        logger.error(
            "Execution failed: agent=%s session=%s error=%s", agent_name, session_id, result.error
        )


class RecordingObserver(ExecutionObserver):
    """Keeps tool invocations in memory, for monitoring dashboards and tests."""

    def __init__(self) -> None:
        self.invocations: List[ToolInvocation] = []
        self.results: List[ExecutionResult] = []

    def on_tool_executed(self, invocation: ToolInvocation) -> None:
        self.invocations.append(invocation)

    def on_execution_complete(self, agent_name: str, result: ExecutionResult) -> None:
        self.results.append(result)

    def on_execution_error(self, agent_name: str, session_id: str, result: ExecutionResult) -> None:
        self.results.append(result)


def notify(observers: Sequence[ExecutionObserver], hook: str, *args: object) -> None:
    """Call *hook* on every observer, isolating failures."""
    for observer in observers:
        try:
            getattr(observer, hook)(*args)
        except Exception:  # pylint: disable=broad-except
            logger.exception("Observer %r failed in %s", observer, hook)
