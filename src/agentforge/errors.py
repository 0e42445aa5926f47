"""
Error taxonomy shared by every pipeline stage.

Structural configuration problems are *not* represented here: they are returned as a list by
:meth:`agentforge.agent.execution_engine.ExecutionEngine.validate` and never raised.
"""


class AgentForgeError(RuntimeError):
    """Base class for all agentforge errors."""


class ResponseParseError(AgentForgeError):
    """Raised when LLM output cannot be reduced to a single valid JSON object."""

    def __init__(self, message: str, raw: str = "") -> None:
        super().__init__(message)
        self.raw = raw


class DescriptionParseError(ResponseParseError):
    """Raised when a free-text description cannot be turned into an ``AgentDescription``."""


class ToolResolutionError(AgentForgeError):
    """Raised when a single tool name cannot be resolved into a ``Tool``."""

    def __init__(self, tool_name: str, reason: str) -> None:
        super().__init__(f"Could not resolve tool '{tool_name}': {reason}")
        self.tool_name = tool_name


class ToolDispatchError(AgentForgeError):
    """Raised when a single tool invocation fails."""

    def __init__(self, tool_name: str, reason: str) -> None:
        super().__init__(f"Tool '{tool_name}' failed: {reason}")
        self.tool_name = tool_name
        self.reason = reason


class ExternalServiceError(AgentForgeError):
    """Raised when the LLM or the search provider cannot be reached or times out."""

    def __init__(self, service: str, message: str) -> None:
        super().__init__(f"{service} service error: {message}")
        self.service = service


class StepNotFoundError(AgentForgeError, LookupError):
    """Raised when a plan step id does not exist in the plan."""

    def __init__(self, step_id: str) -> None:
        super().__init__(f"Step '{step_id}' not found")
        self.step_id = step_id


class PlanValidationError(AgentForgeError, ValueError):
    """Raised when plan steps reference unknown steps or form a dependency cycle."""


class PipelineCancelledError(AgentForgeError):
    """Raised when a build pipeline run is cancelled between stages."""
