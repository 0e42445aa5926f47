"""
End-to-end build pipeline.

text -> ``AgentDescription`` -> resolved ``Tool`` list -> system prompt + ``AgentPlan`` ->
``AgentConfig``.  Data flows strictly forward; a :class:`CancelToken` can stop a run between
stages.
"""

import logging
from dataclasses import dataclass
from typing import (
    List,
    Sequence,
)

from agentforge.core.schema import (
    AgentConfig,
    AgentDescription,
    AgentPlan,
    Tool,
    generate_id,
)
from agentforge.errors import PipelineCancelledError
from agentforge.pipeline.description_parser import DescriptionParser
from agentforge.pipeline.plan_generator import PlanGenerator
from agentforge.pipeline.tool_resolver import ToolResolver

logger = logging.getLogger(__name__)


class CancelToken:
    """Cooperative cancellation flag checked between pipeline stages."""

    def __init__(self) -> None:
        self._cancelled = False

    def cancel(self) -> None:
        """Request cancellation; the running pipeline stops at the next stage boundary."""
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def raise_if_cancelled(self, stage: str) -> None:
        """Raise :class:`PipelineCancelledError` if cancellation was requested."""
        if self._cancelled:
            raise PipelineCancelledError(f"Pipeline cancelled before {stage}")


@dataclass(frozen=True)
class BuildResult:
    """Everything produced by one build run."""

    agent: AgentConfig
    plan: AgentPlan
    parsed_description: AgentDescription


def extract_agent_name(description: str) -> str:
    """First three words, capitalised, followed by "Agent"."""
    words = description.split()[:3]
    return " ".join(word.capitalize() for word in words + ["agent"])


class AgentBuilder:
    """Chains parser, resolver and plan generator into an ``AgentConfig``."""

    def __init__(
        self, parser: DescriptionParser, resolver: ToolResolver, planner: PlanGenerator
    ) -> None:
        self.parser = parser
        self.resolver = resolver
        self.planner = planner

    async def create(
        self,
        description: str,
        mentioned_tools: Sequence[str] | None = None,
        cancel: CancelToken | None = None,
    ) -> BuildResult:
        """
        Build an agent from free text.

        *mentioned_tools*, when given, replaces the tool names found by the parser.

        Raises
        ------
        DescriptionParseError
            If the description cannot be understood.
        ExternalServiceError
            If the LLM cannot be reached while parsing or writing the system prompt.
        PipelineCancelledError
            If *cancel* was tripped.
        """
        cancel = cancel or CancelToken()

        cancel.raise_if_cancelled("parsing")
        parsed = await self.parser.parse(description)

        cancel.raise_if_cancelled("tool resolution")
        names = list(mentioned_tools) if mentioned_tools is not None else parsed.mentioned_tools
        logger.info("Tools to resolve: %s", names)
        tools: List[Tool] = (
            await self.resolver.resolve_tools(names, parsed.description) if names else []
        )

        cancel.raise_if_cancelled("system prompt synthesis")
        system_prompt = await self.parser.synthesize_system_prompt(parsed)

        cancel.raise_if_cancelled("plan generation")
        agent_id = generate_id()
        plan = await self.planner.generate_plan(parsed, tools, agent_id=agent_id)

        agent = AgentConfig(
            id=agent_id,
            name=extract_agent_name(parsed.description),
            description=parsed.description,
            system_prompt=system_prompt,
            tools=tools,
            capabilities=list(parsed.requirements),
            constraints=list(parsed.constraints),
        )
        logger.info("Built agent '%s' (%s) with %d tools", agent.name, agent.id, len(tools))
        return BuildResult(agent=agent, plan=plan, parsed_description=parsed)
