"""
Pydantic models for agentforge API requests and responses.
This module defines the request and response schemas used by the agentforge API; payloads use
camelCase field names.
"""

from typing import (
    Any,
    Dict,
    List,
    Optional,
)

from pydantic import Field

from agentforge.core.schema import (
    AgentConfig,
    AgentDescription,
    AgentPlan,
    ExecutionResult,
    PlanStep,
    Tool,
    WireModel,
)


# ---------------------------------------------------------------------------
# Pydantic request / response schema
# ---------------------------------------------------------------------------
class ParseRequest(WireModel):
    """Free-text description to parse."""

    description: str = Field(..., min_length=1, description="Agent description")


class ResearchToolsRequest(WireModel):
    """Tool names to resolve for a use case."""

    tool_names: List[str]
    use_case: str = ""


class ToolsResponse(WireModel):
    """Resolved tools."""

    tools: List[Tool]


class GeneratePlanRequest(WireModel):
    """Parsed description plus resolved tools."""

    description: AgentDescription
    tools: List[Tool] = Field(default_factory=list)


class CreateAgentRequest(WireModel):
    """End-to-end build request."""

    description: str = Field(..., min_length=1, description="Agent description")
    mentioned_tools: Optional[List[str]] = Field(
        None, description="Overrides the tool names found in the description"
    )


class CreateAgentResponse(WireModel):
    """Everything produced by one build."""

    agent: AgentConfig
    plan: AgentPlan
    parsed_description: AgentDescription


class ExecuteRequest(WireModel):
    """Message for a created agent."""

    message: str = Field(..., min_length=1, description="User message for the agent")
    session_id: Optional[str] = Field(None, description="Session ID for conversation context")
    user_id: str = "anonymous"


class ExecuteResponse(ExecutionResult):
    """Execution outcome plus the session it ran in."""

    session_id: str
    tool_results: Dict[str, Any] = Field(default_factory=dict)


class AlternativesRequest(WireModel):
    """Tool to find alternatives for."""

    tool_name: str = Field(..., min_length=1)
    use_case: str = ""


class AlternativesResponse(WireModel):
    """Alternative tool names."""

    alternatives: List[str]


class EnhanceStepRequest(WireModel):
    """Plan containing the step to enhance."""

    plan: AgentPlan


class EnhanceStepResponse(WireModel):
    """The enhanced step."""

    step: PlanStep
