"""Tests for the end-to-end build pipeline."""

import asyncio
import json

import pytest
from fakes import (
    FakeLLM,
    FakeSearch,
    hit,
)

from agentforge.errors import (
    DescriptionParseError,
    PipelineCancelledError,
)
from agentforge.pipeline.builder import (
    AgentBuilder,
    CancelToken,
    extract_agent_name,
)
from agentforge.pipeline.description_parser import DescriptionParser
from agentforge.pipeline.plan_generator import (
    FALLBACK_TOTAL_TIME,
    PlanGenerator,
)
from agentforge.pipeline.tool_resolver import ToolResolver

DESCRIPTION = "Support bot that answers Zendesk tickets using Confluence pages"

PARSED = json.dumps(
    {
        "description": "Support bot answering tickets",
        "requirements": ["answer tickets", "cite sources"],
        "constraints": ["be polite"],
        "mentionedTools": ["Zendesk", "Confluence"],
        "impliedCapabilities": ["search"],
    }
)


def _responder(prompt: str) -> str:
    if prompt.startswith("Analyze this AI agent description"):
        return PARSED
    if "Tool Name: Zendesk" in prompt:
        return '{"name": "zendeskTickets", "description": "tickets"}'
    if "Tool Name: Confluence" in prompt:
        return '{"name": "confluencePages", "description": "pages"}'
    if prompt.startswith("Create a system prompt"):
        return "You are a support bot."
    return "no plan today"


def _builder(llm: FakeLLM) -> AgentBuilder:
    search = FakeSearch(
        {
            "Zendesk API": [hit("Zendesk API", text="zendesk")],
            "Confluence API": [hit("Confluence API", text="confluence")],
        }
    )
    return AgentBuilder(
        DescriptionParser(llm), ToolResolver(llm, search), PlanGenerator(llm, search)
    )


def test_extract_agent_name() -> None:
    """First three words, capitalised, plus Agent."""

    assert extract_agent_name("support bot that answers") == "Support Bot That Agent"
    assert extract_agent_name("triage") == "Triage Agent"


def test_create_builds_a_complete_agent() -> None:
    """Parser, resolver, prompt and planner outputs end up in one agent."""

    result = asyncio.run(_builder(FakeLLM(responder=_responder)).create(DESCRIPTION))

    agent = result.agent
    assert agent.name == "Support Bot Answering Agent"
    assert agent.description == "Support bot answering tickets"
    assert agent.system_prompt == "You are a support bot."
    assert [t.name for t in agent.tools] == ["zendeskTickets", "confluencePages"]
    assert agent.capabilities == ["answer tickets", "cite sources"]
    assert agent.constraints == ["be polite"]
    assert result.plan.agent_id == agent.id
    assert result.plan.total_estimated_time == FALLBACK_TOTAL_TIME
    assert result.parsed_description.mentioned_tools == ["Zendesk", "Confluence"]


def test_explicit_tool_list_overrides_parsed_names() -> None:
    """An explicit empty list skips resolution entirely."""

    result = asyncio.run(_builder(FakeLLM(responder=_responder)).create(DESCRIPTION, []))
    assert result.agent.tools == []


def test_parse_failure_stops_the_pipeline() -> None:
    """Nothing downstream runs when the description is not understood."""

    llm = FakeLLM(["gibberish"])
    with pytest.raises(DescriptionParseError):
        asyncio.run(_builder(llm).create(DESCRIPTION))
    assert len(llm.calls) == 1


def test_cancelled_token_stops_before_parsing() -> None:
    """A tripped token prevents any LLM call."""

    llm = FakeLLM(responder=_responder)
    token = CancelToken()
    token.cancel()

    with pytest.raises(PipelineCancelledError) as info:
        asyncio.run(_builder(llm).create(DESCRIPTION, cancel=token))
    assert "parsing" in str(info.value)
    assert llm.calls == []
    assert token.cancelled


def test_cancel_between_stages() -> None:
    """Cancelling during resolution stops before the system prompt."""

    token = CancelToken()

    def responder(prompt: str) -> str:
        if "Tool Name:" in prompt:
            token.cancel()
        return _responder(prompt)

    llm = FakeLLM(responder=responder)
    with pytest.raises(PipelineCancelledError) as info:
        asyncio.run(_builder(llm).create(DESCRIPTION, cancel=token))
    assert "system prompt" in str(info.value)
