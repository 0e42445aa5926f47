"""Tests for generated behavioural tests, scoring and benchmarking."""

import asyncio

import pytest
from fakes import FakeLLM

from agentforge.agent.execution_engine import ExecutionEngine
from agentforge.agent.tester import (
    TIMEOUT_ERROR,
    AgentTester,
    recommendations_for,
    score_results,
)
from agentforge.core.schema import (
    AgentConfig,
    LLMResponse,
    TestCase,
    TestResult,
    Tool,
    ToolUseBlock,
)
from agentforge.errors import ExternalServiceError

AGENT = AgentConfig(
    name="Support Agent",
    description="answers tickets",
    system_prompt="You are a helpful support agent.",
    tools=[Tool(name="zendesk", description="tickets")],
    capabilities=["answer tickets", "summarize threads"],
)


def _result(success: bool, error: str | None = None, ms: float = 5.0) -> TestResult:
    case = TestCase(name="c", input="i", expected_behavior="e", timeout=1.0)
    return TestResult(test_case=case, success=success, error=error, execution_time=ms)


def test_generated_cases_cover_capabilities_tools_and_edges() -> None:
    """Two capability cases, one tool case and the two edge cases, in that order."""

    cases = AgentTester(ExecutionEngine(FakeLLM()), timeout_scale=2.0).generate_test_cases(AGENT)

    assert [c.name for c in cases] == [
        "Test answer tickets",
        "Test summarize threads",
        "Test zendesk integration",
        "Handle unclear request",
        "Respect constraints",
    ]
    assert [c.timeout for c in cases] == [60.0, 60.0, 90.0, 30.0, 30.0]
    assert cases[2].input == "Use the zendesk tool to help me with a task"
    assert len({c.id for c in cases}) == len(cases)


@pytest.mark.parametrize(
    "outcomes, overall, score",
    [
        ([True] * 5, "pass", 100),
        ([True] * 4 + [False], "pass", 80),
        ([True] * 3 + [False] * 2, "warning", 60),
        ([True, False, False], "fail", 33),
        ([], "fail", 0),
    ],
)
def test_score_thresholds(outcomes: list, overall: str, score: int) -> None:
    """Score is the rounded pass percentage mapped onto the thresholds."""

    validation = score_results([_result(ok) for ok in outcomes])
    assert validation.overall == overall
    assert validation.score == score


def test_recommendations() -> None:
    """Each failure category adds its own advice."""

    assert recommendations_for([_result(True)]) == [
        "All tests passed successfully! Agent is ready for deployment."
    ]

    advice = recommendations_for(
        [
            _result(False, TIMEOUT_ERROR),
            _result(False, "Tool 'zendesk' failed: API call failed"),
            _result(True, ms=40_000),
        ]
    )
    assert advice[0].startswith("2 tests failed")
    assert any("timed out" in line for line in advice)
    assert any("Tool integration issues" in line for line in advice)
    assert any("Average execution time is high" in line for line in advice)


def test_run_tests_scores_engine_results() -> None:
    """Every case runs through the engine; LLM errors count as failures."""

    def responder(prompt: str) -> object:
        if "summarize" in prompt:
            return ExternalServiceError("llm", "overloaded")
        if "zendesk" in prompt:
            return LLMResponse(content=[ToolUseBlock(id="t", name="zendesk", input={})])
        return "Sure."

    engine = ExecutionEngine(FakeLLM(responder=responder), observers=[])
    validation = asyncio.run(AgentTester(engine).run_tests(AGENT))

    assert [r.success for r in validation.results] == [True, False, True, True, True]
    assert validation.score == 80
    assert validation.overall == "pass"
    assert validation.results[2].tools_used == ["zendesk"]
    assert engine.get_tool("zendesk") is not None


def test_slow_case_times_out() -> None:
    """A case exceeding its timeout is a failure with the timeout error."""

    engine = ExecutionEngine(FakeLLM(responder=lambda prompt: "late", delay=0.5), observers=[])
    case = TestCase(name="slow", input="hi", expected_behavior="answer", timeout=0.05)

    validation = asyncio.run(AgentTester(engine).run_tests(AGENT, [case]))

    assert validation.results[0].error == TIMEOUT_ERROR
    assert not validation.results[0].success
    assert validation.overall == "fail"


def test_validate_agent_config_delegates_to_engine() -> None:
    """Unregistered tools are reported until the tester registers them."""

    engine = ExecutionEngine(FakeLLM(), observers=[])
    tester = AgentTester(engine)
    assert not tester.validate_agent_config(AGENT).valid

    engine.register_tools(AGENT.tools)
    assert tester.validate_agent_config(AGENT).valid


def test_benchmark_statistics() -> None:
    """Averages, success rate and tool usage over the iterations."""

    replies = [
        LLMResponse(content=[ToolUseBlock(id="1", name="zendesk", input={})]),
        ExternalServiceError("llm", "down"),
        LLMResponse(content=[ToolUseBlock(id="2", name="zendesk", input={})]),
        "plain answer",
    ]
    llm = FakeLLM(replies)
    engine = ExecutionEngine(llm, observers=[])

    benchmark = asyncio.run(AgentTester(engine).benchmark_agent(AGENT, iterations=4))

    assert benchmark.success_rate == 75.0
    assert benchmark.tool_usage_stats == {"zendesk": 2}
    assert benchmark.average_execution_time >= 0
    assert "answer tickets" in llm.calls[0]["prompt"]


def test_benchmark_requires_an_iteration() -> None:
    """Zero iterations is rejected."""

    with pytest.raises(ValueError):
        asyncio.run(AgentTester(ExecutionEngine(FakeLLM())).benchmark_agent(AGENT, iterations=0))
