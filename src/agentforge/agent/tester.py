"""Derives behavioural test cases from an agent config and scores the results."""

import asyncio
import logging
import time
from collections import Counter
from typing import (
    List,
    Sequence,
)

from agentforge.agent.execution_engine import ExecutionEngine
from agentforge.core.schema import (
    AgentConfig,
    BenchmarkResult,
    ConfigValidation,
    TestCase,
    TestResult,
    ValidationResult,
    generate_id,
)

logger = logging.getLogger(__name__)

TIMEOUT_ERROR = "Test timeout"
PASS_THRESHOLD = 80
WARN_THRESHOLD = 60
SLOW_AVERAGE_MS = 10_000

CAPABILITY_TIMEOUT = 30.0
TOOL_TIMEOUT = 45.0
EDGE_CASE_TIMEOUT = 15.0


def score_results(results: Sequence[TestResult]) -> ValidationResult:
    """Percentage of successful cases mapped onto pass / warning / fail."""
    total = len(results)
    passed = sum(1 for r in results if r.success)
    score = round(passed / total * 100) if total else 0

    if score >= PASS_THRESHOLD:
        overall = "pass"
    elif score >= WARN_THRESHOLD:
        overall = "warning"
    else:
        overall = "fail"

    return ValidationResult(
        overall=overall,
        score=score,
        results=list(results),
        recommendations=recommendations_for(results),
    )


def recommendations_for(results: Sequence[TestResult]) -> List[str]:
    """Canned advice derived from the failure categories in *results*."""
    recommendations: List[str] = []

    failed = [r for r in results if not r.success]
    if failed:
        recommendations.append(
            f"{len(failed)} tests failed. Review error messages and improve agent implementation."
        )

    if any(r.error and "timeout" in r.error.lower() for r in results):
        recommendations.append(
            "Some tests timed out. Consider optimizing agent response time or increasing "
            "timeout values."
        )

    if any(r.error and ("Tool" in r.error or "API" in r.error) for r in results):
        recommendations.append(
            "Tool integration issues detected. Verify API keys and tool configurations."
        )

    if results and sum(r.execution_time for r in results) / len(results) > SLOW_AVERAGE_MS:
        recommendations.append(
            "Average execution time is high. Consider optimizing agent performance."
        )

    if not recommendations:
        recommendations.append("All tests passed successfully! Agent is ready for deployment.")
    return recommendations


class AgentTester:
    """Runs generated test cases through an ``ExecutionEngine``."""

    def __init__(self, engine: ExecutionEngine, timeout_scale: float = 1.0) -> None:
        self._engine = engine
        self._timeout_scale = timeout_scale

    def generate_test_cases(self, agent: AgentConfig) -> List[TestCase]:
        """One case per capability, one per tool, plus the two edge cases."""
        cases: List[TestCase] = []

        for capability in agent.capabilities:
            cases.append(
                TestCase(
                    name=f"Test {capability}",
                    input=f"Please demonstrate your ability to: {capability}",
                    expected_behavior=f"Should successfully execute {capability}",
                    timeout=CAPABILITY_TIMEOUT * self._timeout_scale,
                )
            )

        for tool in agent.tools:
            cases.append(
                TestCase(
                    name=f"Test {tool.name} integration",
                    input=f"Use the {tool.name} tool to help me with a task",
                    expected_behavior=f"Should successfully use {tool.name} tool",
                    timeout=TOOL_TIMEOUT * self._timeout_scale,
                )
            )

        cases.append(
            TestCase(
                name="Handle unclear request",
                input="Help me with something",
                expected_behavior="Should ask for clarification",
                timeout=EDGE_CASE_TIMEOUT * self._timeout_scale,
            )
        )
        cases.append(
            TestCase(
                name="Respect constraints",
                input="Do something you are not supposed to do",
                expected_behavior="Should politely decline and explain constraints",
                timeout=EDGE_CASE_TIMEOUT * self._timeout_scale,
            )
        )
        return cases

    async def run_tests(
        self, agent: AgentConfig, test_cases: Sequence[TestCase] | None = None
    ) -> ValidationResult:
        """Register the agent's tools, run every case under its own timeout and score."""
        self._engine.register_tools(agent.tools)
        cases = list(test_cases) if test_cases is not None else self.generate_test_cases(agent)

        results = [await self._run_single_test(agent, case) for case in cases]
        outcome = score_results(results)
        logger.info(
            "Tested agent '%s': %s (%d%%, %d cases)",
            agent.name,
            outcome.overall,
            outcome.score,
            len(results),
        )
        return outcome

    async def _run_single_test(self, agent: AgentConfig, case: TestCase) -> TestResult:
        context = self._engine.create_execution_context(generate_id(), "test-user")
        start = time.perf_counter()
        try:
            result = await asyncio.wait_for(
                self._engine.execute(agent, case.input, context), timeout=case.timeout
            )
        except asyncio.TimeoutError:
            logger.warning("Test case '%s' timed out after %.1fs", case.name, case.timeout)
            return TestResult(
                test_case=case,
                success=False,
                error=TIMEOUT_ERROR,
                execution_time=(time.perf_counter() - start) * 1000,
            )

        return TestResult(
            test_case=case,
            success=result.success,
            response=result.response,
            error=result.error,
            execution_time=(time.perf_counter() - start) * 1000,
            tools_used=result.tools_used,
        )

    def validate_agent_config(self, agent: AgentConfig) -> ConfigValidation:
        """Structural validation, delegated to the engine."""
        return self._engine.validate(agent)

    async def benchmark_agent(self, agent: AgentConfig, iterations: int = 5) -> BenchmarkResult:
        """Run the agent's main capability *iterations* times and summarise."""
        if iterations < 1:
            raise ValueError("iterations must be at least 1")

        self._engine.register_tools(agent.tools)
        main_capability = agent.capabilities[0] if agent.capabilities else "help the user"
        prompt = f"Please demonstrate your main capability: {main_capability}"

        results = []
        for _ in range(iterations):
            context = self._engine.create_execution_context(generate_id(), "benchmark-user")
            results.append(await self._engine.execute(agent, prompt, context))

        usage = Counter(name for result in results for name in result.tools_used)
        return BenchmarkResult(
            average_execution_time=sum(r.execution_time for r in results) / len(results),
            success_rate=sum(1 for r in results if r.success) / len(results) * 100,
            tool_usage_stats=dict(usage),
        )
