"""
Implementation-plan generation.

The LLM-authored plan JSON is the least reliable artefact of the whole pipeline, so every
failure on that path (unreachable LLM, unparseable text, schema mismatch, cyclic dependencies)
falls back to a fixed five-step plan.  The user always gets a plan.
"""

import logging
from typing import (
    ClassVar,
    List,
    Sequence,
)

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
)
from pydantic.alias_generators import to_camel

from agentforge.core.extractor import extract_model
from agentforge.core.schema import (
    AgentDescription,
    AgentPlan,
    PlanStep,
    SearchResult,
    StepStatus,
    Tool,
    generate_id,
)
from agentforge.errors import (
    AgentForgeError,
    ExternalServiceError,
    StepNotFoundError,
)
from agentforge.llm.interface import BaseLLMClient
from agentforge.search.web_search import WebSearchClient

logger = logging.getLogger(__name__)

FALLBACK_TOTAL_TIME = "2.5 hours"


class _DraftStep(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str | None = None
    title: str
    description: str
    required_tools: List[str] = Field(default_factory=list)
    estimated_time: str = "unspecified"
    dependencies: List[str] = Field(default_factory=list)


class _DraftPlan(BaseModel):
    """Validates the LLM's plan JSON."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    steps: List[_DraftStep] = Field(min_length=1)
    total_estimated_time: str = "unspecified"


def _context_from(results: Sequence[SearchResult], limit: int, separator: str) -> str:
    return separator.join(f"{r.title}: {r.snippet}" for r in results[:limit])


def fallback_steps(description: AgentDescription, tools: Sequence[Tool]) -> List[PlanStep]:
    """The fixed five-step plan: setup, integration, core logic, error handling, testing."""
    names = [tool.name for tool in tools]
    blueprint = [
        (
            "Setup Development Environment",
            "Initialize project structure and install dependencies",
            [],
            "15 minutes",
        ),
        (
            "Integrate Required Tools",
            f"Implement and test integration with: {', '.join(names) or 'no external tools'}",
            names,
            "45 minutes",
        ),
        (
            "Implement Agent Logic",
            f"Build core agent functionality: {description.description}",
            names,
            "60 minutes",
        ),
        (
            "Add Error Handling",
            "Implement robust error handling and validation",
            [],
            "20 minutes",
        ),
        (
            "Test and Validate",
            "Run comprehensive tests and validate agent behavior",
            names,
            "30 minutes",
        ),
    ]

    steps: List[PlanStep] = []
    for title, text, required, estimate in blueprint:
        steps.append(
            PlanStep(
                id=generate_id(),
                title=title,
                description=text,
                required_tools=list(required),
                estimated_time=estimate,
                dependencies=[steps[-1].id] if steps else [],
            )
        )
    return steps


class PlanGenerator:
    """Researches best practices and asks the LLM for a dependency-ordered plan."""

    PLAN_PROMPT: ClassVar[
        str
    ] = """\
Create a detailed step-by-step implementation plan for this SPECIFIC AI agent based on what the \
user described:

User Description: "{description}"
User Requirements: {requirements}
User Constraints: {constraints}
{mentioned}
Researched Tools: {tools}
User Capabilities Needed: {capabilities}

Best Practices Context:
{best_practices}

IMPORTANT: The plan must concretely reference only the tools the user specified. Do NOT \
introduce generic frameworks or services (for example "langchain" or "Pinecone") unless the user \
mentioned them.

Respond with ONLY a valid JSON object:
{{
  "steps": [
    {{
      "id": "unique_id",
      "title": "Step title specific to this agent",
      "description": "Detailed description referencing the user's tools and requirements",
      "requiredTools": ["tool names from the list above"],
      "estimatedTime": "30 minutes",
      "dependencies": ["ids of steps that must come first"]
    }}
  ],
  "totalEstimatedTime": "X hours"
}}

The plan should cover:
1. Environment setup for the tools they want to integrate
2. Integration with {integrations}
3. Core agent logic for their use case
4. Testing against their requirements
5. Deployment considerations
"""

    ENHANCE_PROMPT: ClassVar[
        str
    ] = """\
Enhance this implementation step with specific technical details:

Current Step: {title}
Description: {description}
Required Tools: {tools}

Research Context:
{context}

Provide an enhanced description with:
1. Specific implementation steps
2. Code examples or patterns to use
3. Common pitfalls to avoid
4. Success criteria

Keep it concise but actionable.
"""

    def __init__(self, llm: BaseLLMClient, search: WebSearchClient) -> None:
        self._llm = llm
        self._search = search

    async def generate_plan(
        self,
        description: AgentDescription,
        tools: Sequence[Tool],
        agent_id: str | None = None,
    ) -> AgentPlan:
        """Return an LLM-authored plan, or the fallback plan when synthesis fails."""
        best_practices = await self._research_best_practices(description)
        agent_id = agent_id or generate_id()

        try:
            plan = await self._draft_plan(description, tools, best_practices, agent_id)
        except (AgentForgeError, ValidationError) as exc:
            logger.warning("Plan synthesis failed, using fallback plan: %s", exc)
            plan = AgentPlan(
                agent_id=agent_id,
                steps=fallback_steps(description, tools),
                total_estimated_time=FALLBACK_TOTAL_TIME,
            )

        logger.info("Generated plan %s with %d steps", plan.id, len(plan.steps))
        return plan

    async def _research_best_practices(self, description: AgentDescription) -> str:
        try:
            results = await self._search.search_best_practices(
                description.description, "implementation"
            )
        except ExternalServiceError as exc:
            logger.warning("Best-practice search failed, planning without context: %s", exc)
            return ""
        return _context_from(results, limit=3, separator="\n\n")

    async def _draft_plan(
        self,
        description: AgentDescription,
        tools: Sequence[Tool],
        best_practices: str,
        agent_id: str,
    ) -> AgentPlan:
        mentioned = (
            f"User specifically mentioned: {', '.join(description.mentioned_tools)}"
            if description.mentioned_tools
            else "No specific tools mentioned by user"
        )
        tools_info = (
            ", ".join(f"{t.name}: {t.description}" for t in tools)
            if tools
            else "No specific tools mentioned - will use general implementation"
        )
        prompt = self.PLAN_PROMPT.format(
            description=description.description,
            requirements=", ".join(description.requirements) or "None specified",
            constraints=", ".join(description.constraints) or "None specified",
            mentioned=mentioned,
            tools=tools_info,
            capabilities=", ".join(description.implied_capabilities) or "Not specified",
            best_practices=best_practices or "None available",
            integrations=", ".join(description.mentioned_tools) or "general integrations",
        )

        raw = await self._llm.complete_text(prompt, max_tokens=3000)
        draft = extract_model(raw, _DraftPlan)

        steps = [
            PlanStep(
                id=step.id or generate_id(),
                title=step.title,
                description=step.description,
                required_tools=step.required_tools,
                estimated_time=step.estimated_time,
                dependencies=step.dependencies,
                status=StepStatus.PENDING,
            )
            for step in draft.steps
        ]
        # AgentPlan validation rejects unknown dependencies and cycles
        return AgentPlan(
            agent_id=agent_id, steps=steps, total_estimated_time=draft.total_estimated_time
        )

    async def enhance_step(self, plan: AgentPlan, step_id: str) -> PlanStep:
        """
        Rewrite one step's description with concrete guidance.

        Any search or LLM failure leaves the description unchanged.

        Raises
        ------
        StepNotFoundError
            If *step_id* is not part of *plan*.
        """
        step = plan.get_step(step_id)
        if step is None:
            raise StepNotFoundError(step_id)

        try:
            research = await self._search.search_best_practices(
                step.title, "implementation tutorial"
            )
        except ExternalServiceError as exc:
            logger.warning("Research for step '%s' failed: %s", step_id, exc)
            research = []

        prompt = self.ENHANCE_PROMPT.format(
            title=step.title,
            description=step.description,
            tools=", ".join(step.required_tools) or "None",
            context=_context_from(research, limit=2, separator="\n") or "None available",
        )
        try:
            enhanced = await self._llm.complete_text(prompt, max_tokens=1000)
        except AgentForgeError as exc:
            logger.error("Failed to enhance step '%s': %s", step_id, exc)
            return step.model_copy()

        if not enhanced:
            return step.model_copy()
        return step.model_copy(update={"description": enhanced})
