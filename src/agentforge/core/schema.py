"""
Schema definitions for the description -> tools -> plan -> agent pipeline.

These data models serve as the contract between the LLM-facing stages, the execution engine and
the HTTP surface.  We keep them separate from runtime logic so they can be imported anywhere
without side-effects.  Field names are snake_case in Python and camelCase on the wire.
"""

import re
import uuid
from datetime import (
    datetime,
    timezone,
)
from enum import Enum
from typing import (
    Annotated,
    Any,
    ClassVar,
    Dict,
    List,
    Literal,
    Optional,
    Union,
)

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from agentforge.errors import PlanValidationError

_NON_IDENTIFIER = re.compile(r"[^A-Za-z0-9_]")


def generate_id() -> str:
    """Return a short random identifier."""
    return uuid.uuid4().hex[:9]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def sanitize_tool_name(name: str) -> str:
    """Strip everything that is not safe inside an identifier."""
    return _NON_IDENTIFIER.sub("", name)


class WireModel(BaseModel):
    """Base model: snake_case attributes, camelCase JSON."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> Dict[str, Any]:
        """Dump using the external (camelCase) field names."""
        return self.model_dump(mode="json", by_alias=True)


# ---------------------------------------------------------------------------
# Pipeline artefacts
# ---------------------------------------------------------------------------
class AgentDescription(WireModel):
    """Structured intent extracted from a free-text agent description."""

    model_config = ConfigDict(frozen=True)

    description: str
    requirements: List[str] = Field(default_factory=list)
    constraints: List[str] = Field(default_factory=list)
    mentioned_tools: List[str] = Field(default_factory=list)
    implied_capabilities: List[str] = Field(default_factory=list)


class Tool(WireModel):
    """A callable tool definition; executable when it has an implementation or endpoint."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ""
    parameters: Dict[str, Any] = Field(default_factory=dict)
    implementation: Optional[str] = None
    api_endpoint: Optional[str] = None
    documentation_url: Optional[str] = None

    @field_validator("name")
    @classmethod
    def _identifier_safe(cls, value: str) -> str:
        cleaned = sanitize_tool_name(value)
        if not cleaned:
            raise ValueError(f"tool name {value!r} has no identifier characters")
        return cleaned

    @field_validator("implementation", "api_endpoint", "documentation_url", mode="before")
    @classmethod
    def _null_to_none(cls, value: Any) -> Any:
        # LLMs regularly emit the literal string "null" for absent values
        if isinstance(value, str) and value.strip().lower() in {"", "null", "none"}:
            return None
        return value

    @property
    def is_executable(self) -> bool:
        """True when the tool can do more than return a mock result."""
        return bool(self.implementation or self.api_endpoint)


class StepStatus(str, Enum):
    """Lifecycle of a plan step."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class PlanStep(WireModel):
    """One step of an implementation plan."""

    id: str = Field(default_factory=generate_id)
    title: str
    description: str
    required_tools: List[str] = Field(default_factory=list)
    estimated_time: str = "unspecified"
    dependencies: List[str] = Field(default_factory=list)
    status: StepStatus = StepStatus.PENDING


class AgentPlan(WireModel):
    """Ordered implementation steps whose dependencies form a DAG."""

    id: str = Field(default_factory=generate_id)
    agent_id: str = Field(default_factory=generate_id)
    steps: List[PlanStep] = Field(default_factory=list)
    total_estimated_time: str = "unspecified"
    created_at: datetime = Field(default_factory=_utcnow)

    @model_validator(mode="after")
    def _check_dependency_graph(self) -> "AgentPlan":
        ids = [step.id for step in self.steps]
        if len(set(ids)) != len(ids):
            raise PlanValidationError("plan contains duplicate step ids")
        known = set(ids)
        for step in self.steps:
            missing = [dep for dep in step.dependencies if dep not in known]
            if missing:
                raise PlanValidationError(f"step '{step.id}' depends on unknown steps {missing}")
        if len(self.ordered_steps()) != len(self.steps):
            raise PlanValidationError("plan dependencies contain a cycle")
        return self

    def get_step(self, step_id: str) -> Optional[PlanStep]:
        """Return the step with *step_id*, or None."""
        return next((step for step in self.steps if step.id == step_id), None)

    def ordered_steps(self) -> List[PlanStep]:
        """
        Topological order of the steps, stable with respect to the declared order.

        Steps caught in a cycle are left out, so a short result means the graph is cyclic.
        """
        remaining = {step.id: set(step.dependencies) for step in self.steps}
        ordered: List[PlanStep] = []
        done: set[str] = set()
        progressed = True
        while remaining and progressed:
            progressed = False
            for step in self.steps:
                deps = remaining.get(step.id)
                if deps is not None and deps <= done:
                    ordered.append(step)
                    done.add(step.id)
                    del remaining[step.id]
                    progressed = True
        return ordered


class AgentConfig(WireModel):
    """The terminal artefact handed to the execution engine and to deployment tooling."""

    id: str = Field(default_factory=generate_id)
    name: str
    description: str
    system_prompt: str
    tools: List[Tool] = Field(default_factory=list)
    capabilities: List[str] = Field(default_factory=list)
    constraints: List[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


# ---------------------------------------------------------------------------
# Execution
# ---------------------------------------------------------------------------
class ExecutionContext(WireModel):
    """Per-conversation scratch state."""

    session_id: str
    user_id: str
    variables: Dict[str, Any] = Field(default_factory=dict)
    tool_results: Dict[str, Any] = Field(default_factory=dict)


class ExecutionResult(WireModel):
    """Outcome of a single ``ExecutionEngine.execute`` call."""

    success: bool
    response: Optional[str] = None
    error: Optional[str] = None
    tools_used: List[str] = Field(default_factory=list)
    execution_time: float = 0.0  # milliseconds


class ToolInvocation(WireModel):
    """Monitoring record for one dispatched tool call."""

    id: str
    name: str
    input: Dict[str, Any] = Field(default_factory=dict)
    result: Any = None
    session_id: str


class ConfigValidation(WireModel):
    """Structural validation outcome; every violation is listed."""

    valid: bool
    errors: List[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# LLM wire shapes
# ---------------------------------------------------------------------------
class TextBlock(BaseModel):
    """Plain text emitted by the model."""

    type: Literal["text"] = "text"
    text: str


class ToolUseBlock(BaseModel):
    """A tool invocation requested by the model."""

    type: Literal["tool_use"] = "tool_use"
    id: str
    name: str
    input: Dict[str, Any] = Field(default_factory=dict)


ContentBlock = Annotated[Union[TextBlock, ToolUseBlock], Field(discriminator="type")]


class LLMResponse(BaseModel):
    """Ordered content blocks returned by a completion call."""

    content: List[ContentBlock] = Field(default_factory=list)

    @property
    def text(self) -> str:
        """All text blocks joined together."""
        return "".join(block.text for block in self.content if isinstance(block, TextBlock))


class LLMToolSchema(BaseModel):
    """Tool description in the shape the tool-calling interface expects."""

    name: str
    description: str
    input_schema: Dict[str, Any]


# ---------------------------------------------------------------------------
# Search shapes
# ---------------------------------------------------------------------------
class SearchResult(BaseModel):
    """One ranked hit returned by the search provider."""

    title: str = ""
    url: str = ""
    snippet: str = ""
    text: Optional[str] = None
    score: Optional[float] = None


class ToolSearchResult(SearchResult):
    """Search hit annotated with a composite relevance score and a category."""

    relevance_score: float = 0.0
    category: Literal["api", "library", "service", "documentation"] = "service"


# ---------------------------------------------------------------------------
# Tester shapes
# ---------------------------------------------------------------------------
class TestCase(WireModel):
    """A single generated behavioural check."""

    __test__: ClassVar[bool] = False

    id: str = Field(default_factory=generate_id)
    name: str
    input: str
    expected_behavior: str
    timeout: float  # seconds


class TestResult(WireModel):
    """Outcome of running one ``TestCase``."""

    __test__: ClassVar[bool] = False

    test_case: TestCase
    success: bool
    response: Optional[str] = None
    error: Optional[str] = None
    execution_time: float = 0.0  # milliseconds
    tools_used: List[str] = Field(default_factory=list)


class ValidationResult(WireModel):
    """Aggregated score over a batch of test results."""

    overall: Literal["pass", "warning", "fail"]
    score: int
    results: List[TestResult] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)


class BenchmarkResult(WireModel):
    """Latency and tool-usage statistics over repeated runs."""

    average_execution_time: float
    success_rate: float
    tool_usage_stats: Dict[str, int] = Field(default_factory=dict)
