"""
HTTP surface for agentforge.

It exposes the following endpoints:
- **GET  /health**                               - liveness probe with service flags.
- **POST /agent/parse**                          - free text -> AgentDescription.
- **POST /agent/research-tools**                 - tool names -> Tool definitions.
- **POST /agent/generate-plan**                  - description + tools -> AgentPlan.
- **POST /agent/create**                         - end-to-end build.
- **POST /agent/{agent_id}/execute**             - run a created agent on a message.
- **POST /agent/{agent_id}/test**                - generate and run behavioural tests.
- **POST /tools/alternatives**                   - alternative tool names.
- **POST /plan/{plan_id}/step/{step_id}/enhance** - enrich one plan step.

Every error body is ``{"error": "<message>"}``.
"""

import logging
from collections import OrderedDict
from dataclasses import dataclass
from datetime import (
    datetime,
    timezone,
)
from typing import (
    Any,
    Dict,
    Generic,
    TypeVar,
)

from fastapi import (
    APIRouter,
    FastAPI,
    HTTPException,
    Request,
)
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from agentforge import __version__
from agentforge.agent.execution_engine import ExecutionEngine
from agentforge.agent.tester import AgentTester
from agentforge.api.models import (
    AlternativesRequest,
    AlternativesResponse,
    CreateAgentRequest,
    CreateAgentResponse,
    EnhanceStepRequest,
    EnhanceStepResponse,
    ExecuteRequest,
    ExecuteResponse,
    GeneratePlanRequest,
    ParseRequest,
    ResearchToolsRequest,
    ToolsResponse,
)
from agentforge.common import (
    AnsiColors,
    colored_print,
)
from agentforge.config import Settings
from agentforge.core.schema import (
    AgentConfig,
    AgentDescription,
    AgentPlan,
    ExecutionContext,
    ValidationResult,
    generate_id,
)
from agentforge.errors import (
    ExternalServiceError,
    PipelineCancelledError,
    ResponseParseError,
    StepNotFoundError,
)
from agentforge.llm.interface import (
    BaseLLMClient,
    load_llm,
)
from agentforge.pipeline.builder import AgentBuilder
from agentforge.pipeline.description_parser import DescriptionParser
from agentforge.pipeline.plan_generator import PlanGenerator
from agentforge.pipeline.tool_resolver import ToolResolver
from agentforge.search.web_search import WebSearchClient

logger = logging.getLogger(__name__)

V = TypeVar("V")


# ---------------------------------------------------------------------------
# Service wiring
# ---------------------------------------------------------------------------
@dataclass
class Services:
    """Pipeline components shared by all routes."""

    settings: Settings
    builder: AgentBuilder
    engine: ExecutionEngine
    tester: AgentTester

    @property
    def parser(self) -> DescriptionParser:
        return self.builder.parser

    @property
    def resolver(self) -> ToolResolver:
        return self.builder.resolver

    @property
    def planner(self) -> PlanGenerator:
        return self.builder.planner


def build_services(
    settings: Settings,
    llm: BaseLLMClient | None = None,
    search: WebSearchClient | None = None,
) -> Services:
    """Wire every component from explicit settings (and optional collaborators)."""
    llm = llm or load_llm(settings)
    search = search or WebSearchClient.from_settings(settings)
    engine = ExecutionEngine(llm, tool_api_timeout=settings.TOOL_API_TIMEOUT)
    return Services(
        settings=settings,
        builder=AgentBuilder(
            DescriptionParser(llm), ToolResolver(llm, search), PlanGenerator(llm, search)
        ),
        engine=engine,
        tester=AgentTester(engine, timeout_scale=settings.TEST_CASE_TIMEOUT_SCALE),
    )


def _services(request: Request) -> Services:
    return request.app.state.services


class BoundedStore(Generic[V]):
    """Process-local mapping that evicts the least recently used entry beyond *capacity*."""

    def __init__(self, capacity: int) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._items: "OrderedDict[str, V]" = OrderedDict()

    def get(self, key: str) -> V | None:
        item = self._items.get(key)
        if item is not None:
            self._items.move_to_end(key)
        return item

    def __setitem__(self, key: str, value: V) -> None:
        self._items[key] = value
        self._items.move_to_end(key)
        while len(self._items) > self.capacity:
            evicted, _ = self._items.popitem(last=False)
            logger.debug("Evicted '%s' from in-memory store", evicted)

    def __contains__(self, key: object) -> bool:
        return key in self._items

    def __len__(self) -> int:
        return len(self._items)


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------
def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ResponseParseError)
    async def _parse_error(_: Request, exc: ResponseParseError) -> JSONResponse:
        logger.warning("Could not understand the request: %s", exc)
        return _error(422, f"Could not understand the request: {exc}")

    @app.exception_handler(ExternalServiceError)
    async def _service_error(_: Request, exc: ExternalServiceError) -> JSONResponse:
        logger.error("Dependency failure: %s", exc)
        return _error(502, f"Could not reach a dependency: {exc}")

    @app.exception_handler(StepNotFoundError)
    async def _step_not_found(_: Request, exc: StepNotFoundError) -> JSONResponse:
        return _error(404, str(exc))

    @app.exception_handler(PipelineCancelledError)
    async def _cancelled(_: Request, exc: PipelineCancelledError) -> JSONResponse:
        return _error(409, str(exc))

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(_: Request, exc: StarletteHTTPException) -> JSONResponse:
        return _error(exc.status_code, str(exc.detail))

    @app.exception_handler(RequestValidationError)
    async def _invalid_request(_: Request, exc: RequestValidationError) -> JSONResponse:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'][1:]) or 'body'}: {err['msg']}"
            for err in exc.errors()
        )
        return _error(400, f"Invalid request: {problems}")

    @app.exception_handler(Exception)
    async def _unexpected(_: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error while serving request")
        return _error(500, f"Internal error: {type(exc).__name__}")


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------
router = APIRouter()


@router.get("/health", summary="Health check")
async def health(request: Request) -> Dict[str, Any]:
    """Return a liveness payload with configured-service flags."""
    settings = _services(request).settings
    llm_key = (
        settings.OPENAI_API_KEY if settings.LLM_PROVIDER == "openai" else settings.ANTHROPIC_API_KEY
    )
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "services": {"llm": bool(llm_key), "search": bool(settings.EXA_API_KEY)},
    }


@router.post("/agent/parse", response_model=AgentDescription, summary="Parse a description")
async def parse_description(req: ParseRequest, request: Request) -> AgentDescription:
    """Extract structured intent from free text."""
    return await _services(request).parser.parse(req.description)


@router.post("/agent/research-tools", response_model=ToolsResponse, summary="Resolve tools")
async def research_tools(req: ResearchToolsRequest, request: Request) -> ToolsResponse:
    """Resolve tool names into definitions; unresolvable names are omitted."""
    if not req.tool_names:
        raise HTTPException(status_code=400, detail="toolNames must not be empty")
    tools = await _services(request).resolver.resolve_tools(req.tool_names, req.use_case)
    return ToolsResponse(tools=tools)


@router.post("/agent/generate-plan", response_model=AgentPlan, summary="Generate a plan")
async def generate_plan(req: GeneratePlanRequest, request: Request) -> AgentPlan:
    """Generate an implementation plan (never fails on LLM output)."""
    return await _services(request).planner.generate_plan(req.description, req.tools)


@router.post("/agent/create", response_model=CreateAgentResponse, summary="Build an agent")
async def create_agent(req: CreateAgentRequest, request: Request) -> CreateAgentResponse:
    """Run the whole pipeline and keep the agent for later execution."""
    services = _services(request)
    result = await services.builder.create(req.description, req.mentioned_tools)
    services.engine.register_tools(result.agent.tools)
    request.app.state.agents[result.agent.id] = result.agent
    return CreateAgentResponse(
        agent=result.agent, plan=result.plan, parsed_description=result.parsed_description
    )


def _get_agent(request: Request, agent_id: str) -> AgentConfig:
    agent = request.app.state.agents.get(agent_id)
    if agent is None:
        raise HTTPException(status_code=404, detail=f"Agent '{agent_id}' not found")
    return agent


@router.post(
    "/agent/{agent_id}/execute", response_model=ExecuteResponse, summary="Execute an agent"
)
async def execute_agent(agent_id: str, req: ExecuteRequest, request: Request) -> ExecuteResponse:
    """Run a created agent on one message within a session."""
    services = _services(request)
    agent = _get_agent(request, agent_id)
    sessions: BoundedStore[ExecutionContext] = request.app.state.sessions

    session_id = req.session_id or generate_id()
    context = sessions.get(session_id)
    if context is None:
        context = services.engine.create_execution_context(session_id, req.user_id)
        sessions[session_id] = context

    services.engine.register_tools(agent.tools)
    result = await services.engine.execute(agent, req.message, context)
    return ExecuteResponse(
        **result.model_dump(), session_id=session_id, tool_results=context.tool_results
    )


@router.post("/agent/{agent_id}/test", response_model=ValidationResult, summary="Test an agent")
async def test_agent(agent_id: str, request: Request) -> ValidationResult:
    """Generate behavioural test cases for a created agent and score them."""
    agent = _get_agent(request, agent_id)
    return await _services(request).tester.run_tests(agent)


@router.post(
    "/tools/alternatives", response_model=AlternativesResponse, summary="Alternative tools"
)
async def tool_alternatives(req: AlternativesRequest, request: Request) -> AlternativesResponse:
    """Suggest alternatives for a tool."""
    alternatives = await _services(request).resolver.find_alternatives(req.tool_name, req.use_case)
    return AlternativesResponse(alternatives=alternatives)


@router.post(
    "/plan/{plan_id}/step/{step_id}/enhance",
    response_model=EnhanceStepResponse,
    summary="Enhance a plan step",
)
async def enhance_step(
    plan_id: str, step_id: str, req: EnhanceStepRequest, request: Request
) -> EnhanceStepResponse:
    """Rewrite one step with concrete guidance."""
    if req.plan.id != plan_id:
        logger.debug("Plan id in path (%s) differs from body (%s)", plan_id, req.plan.id)
    step = await _services(request).planner.enhance_step(req.plan, step_id)
    return EnhanceStepResponse(step=step)


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------
def create_app(settings: Settings | None = None, services: Services | None = None) -> FastAPI:
    """
    Build the FastAPI app.

    Agents and sessions live in memory, capped at ``MAX_AGENTS`` and ``MAX_SESSIONS``; the least
    recently used entries are dropped first.
    """
    settings = settings or (services.settings if services else Settings())
    services = services or build_services(settings)

    app = FastAPI(
        title="agentforge API",
        version=__version__,
        description="Build AI agents from natural-language descriptions",
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.services = services
    app.state.agents = BoundedStore[AgentConfig](settings.MAX_AGENTS)
    app.state.sessions = BoundedStore[ExecutionContext](settings.MAX_SESSIONS)
    _install_error_handlers(app)
    app.include_router(router)
    return app


# ---------------------------------------------------------------------------
# Public helper to launch the API (imported by main.py)
# ---------------------------------------------------------------------------
def run_api(
    settings: Settings,
    host: str = "0.0.0.0",
    port: int | None = None,
    reload: bool = False,
    log_level: str | None = None,
) -> None:
    """Start a uvicorn server hosting the app.

    Parameters
    ----------
    settings:
        Explicit configuration; ignored by the reloader, which rebuilds it from the environment.
    host, port:
        Bind address for the HTTP server.
    reload:
        If *True*, enable auto-reload (useful in development).
    log_level:
        Logging level to use (default from settings if not provided).
    """

    # Lazy import - keeps uvicorn an optional dependency at pkg-import time
    import uvicorn  # pylint: disable=import-outside-toplevel

    port = port or settings.API_PORT
    log_level = log_level or settings.LOG_LEVEL

    logger.info(
        "Starting agentforge API at %s:%d (reload=%s, log_level=%s)", host, port, reload, log_level
    )
    colored_print(f"agentforge API is running at http://localhost:{port}.", AnsiColors.GREEN)
    colored_print(f"Visit http://localhost:{port}/docs for API documentation.", AnsiColors.BLUE)

    if reload:
        uvicorn.run(
            "agentforge.api.app:create_app",
            factory=True,
            host=host,
            port=port,
            reload=True,
            log_level=log_level,
        )
    else:
        uvicorn.run(create_app(settings), host=host, port=port, log_level=log_level)
