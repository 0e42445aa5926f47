"""
Resolve tool names into callable ``Tool`` definitions.

Each name is resolved on its own: search the documentation domains, take the best-ranked hit
and let the LLM synthesize a schema-shaped definition from it.  A failure for one name never
affects the others; the name is logged and left out of the result.
"""

import asyncio
import logging
import re
from typing import (
    Any,
    ClassVar,
    Dict,
    List,
    Optional,
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
    SearchResult,
    Tool,
    ToolSearchResult,
    sanitize_tool_name,
)
from agentforge.errors import (
    AgentForgeError,
    ResponseParseError,
    ToolResolutionError,
)
from agentforge.llm.interface import BaseLLMClient
from agentforge.search.web_search import WebSearchClient

logger = logging.getLogger(__name__)

MAX_DOCUMENTATION_CHARS = 3000
MAX_ALTERNATIVES = 5

# Ordered: the first pattern that matches (title first, then snippet) wins
_NAME_PATTERNS = (
    re.compile(r"(\w+)\s+api"),
    re.compile(r"(\w+)\s+sdk"),
    re.compile(r"(\w+)\s+service"),
    re.compile(r"(\w+)\s+library"),
)


class _SynthesizedTool(BaseModel):
    """Validates the LLM's tool definition."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    name: Optional[str] = None
    description: Optional[str] = None
    parameters: Dict[str, Any] = Field(default_factory=dict)
    implementation: Optional[str] = None
    api_endpoint: Optional[str] = None


def _property_map(parameters: Dict[str, Any]) -> Dict[str, Any]:
    """Flatten a JSON-schema object into its ``properties`` map."""
    if parameters.get("type") == "object":
        properties = parameters.get("properties")
        return properties if isinstance(properties, dict) else {}
    return parameters


def extract_tool_name(result: SearchResult) -> str:
    """Guess a product name from a search hit; empty string when nothing matches."""
    title = result.title.lower()
    snippet = result.snippet.lower()
    for pattern in _NAME_PATTERNS:
        match = pattern.search(title) or pattern.search(snippet)
        if match:
            return match.group(1)
    return ""


class ToolResolver:
    """Resolves tool names with web search plus LLM synthesis."""

    SYNTHESIS_PROMPT: ClassVar[
        str
    ] = """\
Analyze this tool documentation and create a tool definition for an AI agent.

Tool Name: {tool_name}
Use Case: {use_case}
Source URL: {url}
Documentation Snippet: {documentation}

You must respond with ONLY a valid JSON object (no markdown, no backticks, no explanation).

The JSON should have this exact structure:
{{
  "name": "toolNameInCamelCase",
  "description": "Clear description of what the tool does",
  "parameters": {{
    "type": "object",
    "properties": {{
      "paramName": {{"type": "string", "description": "param description"}}
    }},
    "required": ["paramName"]
  }},
  "implementation": "name of a built-in adapter, or null",
  "apiEndpoint": "API URL or null"
}}

Focus on the use case: "{use_case}"

Respond with valid JSON only:
"""

    def __init__(self, llm: BaseLLMClient, search: WebSearchClient) -> None:
        self._llm = llm
        self._search = search

    async def resolve_tools(self, names: Sequence[str], use_case: str) -> List[Tool]:
        """
        Resolve every name in *names*; unresolvable names are omitted.

        Resolutions run concurrently and the result keeps the order of *names*.

        Raises
        ------
        ValueError
            If *names* is empty.
        """
        if not names:
            raise ValueError("At least one tool name is required")

        resolved = await asyncio.gather(*(self._resolve_safely(name, use_case) for name in names))
        tools = [tool for tool in resolved if tool is not None]
        logger.info("Resolved %d of %d tools: %s", len(tools), len(names), [t.name for t in tools])
        return tools

    async def _resolve_safely(self, name: str, use_case: str) -> Tool | None:
        try:
            return await self.resolve_tool(name, use_case)
        except AgentForgeError as exc:
            logger.error("Failed to resolve tool '%s': %s", name, exc)
            return None
        except Exception:  # pylint: disable=broad-except
            logger.exception("Unexpected error resolving tool '%s'", name)
            return None

    async def resolve_tool(self, name: str, use_case: str) -> Tool | None:
        """
        Resolve a single tool name.

        Returns ``None`` when the search finds nothing for *name*.

        Raises
        ------
        ToolResolutionError
            If the name is blank or no valid definition can be built.
        ExternalServiceError
            If search or the LLM cannot be reached.
        """
        if not name or not name.strip():
            raise ToolResolutionError(name, "tool name is blank")

        results = await self._search.search_tools(name, count=5)
        if not results:
            logger.warning("No search results for tool '%s'", name)
            return None

        best = results[0]
        documentation = best.text or best.snippet or f"{name} tool documentation"
        logger.debug("Using %d chars of documentation for '%s'", len(documentation), name)
        return await self._synthesize(name, use_case, documentation, best)

    async def _synthesize(
        self, name: str, use_case: str, documentation: str, source: ToolSearchResult
    ) -> Tool:
        prompt = self.SYNTHESIS_PROMPT.format(
            tool_name=name,
            use_case=use_case,
            url=source.url,
            documentation=documentation[:MAX_DOCUMENTATION_CHARS],
        )
        raw = await self._llm.complete_text(prompt, max_tokens=2000)

        try:
            draft = extract_model(raw, _SynthesizedTool)
        except ResponseParseError as exc:
            # Documentation was found, so a declarative-only definition is still useful
            logger.warning("Tool synthesis for '%s' unparseable, using fallback: %s", name, exc)
            return self._fallback_tool(name, use_case, source.url)

        try:
            return Tool(
                name=draft.name or sanitize_tool_name(name),
                description=draft.description or f"{name} integration",
                parameters=_property_map(draft.parameters),
                implementation=draft.implementation,
                api_endpoint=draft.api_endpoint,
                documentation_url=source.url or None,
            )
        except ValidationError as exc:
            reason = f"invalid definition: {exc.error_count()} error(s)"
            raise ToolResolutionError(name, reason) from exc

    @staticmethod
    def _fallback_tool(name: str, use_case: str, url: str) -> Tool:
        try:
            return Tool(
                name=sanitize_tool_name(name),
                description=f"{name} integration for {use_case}",
                documentation_url=url or None,
            )
        except ValidationError as exc:
            raise ToolResolutionError(name, "name has no identifier characters") from exc

    async def find_alternatives(self, original_tool: str, use_case: str) -> List[str]:
        """
        Suggest up to five alternative tool names for *original_tool*.

        Hits whose title contains the original name are skipped; blank and duplicate names are
        dropped.
        """
        results = await self._search.search_tools(f"alternative to {original_tool} {use_case}", 10)
        original = original_tool.lower()
        candidates = [r for r in results if original not in r.title.lower()][:MAX_ALTERNATIVES]

        alternatives: List[str] = []
        for result in candidates:
            name = extract_tool_name(result)
            if name and name not in alternatives:
                alternatives.append(name)
        return alternatives
