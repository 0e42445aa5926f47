"""Turn a free-text agent description into a typed ``AgentDescription``."""

import logging
from typing import (
    ClassVar,
    List,
)

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
)
from pydantic.alias_generators import to_camel

from agentforge.core.extractor import extract_model
from agentforge.core.schema import AgentDescription
from agentforge.errors import (
    DescriptionParseError,
    ResponseParseError,
)
from agentforge.llm.interface import BaseLLMClient

logger = logging.getLogger(__name__)


class _ParsedDescription(BaseModel):
    """Validates the parser's JSON answer before it becomes an ``AgentDescription``."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    description: str | None = None
    requirements: List[str] = Field(default_factory=list)
    constraints: List[str] = Field(default_factory=list)
    mentioned_tools: List[str] = Field(default_factory=list)
    implied_capabilities: List[str] = Field(default_factory=list)


def _mentions(text: str, name: str) -> bool:
    """Case-insensitive check that *name* literally occurs in *text*."""
    return bool(name.strip()) and name.strip().lower() in text.lower()


def _dedupe(items: List[str]) -> List[str]:
    seen: set[str] = set()
    out: List[str] = []
    for item in items:
        key = item.strip().lower()
        if key and key not in seen:
            seen.add(key)
            out.append(item.strip())
    return out


class DescriptionParser:
    """Extracts purpose, requirements, constraints and tool names with one LLM call each."""

    PARSE_PROMPT: ClassVar[
        str
    ] = """\
Analyze this AI agent description and extract ONLY what the user explicitly mentioned.

User Input: "{description}"

You must respond with ONLY a valid JSON object (no markdown, no explanation, no backticks).

Required JSON structure:
{{
  "description": "Clean, concise agent description",
  "requirements": ["requirement1", "requirement2"],
  "constraints": ["constraint1", "constraint2"],
  "mentionedTools": ["ToolName"],
  "impliedCapabilities": ["capability1", "capability2"]
}}

Rules for mentionedTools:
- Include every brand, product or service name that appears in the user input
- Phrases like "integrates with X", "using X", "connects to X", "searches X" name a tool X
- Be liberal when something looks like a product name, but NEVER add a tool that is not
  written in the user input
- Generic phrases such as "our CRM system" are not tools

Rules for impliedCapabilities:
- General abilities only, never a vendor or product name

Respond with valid JSON only:
"""

    SYSTEM_PROMPT_PROMPT: ClassVar[
        str
    ] = """\
Create a system prompt for an AI agent with these specifications:

Description: {description}
Requirements: {requirements}
Constraints: {constraints}
Mentioned Tools: {tools}
Capabilities Needed: {capabilities}

Generate a clear, specific system prompt that:
1. Defines the agent's role and purpose
2. Lists capabilities and limitations
3. Provides guidelines for tool usage
4. Sets behavioral expectations

Return only the system prompt text.
"""

    def __init__(self, llm: BaseLLMClient) -> None:
        self._llm = llm

    async def parse(self, description: str) -> AgentDescription:
        """
        Extract an ``AgentDescription`` from *description*.

        Raises
        ------
        DescriptionParseError
            If the description is blank or the LLM answer is not a usable JSON object.
        ExternalServiceError
            If the LLM cannot be reached.
        """
        if not description or not description.strip():
            raise DescriptionParseError("Description is empty", raw=description or "")

        logger.info("Parsing agent description: %.120s", description)
        raw = await self._llm.complete_text(
            self.PARSE_PROMPT.format(description=description), max_tokens=1000
        )
        try:
            parsed = extract_model(raw, _ParsedDescription)
        except ResponseParseError as exc:
            logger.error("Could not parse agent description response: %.300s", raw)
            raise DescriptionParseError(str(exc), raw=exc.raw) from exc

        tools = []
        for name in _dedupe(parsed.mentioned_tools):
            if _mentions(description, name):
                tools.append(name)
            else:
                logger.warning("Dropping tool '%s': not present in the description", name)

        capabilities = [
            capability
            for capability in _dedupe(parsed.implied_capabilities)
            if not any(_mentions(capability, name) for name in tools)
        ]

        return AgentDescription(
            description=(parsed.description or "").strip() or "AI Agent",
            requirements=parsed.requirements,
            constraints=parsed.constraints,
            mentioned_tools=tools,
            implied_capabilities=capabilities,
        )

    async def synthesize_system_prompt(self, description: AgentDescription) -> str:
        """Ask the LLM for a system prompt and return its text verbatim (trimmed)."""
        prompt = self.SYSTEM_PROMPT_PROMPT.format(
            description=description.description,
            requirements=", ".join(description.requirements) or "None",
            constraints=", ".join(description.constraints) or "None",
            tools=", ".join(description.mentioned_tools) or "None specified",
            capabilities=", ".join(description.implied_capabilities) or "None specified",
        )
        return (await self._llm.complete_text(prompt, max_tokens=1500)).strip()
