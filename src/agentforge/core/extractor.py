"""
Structured response extraction for LLM output.

LLMs are asked to answer with a single JSON object but regularly wrap it in a markdown fence or
surround it with prose.  :func:`extract_json` reduces such text to exactly one ``dict`` or raises
:class:`~agentforge.errors.ResponseParseError`; it never returns a partial object.
"""

import json
import logging
import re
from typing import (
    Any,
    Dict,
    Type,
    TypeVar,
)

from pydantic import (
    BaseModel,
    ValidationError,
)

from agentforge.errors import ResponseParseError

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

_LEADING_FENCE = re.compile(r"^```[\w+-]*[ \t]*\n?")
_TRAILING_FENCE = re.compile(r"\n?[ \t]*```$")


# ---------------------------------------------------------------------------
# Small helpers
# ---------------------------------------------------------------------------
def _strip_fence(text: str) -> str:
    """Remove a leading/trailing code fence, with or without a language tag."""
    if text.startswith("```"):
        text = _LEADING_FENCE.sub("", text, count=1)
        text = _TRAILING_FENCE.sub("", text, count=1)
    return text.strip()


def _find_object_span(text: str) -> str | None:
    """Return the first top-level ``{...}`` span, honouring JSON string literals."""
    start = text.find("{")
    if start < 0:
        return None

    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
        elif ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[start : i + 1]
    return None


def _loads_object(text: str) -> Dict[str, Any] | None:
    try:
        value = json.loads(text)
    except json.JSONDecodeError:
        return None
    return value if isinstance(value, dict) else None


# ---------------------------------------------------------------------------
# Public entry points
# ---------------------------------------------------------------------------
def extract_json(raw: str) -> Dict[str, Any]:
    """
    Extract exactly one JSON object from raw LLM text.

    Parameters
    ----------
    raw:
        Text returned by an LLM call.

    Returns
    -------
    dict
        The parsed object.

    Raises
    ------
    ResponseParseError
        If no JSON object can be recovered.  The raw text is kept on the exception.
    """
    if not isinstance(raw, str):
        raise ResponseParseError(f"Expected text, got {type(raw).__name__}", raw=str(raw))

    text = _strip_fence(raw.strip())
    parsed = _loads_object(text)
    if parsed is not None:
        return parsed

    span = _find_object_span(text)
    if span is not None:
        parsed = _loads_object(span)
        if parsed is not None:
            return parsed

    logger.debug("No JSON object found in LLM response: %.200s", raw)
    raise ResponseParseError("LLM response does not contain a valid JSON object", raw=raw)


def extract_model(raw: str, model: Type[ModelT]) -> ModelT:
    """Extract a JSON object and validate it into *model*."""
    data = extract_json(raw)
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise ResponseParseError(
            f"LLM response does not match {model.__name__}: {exc.error_count()} error(s)",
            raw=raw,
        ) from exc
