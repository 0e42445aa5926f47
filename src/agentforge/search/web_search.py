"""
Web search client and result ranking.

The search provider (Exa) is consumed as an opaque ranked-result API: we send a query, a result
count, a domain allow-list and ask for extracted page text.  Ranking on our side is limited to a
composite relevance score used when the provider does not return a native one.
"""

import logging
from typing import (
    Any,
    Dict,
    List,
    Sequence,
)

import httpx

from agentforge.config import Settings
from agentforge.core.schema import (
    SearchResult,
    ToolSearchResult,
)
from agentforge.errors import ExternalServiceError

logger = logging.getLogger(__name__)

DOCUMENTATION_DOMAINS: Sequence[str] = (
    "github.com",
    "docs.anthropic.com",
    "openai.com",
    "api.slack.com",
    "developers.google.com",
    "docs.microsoft.com",
    "developer.twitter.com",
    "api.stripe.com",
    "docs.aws.amazon.com",
)

BEST_PRACTICE_DOMAINS: Sequence[str] = (
    "stackoverflow.com",
    "dev.to",
    "medium.com",
    "github.com",
    "docs.python.org",
    "nodejs.org",
    "reactjs.org",
)

API_KEYWORDS = ("api", "sdk", "rest", "graphql", "webhook", "integration")
DOC_KEYWORDS = ("documentation", "docs", "guide", "tutorial", "reference")
SNIPPET_LENGTH = 300


# ---------------------------------------------------------------------------
# Ranking helpers
# ---------------------------------------------------------------------------
def relevance_score(result: SearchResult, query: str) -> float:
    """
    Composite relevance of *result* for *query*.

    The provider-native score wins when present.  Otherwise API/SDK keyword hits weigh 2,
    documentation keyword hits 1.5 and raw query-term hits 1, over title and snippet.
    """
    if result.score is not None:
        return result.score

    content = f"{result.title} {result.snippet}".lower()
    score = 0.0
    score += sum(2 for keyword in API_KEYWORDS if keyword in content)
    score += sum(1.5 for keyword in DOC_KEYWORDS if keyword in content)
    score += sum(1 for term in query.lower().split() if term in content)
    return score


def categorize_result(result: SearchResult) -> str:
    """Classify a hit as library, documentation, api or service."""
    content = f"{result.title} {result.snippet}".lower()
    url = result.url.lower()

    if "github.com" in url or "library" in content or "package" in content:
        return "library"
    if "documentation" in content or "docs" in content or "/docs/" in url:
        return "documentation"
    if "api" in content or "endpoint" in content or "rest" in content:
        return "api"
    return "service"


def rank_results(results: Sequence[SearchResult], query: str) -> List[ToolSearchResult]:
    """Annotate *results* with score and category, best first (stable on ties)."""
    ranked = [
        ToolSearchResult(
            **result.model_dump(),
            relevance_score=relevance_score(result, query),
            category=categorize_result(result),
        )
        for result in results
    ]
    ranked.sort(key=lambda r: r.relevance_score, reverse=True)
    return ranked


def _to_result(item: Dict[str, Any]) -> SearchResult:
    text = item.get("text") or None
    snippet = f"{text[:SNIPPET_LENGTH]}..." if text else ""
    return SearchResult(
        title=item.get("title") or "",
        url=item.get("url") or "",
        snippet=snippet,
        text=text,
        score=item.get("score"),
    )


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------
class WebSearchClient:
    """Async client for an Exa-compatible ``POST /search`` endpoint."""

    def __init__(
        self,
        api_key: str | None,
        base_url: str = "https://api.exa.ai/search",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url
        self._timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> "WebSearchClient":
        """Build the client from explicit settings."""
        return cls(settings.EXA_API_KEY, settings.EXA_BASE_URL, settings.SEARCH_TIMEOUT)

    async def search(
        self,
        query: str,
        num_results: int = 10,
        include_domains: Sequence[str] | None = None,
        text: bool = True,
    ) -> List[SearchResult]:
        """
        Run one search.

        Raises
        ------
        ExternalServiceError
            On transport errors, timeouts, non-2xx responses or an unreadable payload.
        """
        payload: Dict[str, Any] = {"query": query, "num_results": num_results, "text": text}
        if include_domains:
            payload["include_domains"] = list(include_domains)
        headers = {"x-api-key": self._api_key or "", "Content-Type": "application/json"}

        logger.debug("Searching for '%s' (%d results)", query, num_results)
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                resp = await client.post(self._base_url, json=payload, headers=headers)
                resp.raise_for_status()
                data = resp.json()
        except httpx.HTTPError as exc:
            logger.error("Search request error: %s", str(exc))
            raise ExternalServiceError("search", str(exc)) from exc
        except ValueError as exc:
            logger.error("Search returned an unreadable payload: %s", str(exc))
            raise ExternalServiceError("search", "unreadable response payload") from exc

        if not isinstance(data, dict):
            raise ExternalServiceError("search", "unexpected response payload")
        return [_to_result(item) for item in data.get("results") or []]

    async def search_tools(self, query: str, count: int = 10) -> List[ToolSearchResult]:
        """Search documentation domains for *query* and rank the hits."""
        results = await self.search(
            f"{query} API documentation SDK integration",
            num_results=count,
            include_domains=DOCUMENTATION_DOMAINS,
        )
        return rank_results(results, query)

    async def search_best_practices(self, topic: str, use_case: str) -> List[SearchResult]:
        """Search community domains for best-practice material on *topic*."""
        return await self.search(
            f"{topic} best practices {use_case} tutorial guide",
            num_results=5,
            include_domains=BEST_PRACTICE_DOMAINS,
        )
