"""Tests for the search client and its ranking helpers."""

import asyncio
import json

import httpx
import pytest

from agentforge.core.schema import SearchResult
from agentforge.errors import ExternalServiceError
from agentforge.search.web_search import (
    DOCUMENTATION_DOMAINS,
    WebSearchClient,
    categorize_result,
    rank_results,
    relevance_score,
)


def test_native_score_is_preferred() -> None:
    """A provider score wins over the composite score, even when it is zero."""

    result = SearchResult(title="Slack API docs", snippet="REST API reference", score=0.0)
    assert relevance_score(result, "slack") == 0.0


def test_composite_score_weights() -> None:
    """API keywords weigh 2, documentation keywords 1.5 and query terms 1."""

    result = SearchResult(title="Acme SDK", snippet="a guide")
    # "sdk" -> 2, "guide" -> 1.5, query term "acme" -> 1
    assert relevance_score(result, "acme") == pytest.approx(4.5)


def test_rank_results_sorts_best_first() -> None:
    """Ranking is descending by relevance and annotates the category."""

    plain = SearchResult(title="Blog post", url="https://medium.com/x")
    docs = SearchResult(title="Jira REST API documentation", url="https://developer.atlassian.com")

    ranked = rank_results([plain, docs], "jira")

    assert [r.title for r in ranked] == [docs.title, plain.title]
    assert ranked[0].category == "documentation"
    assert ranked[0].relevance_score > ranked[1].relevance_score


@pytest.mark.parametrize(
    "result, category",
    [
        (SearchResult(title="slack-sdk", url="https://github.com/slackapi/slack-sdk"), "library"),
        (SearchResult(title="Reference", url="https://example.com/docs/start"), "documentation"),
        (SearchResult(title="Payments endpoint", url="https://example.com"), "api"),
        (SearchResult(title="Pricing", url="https://example.com"), "service"),
    ],
)
def test_categorize_result(result: SearchResult, category: str) -> None:
    """Hits are classified library > documentation > api > service."""

    assert categorize_result(result) == category


def test_search_sends_contract_and_parses_results() -> None:
    """The request carries query, count, allow-list and text flag; text becomes a snippet."""

    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["body"] = json.loads(request.content)
        seen["key"] = request.headers["x-api-key"]
        return httpx.Response(
            200,
            json={
                "results": [
                    {"title": "Zendesk API", "url": "https://zendesk.dev", "text": "x" * 400},
                    {"title": "Other", "url": "https://github.com/o", "text": None, "score": 0.7},
                ]
            },
        )

    client = WebSearchClient("secret", transport=httpx.MockTransport(handler))
    results = asyncio.run(client.search_tools("Zendesk", count=5))

    assert seen["key"] == "secret"
    assert seen["body"]["query"] == "Zendesk API documentation SDK integration"
    assert seen["body"]["num_results"] == 5
    assert seen["body"]["text"] is True
    assert seen["body"]["include_domains"] == list(DOCUMENTATION_DOMAINS)
    zendesk = next(r for r in results if r.title == "Zendesk API")
    assert zendesk.snippet == "x" * 300 + "..."
    other = next(r for r in results if r.title == "Other")
    assert other.snippet == ""
    assert other.relevance_score == 0.7


def test_http_errors_become_external_service_errors() -> None:
    """Non-2xx responses surface as ExternalServiceError."""

    transport = httpx.MockTransport(lambda request: httpx.Response(500, text="boom"))
    client = WebSearchClient("k", transport=transport)
    with pytest.raises(ExternalServiceError) as info:
        asyncio.run(client.search("anything"))
    assert info.value.service == "search"


def test_unreadable_payload_is_external_service_error() -> None:
    """A non-JSON body is reported as a dependency failure."""

    transport = httpx.MockTransport(lambda request: httpx.Response(200, text="<html>"))
    with pytest.raises(ExternalServiceError):
        asyncio.run(WebSearchClient("k", transport=transport).search("anything"))


def test_best_practices_query() -> None:
    """Best-practice searches use the community allow-list and five results."""

    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen.update(json.loads(request.content))
        return httpx.Response(200, json={"results": []})

    client = WebSearchClient("k", transport=httpx.MockTransport(handler))
    assert asyncio.run(client.search_best_practices("support bot", "implementation")) == []
    assert seen["query"] == "support bot best practices implementation tutorial guide"
    assert seen["num_results"] == 5
    assert "stackoverflow.com" in seen["include_domains"]
