"""Web search client."""

from agentforge.search.web_search import WebSearchClient

__all__ = ["WebSearchClient"]
