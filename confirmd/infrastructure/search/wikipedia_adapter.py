"""Wikipedia implementation of the search provider interface."""

import asyncio
import logging
import re
from typing import Dict, List, Optional

import wikipediaapi
from cachetools import TTLCache
from pydantic import BaseModel, Field

from ...domain.errors import SearchProviderError
from ...domain.ports.search_provider import SearchResult

logger = logging.getLogger(__name__)

_QUERY_NOISE = {"crypto", "latest", "news", "official", "announcement"}


class WikipediaConfig(BaseModel):
    """Configuration for the Wikipedia adapter."""

    user_agent: str = Field(default="Confirmd/1.0", description="User agent for Wikipedia API")
    language: str = Field(default="en", description="Wikipedia language edition")
    cache_ttl: int = Field(default=3600, description="Cache TTL in seconds")
    cache_maxsize: int = Field(default=1000, description="Maximum cache size")
    min_relevance: float = Field(default=0.3, description="Minimum relevance score")
    summary_chars: int = Field(default=500, description="Characters of summary used as snippet")


def preprocess_query(query: str) -> str:
    """Drop punctuation and search boilerplate words."""
    query = re.sub(r"[^\w\s]", " ", query)
    return " ".join(w for w in query.split() if w.lower() not in _QUERY_NOISE)


def calculate_relevance(query: str, title: str, summary: str) -> float:
    """Share of query terms found in the title (weight 0.6) and summary (0.4)."""
    query_terms = set(re.findall(r"\w+", query.lower()))
    if not query_terms:
        return 0.0
    title_terms = set(re.findall(r"\w+", title.lower()))
    summary_terms = set(re.findall(r"\w+", summary.lower()))
    title_score = len(query_terms & title_terms) / len(query_terms)
    summary_score = len(query_terms & summary_terms) / len(query_terms)
    return min(1.0, 0.6 * title_score + 0.4 * summary_score)


class WikipediaSearchAdapter:
    """Encyclopedic background evidence from Wikipedia.

    The page for the query and its linked pages are ranked by term overlap.
    wikipediaapi is synchronous, so lookups run in a worker thread.
    """

    def __init__(self, config: Optional[WikipediaConfig] = None, wiki: Optional[wikipediaapi.Wikipedia] = None):
        self._config = config or WikipediaConfig()
        self._wiki = wiki
        self._initialized = False
        self._cache = TTLCache(maxsize=self._config.cache_maxsize, ttl=self._config.cache_ttl)

    async def initialize(self) -> None:
        """Initialize the Wikipedia API client."""
        try:
            if self._wiki is None:
                self._wiki = wikipediaapi.Wikipedia(
                    user_agent=self._config.user_agent,
                    language=self._config.language,
                )
            self._initialized = True
        except (ValueError, TypeError) as e:
            self._initialized = False
            self._wiki = None
            raise ConnectionError(f"Failed to initialize Wikipedia provider: {e}")

    async def search(self, query: str, max_results: int = 5) -> List[SearchResult]:
        if self._wiki is None:
            raise SearchProviderError("Wikipedia provider not initialized")

        cache_key = f"search:{self._config.language}:{query}:{max_results}"
        if cache_key in self._cache:
            return self._cache[cache_key]

        cleaned = preprocess_query(query)
        if not cleaned:
            return []
        try:
            results = await asyncio.to_thread(self._search_sync, cleaned, max_results)
        except (OSError, ValueError, KeyError) as e:
            logger.warning(f"⚠️ Wikipedia search failed for '{cleaned[:60]}': {e}")
            return []

        self._cache[cache_key] = results
        return results

    def _search_sync(self, query: str, max_results: int) -> List[SearchResult]:
        page = self._wiki.page(query)
        if not page.exists():
            return []

        scored = []
        relevance = calculate_relevance(query, page.title, page.summary)
        if relevance >= self._config.min_relevance:
            scored.append((relevance, self._to_result(page)))

        for link in list(page.links.values())[: max_results * 2]:
            if len(scored) >= max_results:
                break
            if not link.exists():
                continue
            relevance = calculate_relevance(query, link.title, link.summary)
            if relevance >= self._config.min_relevance:
                scored.append((relevance, self._to_result(link)))

        scored.sort(key=lambda pair: pair[0], reverse=True)
        return [result for _, result in scored[:max_results]]

    def _to_result(self, page) -> SearchResult:
        return SearchResult(
            url=page.fullurl,
            title=page.title,
            snippet=page.summary[: self._config.summary_chars],
        )

    async def shutdown(self) -> None:
        self._wiki = None
        self._initialized = False
        self._cache.clear()

    @property
    def provider_name(self) -> str:
        return "Wikipedia"

    @property
    def is_available(self) -> bool:
        return self._initialized

    @property
    def capabilities(self) -> Dict[str, bool]:
        return {"web_search": False, "snippets": True, "published_dates": False}
