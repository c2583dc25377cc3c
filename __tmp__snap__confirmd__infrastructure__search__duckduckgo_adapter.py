"""DuckDuckGo HTML endpoint implementation of the search provider interface."""

import logging
from typing import Dict, List, Optional
from urllib.parse import parse_qs, urlparse

import httpx
from bs4 import BeautifulSoup
from cachetools import TTLCache
from pydantic import BaseModel, Field

from ...domain.errors import SearchProviderError
from ...domain.ports.search_provider import SearchResult

logger = logging.getLogger(__name__)


class DuckDuckGoConfig(BaseModel):
    """Configuration for the DuckDuckGo adapter."""

    endpoint: str = Field(default="https://html.duckduckgo.com/html/", description="HTML search endpoint")
    user_agent: str = Field(default="Confirmd/1.0 Verification Pipeline", description="User agent header")
    timeout: float = Field(default=10.0, description="Request timeout in seconds")
    cache_ttl: int = Field(default=3600, description="Cache TTL in seconds")
    cache_maxsize: int = Field(default=500, description="Maximum cache size")


def decode_result_url(href: str) -> Optional[str]:
    """Resolve a result link, unwrapping the ``uddg`` redirect parameter."""
    if not href:
        return None
    parsed = urlparse(href)
    target = parse_qs(parsed.query).get("uddg")
    url = target[0] if target else href
    if url.startswith("//"):
        url = "https:" + url
    if not url.startswith("http") or len(url) < 10:
        return None
    return url


def parse_results(html: str, max_results: int) -> List[SearchResult]:
    soup = BeautifulSoup(html, "lxml")
    links = soup.select("a.result__a")
    snippets = [s.get_text(" ", strip=True) for s in soup.select(".result__snippet")]

    results: List[SearchResult] = []
    for index, link in enumerate(links):
        if len(results) >= max_results:
            break
        url = decode_result_url(link.get("href", ""))
        if url is None:
            continue
        results.append(SearchResult(
            url=url,
            title=link.get_text(" ", strip=True),
            snippet=snippets[index] if index < len(snippets) else "",
        ))
    return results


class DuckDuckGoSearchAdapter:
    """Web search through DuckDuckGo's HTML results page.

    Results are cached per query. Any HTTP failure yields zero results.
    """

    def __init__(
        self,
        config: Optional[DuckDuckGoConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._config = config or DuckDuckGoConfig()
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._initialized = False
        self._cache = TTLCache(maxsize=self._config.cache_maxsize, ttl=self._config.cache_ttl)

    async def initialize(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._config.timeout,
                follow_redirects=True,
                transport=self._transport,
                headers={"User-Agent": self._config.user_agent, "Accept": "text/html"},
            )
        self._initialized = True

    async def search(self, query: str, max_results: int = 5) -> List[SearchResult]:
        if self._client is None:
            raise SearchProviderError("DuckDuckGo provider not initialized")

        cache_key = f"search:{query}:{max_results}"
        if cache_key in self._cache:
            return self._cache[cache_key]

        logger.info(f"🔍 Searching web (DuckDuckGo) for: {query[:80]}")
        try:
            response = await self._client.get(self._config.endpoint, params={"q": query})
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning(f"⚠️ DuckDuckGo search failed for '{query[:60]}': {e}")
            return []

        results = parse_results(response.text, max_results)
        logger.info(f"📊 Found {len(results)} web results (DuckDuckGo)")
        self._cache[cache_key] = results
        return results

    async def shutdown(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
        self._initialized = False
        self._cache.clear()

    @property
    def provider_name(self) -> str:
        return "DuckDuckGo"

    @property
    def is_available(self) -> bool:
        return self._initialized

    @property
    def capabilities(self) -> Dict[str, bool]:
        return {"web_search": True, "snippets": True, "published_dates": False}


