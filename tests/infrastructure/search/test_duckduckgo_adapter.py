"""Tests for the DuckDuckGo search adapter."""

from typing import List

import httpx
import pytest
import pytest_asyncio

from confirmd.domain.errors import SearchProviderError
from confirmd.infrastructure.search.duckduckgo_adapter import (
    DuckDuckGoSearchAdapter,
    decode_result_url,
    parse_results,
)
from confirmd.infrastructure.search.factory import SearchProviderFactory

RESULTS_PAGE = """
<html><body>
  <div class="result">
    <a class="result__a" href="//duckduckgo.com/l/?uddg=https%3A%2F%2Fwww.reuters.com%2Fmarkets%2Fetf&amp;rut=abc">
      SEC schedules ETF meeting
    </a>
    <a class="result__snippet">The agency confirmed a <b>meeting</b> on spot ETFs.</a>
  </div>
  <div class="result">
    <a class="result__a" href="https://www.sec.gov/news/press-release">SEC press release</a>
    <a class="result__snippet">Official statement.</a>
  </div>
  <div class="result">
    <a class="result__a" href="javascript:void(0)">Broken</a>
    <a class="result__snippet">Ignored.</a>
  </div>
</body></html>
"""


@pytest_asyncio.fixture
async def requests() -> List[httpx.Request]:
    return []


@pytest_asyncio.fixture
async def adapter(requests) -> DuckDuckGoSearchAdapter:
    """Adapter backed by a mock transport serving the results page."""

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, text=RESULTS_PAGE)

    adapter = DuckDuckGoSearchAdapter(transport=httpx.MockTransport(handler))
    await adapter.initialize()
    yield adapter
    await adapter.shutdown()


def test_decode_result_url():
    """Redirect links are unwrapped and protocol-relative links get https."""
    assert decode_result_url("//duckduckgo.com/l/?uddg=https%3A%2F%2Fexample.com%2Fa") == "https://example.com/a"
    assert decode_result_url("//example.com/page") == "https://example.com/page"
    assert decode_result_url("javascript:void(0)") is None
    assert decode_result_url("") is None


def test_parse_results_pairs_titles_and_snippets():
    """Titles and snippets are matched by position."""
    results = parse_results(RESULTS_PAGE, max_results=5)

    assert [r.url for r in results] == ["https://www.reuters.com/markets/etf", "https://www.sec.gov/news/press-release"]
    assert results[0].title == "SEC schedules ETF meeting"
    assert results[0].snippet == "The agency confirmed a meeting on spot ETFs."
    assert len(parse_results(RESULTS_PAGE, max_results=1)) == 1


@pytest.mark.asyncio
async def test_search_sends_query_and_caches(adapter, requests):
    """Repeated queries are served from the cache."""
    first = await adapter.search("spot ETF meeting", max_results=5)
    second = await adapter.search("spot ETF meeting", max_results=5)

    assert len(first) == 2
    assert second == first
    assert len(requests) == 1
    assert requests[0].url.params["q"] == "spot ETF meeting"


@pytest.mark.asyncio
async def test_http_failure_yields_no_results():
    """Server errors are tolerated as zero results."""
    adapter = DuckDuckGoSearchAdapter(transport=httpx.MockTransport(lambda request: httpx.Response(503)))
    await adapter.initialize()

    assert await adapter.search("anything") == []
    await adapter.shutdown()


@pytest.mark.asyncio
async def test_search_requires_initialization():
    """Searching before initialize is a provider error."""
    adapter = DuckDuckGoSearchAdapter()
    assert not adapter.is_available
    with pytest.raises(SearchProviderError):
        await adapter.search("query")


@pytest.mark.asyncio
async def test_factory_reuses_active_provider():
    """The factory initializes once and shuts everything down."""
    factory = SearchProviderFactory()
    transport = httpx.MockTransport(lambda request: httpx.Response(200, text=RESULTS_PAGE))

    provider = await factory.create_provider("duckduckgo", transport=transport)
    assert await factory.create_provider("duckduckgo") is provider
    assert factory.available_providers == {"duckduckgo": True, "wikipedia": False}
    with pytest.raises(ValueError):
        await factory.create_provider("bing")
    with pytest.raises(ValueError):
        factory.register_provider("duckduckgo", DuckDuckGoSearchAdapter)

    await factory.shutdown_all()
    assert factory.get_provider("duckduckgo") is None
    assert not provider.is_available
