"""Tests for the Wikipedia search adapter."""

from typing import Dict, Optional

import pytest
import pytest_asyncio

from confirmd.domain.errors import SearchProviderError
from confirmd.infrastructure.search.wikipedia_adapter import (
    WikipediaSearchAdapter,
    calculate_relevance,
    preprocess_query,
)


class MockPage:
    """Page object shaped like wikipediaapi's WikipediaPage."""

    def __init__(self, title: str, summary: str, exists: bool = True, links: Optional[Dict[str, "MockPage"]] = None):
        self.title = title
        self.summary = summary
        self.fullurl = f"https://en.wikipedia.org/wiki/{title.replace(' ', '_')}"
        self.links = links or {}
        self._exists = exists

    def exists(self) -> bool:
        return self._exists


class MockWiki:
    """Serves pages by title and records lookups."""

    def __init__(self, pages: Dict[str, MockPage], error: Optional[Exception] = None):
        self.pages = pages
        self.error = error
        self.lookups = []

    def page(self, title: str) -> MockPage:
        self.lookups.append(title)
        if self.error is not None:
            raise self.error
        return self.pages.get(title, MockPage(title, "", exists=False))


ETHEREUM = MockPage(
    "Ethereum",
    "Ethereum is a decentralized blockchain with smart contract functionality.",
    links={
        "Ether": MockPage("Ether", "Ether is the native cryptocurrency of the Ethereum blockchain."),
        "Gardening": MockPage("Gardening", "Gardening is the practice of growing plants."),
        "Missing": MockPage("Missing", "", exists=False),
    },
)


@pytest_asyncio.fixture
async def wiki() -> MockWiki:
    return MockWiki({"Ethereum": ETHEREUM})


@pytest_asyncio.fixture
async def adapter(wiki) -> WikipediaSearchAdapter:
    """Initialized adapter over the mock wiki."""
    adapter = WikipediaSearchAdapter(wiki=wiki)
    await adapter.initialize()
    return adapter


def test_preprocess_query_drops_noise_words():
    assert preprocess_query("Ethereum official announcement, crypto!") == "Ethereum"


def test_relevance_weights_title_over_summary():
    assert calculate_relevance("ethereum", "Ethereum", "") == pytest.approx(0.6)
    assert calculate_relevance("ethereum", "Ethereum", "About Ethereum") == pytest.approx(1.0)
    assert calculate_relevance("ethereum", "Gardening", "Plants") == 0.0
    assert calculate_relevance("", "Ethereum", "") == 0.0


@pytest.mark.asyncio
async def test_search_ranks_page_and_relevant_links(adapter, wiki):
    """The page itself and related links pass the relevance threshold."""
    results = await adapter.search("Ethereum news", max_results=5)

    assert wiki.lookups == ["Ethereum"]
    assert [r.title for r in results] == ["Ethereum", "Ether"]
    assert results[0].url == "https://en.wikipedia.org/wiki/Ethereum"
    assert results[0].snippet.startswith("Ethereum is a decentralized blockchain")


@pytest.mark.asyncio
async def test_search_caches_results(adapter, wiki):
    await adapter.search("Ethereum")
    await adapter.search("Ethereum")
    assert len(wiki.lookups) == 1


@pytest.mark.asyncio
async def test_missing_page_and_empty_query(adapter):
    assert await adapter.search("Nonexistent topic") == []
    assert await adapter.search("crypto news") == []


@pytest.mark.asyncio
async def test_lookup_errors_yield_no_results():
    """Network errors from the client are tolerated."""
    adapter = WikipediaSearchAdapter(wiki=MockWiki({}, error=OSError("connection reset")))
    await adapter.initialize()
    assert await adapter.search("Ethereum") == []


@pytest.mark.asyncio
async def test_search_requires_initialization():
    adapter = WikipediaSearchAdapter()
    with pytest.raises(SearchProviderError):
        await adapter.search("Ethereum")


@pytest.mark.asyncio
async def test_provider_properties(adapter):
    assert adapter.provider_name == "Wikipedia"
    assert adapter.is_available
    assert adapter.capabilities["web_search"] is False

    await adapter.shutdown()
    assert not adapter.is_available
