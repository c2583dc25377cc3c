"""Test configuration and common fixtures."""

import asyncio
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Union

import pytest
import pytest_asyncio

from confirmd.config import PipelineConfig
from confirmd.domain.errors import ContentFetchError, FeedFetchError, ModelProviderError
from confirmd.domain.models.item import RawItem
from confirmd.domain.ports.feed_reader import FeedSource
from confirmd.domain.ports.search_provider import SearchResult
from confirmd.infrastructure.storage.memory_storage import InMemoryStorage
from confirmd.infrastructure.storage.seed import seed_initial_data

NOW = datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc)

ARTICLE_TEXT = (
    "Nexus Protocol confirmed that an attacker drained roughly $45 million from its lending pools "
    "after exploiting a reentrancy vulnerability in the withdraw function of its Ethereum contracts."
)


class FakeFeedReader:
    """Feed reader serving canned entries per feed URL.

    A value that is an exception is raised instead. ``gate`` lets a test
    hold every fetch open until it is set.
    """

    def __init__(self, entries: Optional[Dict[str, Union[List[RawItem], Exception]]] = None):
        self.entries = entries or {}
        self.fetched: List[str] = []
        self.gate: Optional[asyncio.Event] = None
        self.closed = False

    async def fetch(self, feed: FeedSource) -> List[RawItem]:
        self.fetched.append(feed.url)
        if self.gate is not None:
            await self.gate.wait()
        value = self.entries.get(feed.url, [])
        if isinstance(value, Exception):
            raise value
        return list(value)

    async def close(self) -> None:
        self.closed = True


class FakeFetcher:
    """Content fetcher backed by a URL -> text map.

    Unknown URLs behave like an unreachable host unless ``default`` is set.
    """

    def __init__(self, pages: Optional[Dict[str, Union[str, Exception]]] = None, default: Optional[str] = None):
        self.pages = pages or {}
        self.default = default
        self.requested: List[str] = []
        self.closed = False

    async def fetch_text(self, url: str) -> str:
        self.requested.append(url)
        value = self.pages.get(url, self.default)
        if value is None:
            raise ContentFetchError(f"Could not fetch {url}: connection refused")
        if isinstance(value, Exception):
            raise value
        return value

    async def close(self) -> None:
        self.closed = True


class FakeSearch:
    """Search provider returning the same results for every query."""

    def __init__(self, results: Optional[List[SearchResult]] = None, error: Optional[Exception] = None):
        self.results = results or []
        self.error = error
        self.queries: List[str] = []

    async def initialize(self) -> None:
        pass

    async def search(self, query: str, max_results: int = 5) -> List[SearchResult]:
        self.queries.append(query)
        if self.error is not None:
            raise self.error
        return self.results[:max_results]

    async def shutdown(self) -> None:
        pass

    @property
    def provider_name(self) -> str:
        return "Fake"

    @property
    def is_available(self) -> bool:
        return True

    @property
    def capabilities(self) -> Dict[str, bool]:
        return {"web_search": True, "snippets": True, "published_dates": False}


class FakeLanguageModel:
    """Language model returning canned payloads per schema name.

    A payload may be a dict, an exception to raise, or a callable of the
    user prompt.
    """

    def __init__(self, payloads: Optional[Dict[str, Any]] = None, model: str = "fake-model"):
        self.payloads = payloads or {}
        self.model = model
        self.calls: List[Dict[str, str]] = []

    async def initialize(self) -> None:
        pass

    async def shutdown(self) -> None:
        pass

    async def generate_structured(self, system_prompt: str, user_prompt: str, schema_name: str) -> Dict[str, Any]:
        self.calls.append({"system": system_prompt, "user": user_prompt, "schema": schema_name})
        payload = self.payloads.get(schema_name)
        if payload is None:
            raise ModelProviderError(f"No canned {schema_name} response")
        if isinstance(payload, Exception):
            raise payload
        if callable(payload):
            return payload(user_prompt)
        return payload

    @property
    def provider_name(self) -> str:
        return "Fake"

    @property
    def model_name(self) -> str:
        return self.model

    @property
    def is_available(self) -> bool:
        return True


def raw_item(title: str, text: str, url: str, source: str = "The Block", domain: str = "theblock.co",
             published_at: Optional[datetime] = NOW) -> RawItem:
    return RawItem(
        title=title,
        text=text,
        url=url,
        published_at=published_at,
        source_name=source,
        source_domain=domain,
    )


def feed(name: str = "The Block", domain: str = "theblock.co") -> FeedSource:
    return FeedSource(name=name, url=f"https://{domain}/rss", domain=domain)


@pytest.fixture
def clock() -> Callable[[], datetime]:
    """Fixed clock."""
    return lambda: NOW


@pytest.fixture
def storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest_asyncio.fixture
async def seeded_storage() -> InMemoryStorage:
    """Store populated with the fixture data set."""
    store = InMemoryStorage()
    await seed_initial_data(store, now=NOW)
    return store


@pytest.fixture
def fetcher() -> FakeFetcher:
    return FakeFetcher(default=ARTICLE_TEXT)


@pytest.fixture
def search() -> FakeSearch:
    return FakeSearch()


@pytest.fixture
def config() -> PipelineConfig:
    """Offline configuration: simulation mode, one feed, no seeding."""
    return PipelineConfig(
        openai_api_key=None,
        search_provider="none",
        seed_data=False,
        feeds=[feed()],
    )
