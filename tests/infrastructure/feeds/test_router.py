"""Tests for kind-based feed dispatch."""

import pytest

from confirmd.domain.errors import ConfigurationError
from confirmd.domain.ports.feed_reader import FeedKind, FeedSource
from confirmd.infrastructure.feeds.router import FeedReaderRouter

from conftest import FakeFeedReader, feed, raw_item

CHANNEL = FeedSource(
    name="Alex Cobb",
    url="https://www.youtube.com/@AlexCobb",
    domain="youtube.com/@AlexCobb",
    kind=FeedKind.YOUTUBE,
)


@pytest.mark.asyncio
async def test_feeds_go_to_the_reader_for_their_kind():
    rss = FakeFeedReader({feed().url: [raw_item("Headline", "Body", "https://theblock.co/post/1")]})
    youtube = FakeFeedReader()
    router = FeedReaderRouter({FeedKind.RSS: rss, FeedKind.YOUTUBE: youtube})

    [entry] = await router.fetch(feed())
    assert entry.title == "Headline"
    assert await router.fetch(CHANNEL) == []
    assert (rss.fetched, youtube.fetched) == ([feed().url], [CHANNEL.url])

    await router.close()
    assert rss.closed and youtube.closed


@pytest.mark.asyncio
async def test_unconfigured_kind_is_a_configuration_error():
    router = FeedReaderRouter({FeedKind.RSS: FakeFeedReader()})
    with pytest.raises(ConfigurationError):
        await router.fetch(CHANNEL)
