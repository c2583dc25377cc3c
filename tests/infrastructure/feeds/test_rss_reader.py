"""Tests for the RSS and Atom feed reader."""

from datetime import datetime, timezone

import httpx
import pytest

from confirmd.domain.errors import FeedFetchError
from confirmd.infrastructure.feeds.rss_reader import RSSFeedReader, RSSReaderConfig, parse_date, parse_feed

from conftest import feed

RSS_DOCUMENT = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
  <channel>
    <title>The Block</title>
    <item>
      <title>Nexus Protocol &amp; the $45M exploit</title>
      <link>https://www.theblock.co/post/1</link>
      <description><![CDATA[<p>Attackers drained <b>$45 million</b> from Nexus.</p>]]></description>
      <pubDate>Mon, 10 Mar 2025 09:30:00 GMT</pubDate>
    </item>
    <item>
      <title>No link here</title>
      <description>Skipped</description>
    </item>
  </channel>
</rss>
"""

ATOM_DOCUMENT = """<?xml version="1.0" encoding="UTF-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
  <title>Blockworks</title>
  <entry>
    <title>Solana validators ship upgrade</title>
    <link href="https://blockworks.co/news/solana-upgrade"/>
    <summary>The upgrade went live on mainnet.</summary>
    <updated>2025-03-09T18:00:00Z</updated>
  </entry>
</feed>
"""


def test_parse_date_formats():
    assert parse_date("Mon, 10 Mar 2025 09:30:00 GMT") == datetime(2025, 3, 10, 9, 30, tzinfo=timezone.utc)
    assert parse_date("2025-03-09T18:00:00Z") == datetime(2025, 3, 9, 18, 0, tzinfo=timezone.utc)
    assert parse_date("2025-03-09T18:00:00").tzinfo is not None
    assert parse_date("yesterday") is None
    assert parse_date(None) is None


def test_parse_rss_strips_markup_and_skips_linkless_entries():
    [item] = parse_feed(RSS_DOCUMENT, feed())

    assert item.title == "Nexus Protocol & the $45M exploit"
    assert item.text == "Attackers drained $45 million from Nexus."
    assert item.url == "https://www.theblock.co/post/1"
    assert item.published_at == datetime(2025, 3, 10, 9, 30, tzinfo=timezone.utc)
    assert (item.source_name, item.source_domain) == ("The Block", "theblock.co")


def test_parse_atom_uses_link_href():
    [item] = parse_feed(ATOM_DOCUMENT, feed("Blockworks", "blockworks.co"))

    assert item.url == "https://blockworks.co/news/solana-upgrade"
    assert item.text == "The upgrade went live on mainnet."
    assert item.published_at == datetime(2025, 3, 9, 18, 0, tzinfo=timezone.utc)


def test_parse_caps_entry_text():
    [item] = parse_feed(RSS_DOCUMENT, feed(), max_content_chars=9)
    assert item.text == "Attackers"


def test_malformed_document_is_a_feed_error():
    with pytest.raises(FeedFetchError):
        parse_feed("<html><body>Service unavailable</body></html>", feed())


def test_empty_channel_is_not_an_error():
    assert parse_feed("<rss><channel><title>Quiet</title></channel></rss>", feed()) == []


@pytest.mark.asyncio
async def test_fetch_reads_feed_over_http():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, text=RSS_DOCUMENT)

    reader = RSSFeedReader(RSSReaderConfig(user_agent="test-agent"), transport=httpx.MockTransport(handler))
    items = await reader.fetch(feed())
    await reader.close()

    assert len(items) == 1
    assert str(seen[0].url) == "https://theblock.co/rss"
    assert seen[0].headers["User-Agent"] == "test-agent"


@pytest.mark.asyncio
async def test_fetch_maps_http_errors():
    reader = RSSFeedReader(transport=httpx.MockTransport(lambda request: httpx.Response(503)))
    with pytest.raises(FeedFetchError) as exc:
        await reader.fetch(feed())
    assert "HTTP 503" in str(exc.value)

    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    reader = RSSFeedReader(transport=httpx.MockTransport(refuse))
    with pytest.raises(FeedFetchError):
        await reader.fetch(feed())
    await reader.close()
