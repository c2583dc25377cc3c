"""RSS 2.0 and Atom feed reader."""

import logging
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import List, Optional

import httpx
from bs4 import BeautifulSoup
from pydantic import BaseModel, Field

from ...domain.errors import FeedFetchError
from ...domain.models.item import ItemKind, RawItem
from ...domain.ports.feed_reader import FeedSource
from ...domain.services.content_normalizer import MAX_CONTENT_CHARS, normalize_text, strip_html

logger = logging.getLogger(__name__)


class RSSReaderConfig(BaseModel):
    """Configuration for the feed reader."""

    user_agent: str = Field(default="Confirmd/1.0 RSS Reader", description="User agent header")
    timeout: float = Field(default=15.0, description="Request timeout in seconds")
    max_content_chars: int = Field(default=MAX_CONTENT_CHARS, description="Cap on entry text length")


def parse_date(value: Optional[str]) -> Optional[datetime]:
    """Parse RFC 822 (RSS) or ISO 8601 (Atom) dates; None if unparseable."""
    if not value:
        return None
    value = value.strip()
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def _text(node) -> str:
    return node.get_text() if node is not None else ""


def parse_feed(document: str, feed: FeedSource, max_content_chars: int = MAX_CONTENT_CHARS) -> List[RawItem]:
    """Parse an RSS or Atom document into raw items.

    Entries without a link are skipped.

    Raises:
        FeedFetchError: If the document has neither RSS items nor Atom entries
    """
    soup = BeautifulSoup(document, "xml")
    entries = soup.find_all("item") or soup.find_all("entry")
    if not entries and soup.find(["rss", "feed", "channel"]) is None:
        raise FeedFetchError(f"{feed.name}: document is not an RSS or Atom feed")

    items: List[RawItem] = []
    for entry in entries:
        link = _text(entry.find("link")).strip()
        if not link:
            atom_link = entry.find("link", href=True)
            link = atom_link["href"].strip() if atom_link is not None else ""
        if not link:
            continue

        body = (
            _text(entry.find("encoded"))
            or _text(entry.find("content"))
            or _text(entry.find("description"))
            or _text(entry.find("summary"))
        )
        published = (
            _text(entry.find("pubDate"))
            or _text(entry.find("published"))
            or _text(entry.find("updated"))
        )
        items.append(RawItem(
            title=normalize_text(strip_html(_text(entry.find("title")))),
            text=normalize_text(strip_html(body))[:max_content_chars],
            url=link,
            published_at=parse_date(published),
            source_name=feed.name,
            source_domain=feed.domain,
            kind=ItemKind.ARTICLE,
        ))
    return items


class RSSFeedReader:
    """Fetches feeds over httpx and parses them with BeautifulSoup."""

    def __init__(
        self,
        config: Optional[RSSReaderConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._config = config or RSSReaderConfig()
        self._client = httpx.AsyncClient(
            timeout=self._config.timeout,
            follow_redirects=True,
            transport=transport,
            headers={
                "User-Agent": self._config.user_agent,
                "Accept": "application/rss+xml, application/atom+xml, application/xml, text/xml",
            },
        )

    async def fetch(self, feed: FeedSource) -> List[RawItem]:
        """Fetch and parse one feed.

        Raises:
            FeedFetchError: Network failure, non-success status or malformed document
        """
        logger.info(f"📡 Fetching feed {feed.name}")
        try:
            response = await self._client.get(feed.url)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise FeedFetchError(f"{feed.name}: HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise FeedFetchError(f"{feed.name}: {e}") from e

        return parse_feed(response.text, feed, self._config.max_content_chars)

    async def close(self) -> None:
        await self._client.aclose()
