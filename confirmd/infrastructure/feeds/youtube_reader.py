"""YouTube channel reader that turns new uploads into transcript items.

Channel uploads come from the public per-channel Atom feed. Captions are
pulled with the yt-dlp command line tool in the ``srv1`` XML format, so
no video or audio is ever downloaded.
"""

import asyncio
import html
import logging
import os
import re
import tempfile
from datetime import datetime
from typing import Dict, List, Optional, Set
from urllib.parse import parse_qs, urlparse

import httpx
from bs4 import BeautifulSoup
from pydantic import BaseModel, Field

from ...domain.errors import ContentFetchError, FeedFetchError
from ...domain.models.item import ItemKind, RawItem
from ...domain.ports.feed_reader import FeedSource
from ...domain.services.content_normalizer import MAX_TRANSCRIPT_CHARS, normalize_text
from .rss_reader import parse_date

logger = logging.getLogger(__name__)

CHANNEL_FEED_URL = "https://www.youtube.com/feeds/videos.xml?channel_id={channel_id}"
WATCH_URL = "https://www.youtube.com/watch?v={video_id}"

# Channel page markup, most specific first
CHANNEL_ID_PATTERNS = [
    re.compile(r'"channelId":"(UC[\w-]{22})"'),
    re.compile(r'<meta itemprop="channelId" content="(UC[\w-]{22})"'),
    re.compile(r'/channel/(UC[\w-]{22})'),
]


class YouTubeReaderConfig(BaseModel):
    """Configuration for channel polling and caption download."""

    user_agent: str = Field(default="Mozilla/5.0 (compatible; Confirmd/1.0)", description="User agent header")
    timeout: float = Field(default=15.0, description="Channel page and feed timeout in seconds")
    max_videos: int = Field(default=5, ge=1, description="Newest uploads considered per channel")
    transcript_timeout: float = Field(default=60.0, description="yt-dlp timeout per video in seconds")
    min_transcript_chars: int = Field(default=100, description="Shorter transcripts are skipped")
    max_transcript_chars: int = Field(default=MAX_TRANSCRIPT_CHARS, description="Cap on transcript length")
    subtitle_language: str = "en"
    ytdlp_binary: str = "yt-dlp"
    cookies_file: Optional[str] = Field(None, description="Path to a cookies.txt file")
    cookies_from_browser: Optional[str] = Field(None, description="Browser to read cookies from")

    def get_cookie_args(self) -> List[str]:
        if self.cookies_from_browser:
            return ["--cookies-from-browser", self.cookies_from_browser]
        if self.cookies_file and os.path.exists(self.cookies_file):
            return ["--cookies", self.cookies_file]
        if self.cookies_file:
            logger.warning(f"⚠️ Cookie file specified but not found: {self.cookies_file}")
        return []


class YouTubeVideo(BaseModel):
    """One upload listed in a channel feed."""

    video_id: str
    title: str
    published_at: Optional[datetime] = None
    thumbnail_url: Optional[str] = None

    @property
    def url(self) -> str:
        return WATCH_URL.format(video_id=self.video_id)


def extract_channel_id(url: str) -> Optional[str]:
    """Channel id carried by a feed or ``/channel/`` URL, if any."""
    channel_id = parse_qs(urlparse(url).query).get("channel_id")
    if channel_id:
        return channel_id[0]
    match = CHANNEL_ID_PATTERNS[2].search(url)
    return match.group(1) if match else None


def find_channel_id(page: str) -> Optional[str]:
    """Find the channel id in the HTML of a channel page."""
    for pattern in CHANNEL_ID_PATTERNS:
        match = pattern.search(page)
        if match:
            return match.group(1)
    return None


def parse_channel_feed(document: str, max_videos: int) -> List[YouTubeVideo]:
    """Parse a channel's Atom feed into its newest uploads, newest first as listed."""
    soup = BeautifulSoup(document, "xml")
    videos: List[YouTubeVideo] = []
    for entry in soup.find_all("entry"):
        video_id = entry.find("videoId")
        if video_id is None or not video_id.get_text().strip():
            continue
        title = entry.find("title")
        published = entry.find("published")
        thumbnail = entry.find("thumbnail")
        videos.append(YouTubeVideo(
            video_id=video_id.get_text().strip(),
            title=normalize_text(title.get_text()) if title is not None else "",
            published_at=parse_date(published.get_text()) if published is not None else None,
            thumbnail_url=thumbnail.get("url") if thumbnail is not None else None,
        ))
        if len(videos) >= max_videos:
            break
    return videos


def parse_srv1_transcript(document: str) -> str:
    """Join the caption segments of an srv1 subtitle document into plain text.

    Caption text arrives entity-encoded a second time (``&amp;#39;``), so it
    is unescaped again after XML parsing.
    """
    soup = BeautifulSoup(document, "xml")
    segments = [html.unescape(node.get_text()) for node in soup.find_all("text")]
    return normalize_text(" ".join(segments))


class YouTubeTranscriptReader:
    """Reads YouTube channels configured as feeds.

    Each upload becomes a transcript item. Videos already returned by this
    reader are not transcribed again, and a video whose captions cannot be
    fetched is skipped without failing the channel.
    """

    def __init__(
        self,
        config: Optional[YouTubeReaderConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._config = config or YouTubeReaderConfig()
        self._client = httpx.AsyncClient(
            timeout=self._config.timeout,
            follow_redirects=True,
            transport=transport,
            headers={"User-Agent": self._config.user_agent},
        )
        self._channel_ids: Dict[str, str] = {}
        self._transcribed: Set[str] = set()

    async def fetch(self, feed: FeedSource) -> List[RawItem]:
        """Fetch new uploads of one channel with their transcripts.

        Raises:
            FeedFetchError: Channel page or feed unavailable, or yt-dlp missing
        """
        channel_id = await self.resolve_channel_id(feed)
        logger.info(f"📡 Fetching YouTube channel {feed.name} ({channel_id})")
        document = await self._get(CHANNEL_FEED_URL.format(channel_id=channel_id), feed)
        videos = parse_channel_feed(document, self._config.max_videos)

        items: List[RawItem] = []
        for video in videos:
            if video.video_id in self._transcribed:
                continue
            try:
                transcript = await self.fetch_transcript(video.video_id)
            except ContentFetchError as e:
                logger.warning(f"⚠️ No transcript for {video.url}: {e}")
                continue
            if len(transcript) < self._config.min_transcript_chars:
                logger.info(f"⏭️ Transcript too short for {video.url} ({len(transcript)} chars)")
                continue

            self._transcribed.add(video.video_id)
            items.append(RawItem(
                title=video.title,
                text=transcript[: self._config.max_transcript_chars],
                url=video.url,
                published_at=video.published_at,
                source_name=feed.name,
                source_domain=feed.domain,
                kind=ItemKind.TRANSCRIPT,
            ))
        logger.info(f"🎬 {feed.name}: {len(items)}/{len(videos)} videos transcribed")
        return items

    async def resolve_channel_id(self, feed: FeedSource) -> str:
        """Channel id from the feed URL, or scraped from the channel page once and cached."""
        channel_id = self._channel_ids.get(feed.url) or extract_channel_id(feed.url)
        if channel_id is None:
            channel_id = find_channel_id(await self._get(feed.url, feed))
            if channel_id is None:
                raise FeedFetchError(f"{feed.name}: channel id not found on {feed.url}")
            logger.info(f"🔍 Resolved {feed.name} to channel {channel_id}")
        self._channel_ids[feed.url] = channel_id
        return channel_id

    async def fetch_transcript(self, video_id: str) -> str:
        """Download the captions of one video with yt-dlp and return them as text.

        Raises:
            ContentFetchError: yt-dlp failed, timed out or produced no captions
            FeedFetchError: The yt-dlp executable is not installed
        """
        language = self._config.subtitle_language
        with tempfile.TemporaryDirectory(prefix="confirmd-yt-") as workdir:
            output_base = os.path.join(workdir, video_id)
            cmd = [
                self._config.ytdlp_binary,
                "--quiet",
                "--no-warnings",
                "--skip-download",
                "--write-auto-sub",
                "--sub-lang", language,
                "--sub-format", "srv1",
                *self._config.get_cookie_args(),
                "-o", output_base,
                WATCH_URL.format(video_id=video_id),
            ]
            logger.debug(f"🔧 Running: {' '.join(cmd)}")

            try:
                process = await asyncio.create_subprocess_exec(
                    *cmd,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                )
            except FileNotFoundError as e:
                raise FeedFetchError("yt-dlp not found. Please install yt-dlp: pip install yt-dlp") from e

            try:
                _, stderr = await asyncio.wait_for(
                    process.communicate(), timeout=self._config.transcript_timeout
                )
            except asyncio.TimeoutError as e:
                process.kill()
                raise ContentFetchError(
                    f"yt-dlp timed out after {self._config.transcript_timeout}s"
                ) from e

            if process.returncode != 0:
                raise ContentFetchError(f"yt-dlp failed: {stderr.decode(errors='replace').strip()}")

            subtitle_path = f"{output_base}.{language}.srv1"
            if not os.path.exists(subtitle_path):
                raise ContentFetchError(f"no {language} captions available")
            with open(subtitle_path, encoding="utf-8") as handle:
                return parse_srv1_transcript(handle.read())

    async def _get(self, url: str, feed: FeedSource) -> str:
        try:
            response = await self._client.get(url)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise FeedFetchError(f"{feed.name}: HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise FeedFetchError(f"{feed.name}: {e}") from e
        return response.text

    async def close(self) -> None:
        await self._client.aclose()
