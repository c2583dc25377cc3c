"""Tests for the YouTube channel transcript reader."""

import asyncio
from datetime import datetime, timezone
from typing import Dict, List

import httpx
import pytest

from confirmd.domain.errors import FeedFetchError
from confirmd.domain.models.item import ItemKind
from confirmd.domain.ports.feed_reader import FeedKind, FeedSource
from confirmd.infrastructure.feeds import youtube_reader
from confirmd.infrastructure.feeds.youtube_reader import (
    YouTubeReaderConfig,
    YouTubeTranscriptReader,
    extract_channel_id,
    find_channel_id,
    parse_channel_feed,
    parse_srv1_transcript,
)

CHANNEL_ID = "UCabcdefghijklmnopqrstuv"

CHANNEL = FeedSource(
    name="Crypto Eri",
    url="https://www.youtube.com/@CryptoEri",
    domain="youtube.com/@CryptoEri",
    kind=FeedKind.YOUTUBE,
)

CHANNEL_PAGE = f"""<html><head>
<meta itemprop="channelId" content="{CHANNEL_ID}">
</head><body><script>var ytInitialData = {{"channelId":"{CHANNEL_ID}"}};</script></body></html>"""

CHANNEL_FEED = """<?xml version="1.0" encoding="UTF-8"?>
<feed xmlns:yt="http://www.youtube.com/xml/schemas/2015" xmlns:media="http://search.yahoo.com/mrss/" xmlns="http://www.w3.org/2005/Atom">
  <title>Crypto Eri</title>
  <entry>
    <id>yt:video:vid0000001</id>
    <yt:videoId>vid0000001</yt:videoId>
    <title>XRP ETF approval is coming this week</title>
    <published>2025-03-10T08:00:00+00:00</published>
    <media:group>
      <media:title>XRP ETF approval is coming this week</media:title>
      <media:thumbnail url="https://i.ytimg.com/vi/vid0000001/hqdefault.jpg" width="480" height="360"/>
    </media:group>
  </entry>
  <entry>
    <id>yt:video:vid0000002</id>
    <yt:videoId>vid0000002</yt:videoId>
    <title>Live Q&amp;A</title>
    <published>2025-03-09T20:00:00+00:00</published>
  </entry>
  <entry>
    <id>yt:video:vid0000003</id>
    <yt:videoId>vid0000003</yt:videoId>
    <title>Quick update</title>
    <published>2025-03-09T12:00:00+00:00</published>
  </entry>
  <entry>
    <title>Entry without a video id</title>
  </entry>
</feed>
"""

LONG_TRANSCRIPT = """<?xml version="1.0" encoding="utf-8" ?><transcript>
<text start="0.4" dur="3.2">Ripple told reporters the SEC will approve the XRP ETF</text>
<text start="3.6" dur="2.9">before the end of the week, and it&amp;#39;s a big deal</text>
<text start="6.5" dur="4.1">because institutions have been waiting for this product for years now.</text>
</transcript>"""

SHORT_TRANSCRIPT = """<?xml version="1.0" encoding="utf-8" ?><transcript>
<text start="0.0" dur="1.0">Quick one today.</text>
</transcript>"""


class FakeProcess:
    def __init__(self, returncode: int = 0, stderr: bytes = b"", hang: bool = False):
        self.returncode = returncode
        self._stderr = stderr
        self._hang = hang
        self.killed = False

    async def communicate(self):
        if self._hang:
            await asyncio.sleep(3600)
        return b"", self._stderr

    def kill(self) -> None:
        self.killed = True


class FakeYtDlp:
    """Stands in for the yt-dlp executable, writing canned srv1 files."""

    def __init__(self, transcripts: Dict[str, str], returncode: int = 0, hang: bool = False):
        self.transcripts = transcripts
        self.returncode = returncode
        self.hang = hang
        self.calls: List[List[str]] = []
        self.processes: List[FakeProcess] = []

    async def __call__(self, *cmd, **kwargs):
        self.calls.append(list(cmd))
        output_base = cmd[cmd.index("-o") + 1]
        video_id = cmd[-1].split("v=")[-1]
        if video_id in self.transcripts and self.returncode == 0:
            with open(f"{output_base}.en.srv1", "w", encoding="utf-8") as handle:
                handle.write(self.transcripts[video_id])
        process = FakeProcess(self.returncode, b"ERROR: private video", self.hang)
        self.processes.append(process)
        return process


def _youtube_transport(requests: List[str], page: str = CHANNEL_PAGE) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(str(request.url))
        if request.url.path == "/feeds/videos.xml":
            assert request.url.params["channel_id"] == CHANNEL_ID
            return httpx.Response(200, text=CHANNEL_FEED)
        if request.url.path == "/@CryptoEri":
            return httpx.Response(200, text=page)
        return httpx.Response(404)

    return httpx.MockTransport(handler)


def test_parse_channel_feed_lists_uploads():
    videos = parse_channel_feed(CHANNEL_FEED, max_videos=10)

    assert [video.video_id for video in videos] == ["vid0000001", "vid0000002", "vid0000003"]
    first = videos[0]
    assert first.title == "XRP ETF approval is coming this week"
    assert first.published_at == datetime(2025, 3, 10, 8, 0, tzinfo=timezone.utc)
    assert first.thumbnail_url == "https://i.ytimg.com/vi/vid0000001/hqdefault.jpg"
    assert first.url == "https://www.youtube.com/watch?v=vid0000001"
    assert videos[1].title == "Live Q&A"


def test_parse_channel_feed_respects_max_videos():
    assert len(parse_channel_feed(CHANNEL_FEED, max_videos=2)) == 2


def test_parse_srv1_transcript_joins_segments_and_decodes_entities():
    text = parse_srv1_transcript(LONG_TRANSCRIPT)

    assert text.startswith("Ripple told reporters the SEC will approve the XRP ETF before the end")
    assert "it's a big deal" in text
    assert "\n" not in text


def test_channel_id_from_urls_and_pages():
    assert extract_channel_id(f"https://www.youtube.com/feeds/videos.xml?channel_id={CHANNEL_ID}") == CHANNEL_ID
    assert extract_channel_id(f"https://www.youtube.com/channel/{CHANNEL_ID}") == CHANNEL_ID
    assert extract_channel_id("https://www.youtube.com/@CryptoEri") is None

    assert find_channel_id(CHANNEL_PAGE) == CHANNEL_ID
    assert find_channel_id(f'<a href="/channel/{CHANNEL_ID}">') == CHANNEL_ID
    assert find_channel_id("<html>nothing here</html>") is None


@pytest.mark.asyncio
async def test_fetch_returns_transcripts_of_new_uploads(monkeypatch):
    ytdlp = FakeYtDlp({"vid0000001": LONG_TRANSCRIPT, "vid0000003": SHORT_TRANSCRIPT})
    monkeypatch.setattr(youtube_reader.asyncio, "create_subprocess_exec", ytdlp)
    requests: List[str] = []
    reader = YouTubeTranscriptReader(transport=_youtube_transport(requests))

    [item] = await reader.fetch(CHANNEL)

    assert item.kind == ItemKind.TRANSCRIPT
    assert item.title == "XRP ETF approval is coming this week"
    assert item.url == "https://www.youtube.com/watch?v=vid0000001"
    assert "SEC will approve the XRP ETF" in item.text
    assert item.published_at == datetime(2025, 3, 10, 8, 0, tzinfo=timezone.utc)
    assert (item.source_name, item.source_domain) == ("Crypto Eri", "youtube.com/@CryptoEri")
    assert len(ytdlp.calls) == 3
    assert {"--skip-download", "--write-auto-sub"} <= set(ytdlp.calls[0])

    # Transcribed uploads are not fetched again and the channel id is cached
    assert await reader.fetch(CHANNEL) == []
    assert len(ytdlp.calls) == 5
    assert sum(url.endswith("/@CryptoEri") for url in requests) == 1
    await reader.close()


@pytest.mark.asyncio
async def test_failed_videos_are_skipped(monkeypatch):
    ytdlp = FakeYtDlp({"vid0000001": LONG_TRANSCRIPT}, returncode=1)
    monkeypatch.setattr(youtube_reader.asyncio, "create_subprocess_exec", ytdlp)
    reader = YouTubeTranscriptReader(transport=_youtube_transport([]))

    assert await reader.fetch(CHANNEL) == []
    assert len(ytdlp.calls) == 3
    await reader.close()


@pytest.mark.asyncio
async def test_hung_download_is_killed(monkeypatch):
    ytdlp = FakeYtDlp({}, hang=True)
    monkeypatch.setattr(youtube_reader.asyncio, "create_subprocess_exec", ytdlp)
    reader = YouTubeTranscriptReader(
        YouTubeReaderConfig(max_videos=1, transcript_timeout=0.01),
        transport=_youtube_transport([]),
    )

    assert await reader.fetch(CHANNEL) == []
    assert ytdlp.processes[0].killed
    await reader.close()


@pytest.mark.asyncio
async def test_missing_ytdlp_fails_the_channel(monkeypatch):
    async def not_installed(*cmd, **kwargs):
        raise FileNotFoundError(cmd[0])

    monkeypatch.setattr(youtube_reader.asyncio, "create_subprocess_exec", not_installed)
    reader = YouTubeTranscriptReader(transport=_youtube_transport([]))

    with pytest.raises(FeedFetchError, match="yt-dlp not found"):
        await reader.fetch(CHANNEL)
    await reader.close()


@pytest.mark.asyncio
async def test_unresolvable_channel_raises_feed_error():
    reader = YouTubeTranscriptReader(transport=_youtube_transport([], page="<html></html>"))
    with pytest.raises(FeedFetchError, match="channel id not found"):
        await reader.fetch(CHANNEL)

    missing = CHANNEL.model_copy(update={"url": "https://www.youtube.com/@Gone"})
    with pytest.raises(FeedFetchError, match="HTTP 404"):
        await reader.fetch(missing)
    await reader.close()


@pytest.mark.asyncio
async def test_cookie_settings_reach_ytdlp(monkeypatch):
    ytdlp = FakeYtDlp({"vid0000001": LONG_TRANSCRIPT})
    monkeypatch.setattr(youtube_reader.asyncio, "create_subprocess_exec", ytdlp)
    reader = YouTubeTranscriptReader(
        YouTubeReaderConfig(max_videos=1, cookies_from_browser="firefox"),
        transport=_youtube_transport([]),
    )

    await reader.fetch(CHANNEL)

    command = ytdlp.calls[0]
    assert command[command.index("--cookies-from-browser") + 1] == "firefox"
    await reader.close()
