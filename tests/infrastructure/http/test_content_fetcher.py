"""Tests for the httpx content fetcher."""

import httpx
import pytest

from confirmd.domain.errors import ContentFetchError
from confirmd.infrastructure.http.content_fetcher import HttpxContentFetcher

PAGE = """
<html>
  <head><title>Press release</title><script>var tracking = 1;</script><style>p {}</style></head>
  <body><h1>SEC statement</h1><p>The Commission   approved the applications.</p></body>
</html>
"""


def _fetcher(handler) -> HttpxContentFetcher:
    return HttpxContentFetcher(timeout=1.0, transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_fetch_returns_visible_text():
    fetcher = _fetcher(lambda request: httpx.Response(200, text=PAGE))

    text = await fetcher.fetch_text("https://www.sec.gov/news/1")
    await fetcher.close()

    assert "SEC statement" in text
    assert "The Commission approved the applications." in text
    assert "tracking" not in text


@pytest.mark.asyncio
async def test_non_success_status_keeps_code():
    fetcher = _fetcher(lambda request: httpx.Response(404))

    with pytest.raises(ContentFetchError) as exc:
        await fetcher.fetch_text("https://example.com/gone")
    assert exc.value.status_code == 404
    await fetcher.close()


@pytest.mark.asyncio
async def test_timeouts_and_connection_errors():
    def timeout(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    def refused(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(ContentFetchError) as exc:
        await _fetcher(timeout).fetch_text("https://example.com/slow")
    assert "Timed out" in str(exc.value)
    assert exc.value.status_code is None

    with pytest.raises(ContentFetchError):
        await _fetcher(refused).fetch_text("https://example.com/down")
