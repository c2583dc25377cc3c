"""httpx-backed content fetcher for evidence URL validation."""

import logging
from typing import Optional

import httpx

from ...domain.errors import ContentFetchError
from ...domain.services.content_normalizer import normalize_text, strip_html

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "Mozilla/5.0 (compatible; Confirmd/1.0; +https://confirmd.com)"


class HttpxContentFetcher:
    """Retrieves a page and returns its visible text.

    Timeouts, connection errors and non-success statuses all surface as
    ``ContentFetchError``; the status code is kept when there is one.
    """

    def __init__(
        self,
        timeout: float = 10.0,
        user_agent: str = DEFAULT_USER_AGENT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._client = httpx.AsyncClient(
            timeout=timeout,
            follow_redirects=True,
            transport=transport,
            headers={"User-Agent": user_agent, "Accept": "text/html,application/xhtml+xml"},
        )

    async def fetch_text(self, url: str) -> str:
        try:
            response = await self._client.get(url)
        except httpx.TimeoutException as e:
            raise ContentFetchError(f"Timed out fetching {url}") from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise ContentFetchError(f"Could not fetch {url}: {e}") from e

        if not response.is_success:
            raise ContentFetchError(
                f"HTTP {response.status_code} fetching {url}", status_code=response.status_code
            )
        return normalize_text(strip_html(response.text))

    async def close(self) -> None:
        await self._client.aclose()
