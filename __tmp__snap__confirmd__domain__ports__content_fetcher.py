"""Port for retrieving page content behind evidence URLs."""

from typing import Protocol


class ContentFetcher(Protocol):
    """Fetches a URL and returns its visible text.

    Raises ContentFetchError for unreachable URLs, non-success status
    codes and timeouts.
    """

    async def fetch_text(self, url: str) -> str:
        ...

    async def close(self) -> None:
        ...


