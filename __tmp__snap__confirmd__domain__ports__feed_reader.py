"""Port for ingesting raw content from configured feeds."""

from typing import List, Protocol

from pydantic import BaseModel, Field

from ..models.item import RawItem


class FeedSource(BaseModel):
    """A configured feed."""

    name: str = Field(..., description="Display name of the publisher")
    url: str = Field(..., description="Feed URL")
    domain: str = Field(..., description="Publisher domain")


class FeedReader(Protocol):
    """Fetches entries of one feed. Raises FeedFetchError on failure."""

    async def fetch(self, feed: FeedSource) -> List[RawItem]:
        ...

    async def close(self) -> None:
        ...


