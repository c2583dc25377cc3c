"""Port for ingesting raw content from configured feeds."""

from enum import Enum
from typing import List, Protocol

from pydantic import BaseModel, Field

from ..models.item import RawItem


class FeedKind(str, Enum):
    """How a feed is read."""

    RSS = "rss"
    YOUTUBE = "youtube"


class FeedSource(BaseModel):
    """A configured feed."""

    name: str = Field(..., description="Display name of the publisher")
    url: str = Field(..., description="Feed URL, or channel URL for YouTube feeds")
    domain: str = Field(..., description="Publisher domain or channel handle")
    kind: FeedKind = Field(FeedKind.RSS, description="Reader that handles this feed")


class FeedReader(Protocol):
    """Fetches entries of one feed. Raises FeedFetchError on failure."""

    async def fetch(self, feed: FeedSource) -> List[RawItem]:
        ...

    async def close(self) -> None:
        ...
