"""Feed reader that hands each feed to the reader for its kind."""

import logging
from typing import Dict, List

from ...domain.errors import ConfigurationError
from ...domain.models.item import RawItem
from ...domain.ports.feed_reader import FeedKind, FeedReader, FeedSource

logger = logging.getLogger(__name__)


class FeedReaderRouter:
    """Dispatches ``fetch`` on ``FeedSource.kind``."""

    def __init__(self, readers: Dict[FeedKind, FeedReader]):
        self._readers = readers

    async def fetch(self, feed: FeedSource) -> List[RawItem]:
        reader = self._readers.get(feed.kind)
        if reader is None:
            raise ConfigurationError(f"No reader configured for {feed.kind.value} feed {feed.name}")
        return await reader.fetch(feed)

    async def close(self) -> None:
        for kind, reader in self._readers.items():
            await reader.close()
            logger.debug(f"🧹 Closed {kind.value} reader")
