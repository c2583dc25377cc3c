"""Search provider interface for evidence gathering."""

from datetime import datetime
from typing import Dict, List, Optional, Protocol

from pydantic import BaseModel, Field


class SearchResult(BaseModel):
    """One web search hit."""

    url: str = Field(..., description="Result URL")
    title: str = Field("", description="Result title")
    snippet: str = Field("", description="Result snippet or summary")
    published_at: Optional[datetime] = Field(None, description="Publication time if known")


class SearchProvider(Protocol):
    """Protocol for external search collaborators. Must tolerate zero results."""

    async def initialize(self) -> None:
        """Initialize the provider."""
        ...

    async def search(self, query: str, max_results: int = 5) -> List[SearchResult]:
        """Search for pages matching the query."""
        ...

    async def shutdown(self) -> None:
        """Shutdown the provider and clean up resources."""
        ...

    @property
    def provider_name(self) -> str:
        """Get the provider name."""
        ...

    @property
    def is_available(self) -> bool:
        """Check if the provider is available and ready."""
        ...

    @property
    def capabilities(self) -> Dict[str, bool]:
        """Get the provider's capabilities."""
        ...


