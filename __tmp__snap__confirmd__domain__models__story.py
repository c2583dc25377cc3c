"""Domain models for stories: thematic groupings of claims."""

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from .claim import Claim

HIGH_CREDIBILITY_THRESHOLD = 0.7
LOW_CREDIBILITY_THRESHOLD = 0.3


class Story(BaseModel):
    """A named grouping of one or more claims sharing a theme."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    title: str
    summary: Optional[str] = None
    category: Optional[str] = None
    image_url: Optional[str] = None
    asset_symbols: List[str] = Field(default_factory=list)
    source_count: int = 0
    status: str = "complete"
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    metadata: Dict[str, Any] = Field(default_factory=dict)

    class Config:
        """Pydantic model configuration."""
        frozen = True


class CredibilityDistribution(BaseModel):
    """Counts of member claims per probability band. Sums to the claim count."""

    high: int = 0
    medium: int = 0
    low: int = 0

    @classmethod
    def from_probabilities(
        cls,
        probabilities: Iterable[Optional[float]],
        high_threshold: float = HIGH_CREDIBILITY_THRESHOLD,
        low_threshold: float = LOW_CREDIBILITY_THRESHOLD,
    ) -> "CredibilityDistribution":
        """Bucket probabilities; a claim with no verdict counts as medium."""
        high = medium = low = 0
        for probability in probabilities:
            if probability is None:
                medium += 1
            elif probability >= high_threshold:
                high += 1
            elif probability < low_threshold:
                low += 1
            else:
                medium += 1
        return cls(high=high, medium=medium, low=low)

    @property
    def total(self) -> int:
        return self.high + self.medium + self.low


class TopSource(BaseModel):
    """A source contributing claims to a story, ranked by appearances."""

    source_id: str
    display_name: str
    logo_url: Optional[str] = None
    appearances: int


class StoryFeedItem(BaseModel):
    """Story projection for the feed."""

    id: str
    title: str
    summary: Optional[str] = None
    category: Optional[str] = None
    image_url: Optional[str] = None
    status: str
    created_at: datetime
    asset_symbols: List[str] = Field(default_factory=list)
    source_count: int
    claim_count: int
    credibility_distribution: CredibilityDistribution
    top_sources: List[TopSource] = Field(default_factory=list)
    latest_item_timestamp: Optional[datetime] = None


class StoryWithClaims(BaseModel):
    """A story and its member claims."""

    story: Story
    claims: List[Claim]


