"""Domain model for ingested content units."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator


def to_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Naive timestamps are taken as UTC; aware ones are converted to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class ItemKind(str, Enum):
    """Kinds of ingested content."""

    ARTICLE = "article"
    TRANSCRIPT = "transcript"
    TWEET = "tweet"
    FILING = "filing"


class RawItem(BaseModel):
    """Content as delivered by a feed, before normalization."""

    title: str = ""
    text: str = ""
    url: Optional[str] = None
    published_at: Optional[datetime] = None
    source_name: str
    source_domain: str
    kind: ItemKind = ItemKind.ARTICLE

    @field_validator("published_at")
    @classmethod
    def _utc_published(cls, value: Optional[datetime]) -> Optional[datetime]:
        return to_utc(value)


class Item(BaseModel):
    """One ingested unit of content. Immutable once created."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    source_id: str = Field(..., description="Owning source")
    url: Optional[str] = Field(None, description="Canonical URL if any")
    title: str = Field("", description="Headline or title")
    raw_text: str = Field(..., description="Normalized text")
    content_hash: str = Field(..., description="Content fingerprint, unique across items")
    item_type: ItemKind = ItemKind.ARTICLE
    published_at: Optional[datetime] = None
    ingested_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("published_at", "ingested_at")
    @classmethod
    def _utc_timestamps(cls, value: Optional[datetime]) -> Optional[datetime]:
        return to_utc(value)

    class Config:
        """Pydantic model configuration."""
        frozen = True
