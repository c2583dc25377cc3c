"""Domain models for content origins and their reliability scores."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional
from uuid import uuid4

from pydantic import BaseModel, Field


def _new_id() -> str:
    return str(uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


class SourceType(str, Enum):
    """Kinds of content origins."""

    PUBLISHER = "publisher"
    X_HANDLE = "x_handle"
    TELEGRAM = "telegram"
    YOUTUBE = "youtube"
    EXCHANGE = "exchange"
    REGULATOR = "regulator"
    PROJECT = "project"


class Source(BaseModel):
    """An origin of content (publisher, social handle, regulator, ...)."""

    id: str = Field(default_factory=_new_id)
    type: SourceType = Field(..., description="Kind of origin")
    handle_or_domain: str = Field(..., description="Unique handle or domain")
    display_name: str = Field(..., description="Human readable name")
    logo_url: Optional[str] = Field(None, description="Logo image URL")
    created_at: datetime = Field(default_factory=_now)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    class Config:
        """Pydantic model configuration."""
        frozen = True
        json_schema_extra = {
            "example": {
                "type": "publisher",
                "handle_or_domain": "theblock.co",
                "display_name": "The Block",
                "metadata": {"rss_source": True},
            }
        }


class ConfidenceInterval(BaseModel):
    """95% interval on the 0-100 track record scale."""

    lower: float
    upper: float


class SourceScore(BaseModel):
    """Computed reliability of a source. Later versions supersede earlier ones."""

    id: str = Field(default_factory=_new_id)
    source_id: str
    score_version: str
    track_record: Optional[float] = Field(None, description="0-100 accuracy track record")
    method_discipline: Optional[float] = Field(None, description="0-100 evidence discipline")
    confidence_interval: ConfidenceInterval = Field(
        default_factory=lambda: ConfidenceInterval(lower=0, upper=100)
    )
    sample_size: int = 0
    computed_at: datetime = Field(default_factory=_now)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    class Config:
        """Pydantic model configuration."""
        frozen = True


