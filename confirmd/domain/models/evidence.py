"""Domain models for evidence gathered about claims."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional
from uuid import uuid4

from pydantic import BaseModel, Field


class EvidenceStance(str, Enum):
    """Position of a piece of evidence relative to a claim."""

    SUPPORTS = "supports"
    CONTRADICTS = "contradicts"
    MENTIONS = "mentions"
    IRRELEVANT = "irrelevant"


class EvidenceGrade(str, Enum):
    """Publisher trust tier."""

    A = "A"  # Primary / authoritative
    B = "B"  # Strong secondary
    C = "C"  # Weak secondary
    D = "D"  # Speculative / social


class GatheredEvidence(BaseModel):
    """Evidence that passed validation but is not yet stored."""

    url: str
    publisher: str
    excerpt: str = ""
    grade: EvidenceGrade
    stance: EvidenceStance
    primary_flag: bool = False
    published_at: Optional[datetime] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class EvidenceItem(BaseModel):
    """One corroborating or contradicting source consulted for a claim."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    claim_id: str
    url: str
    publisher: str
    published_at: Optional[datetime] = None
    retrieved_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    excerpt: str = ""
    stance: EvidenceStance
    evidence_grade: EvidenceGrade
    primary_flag: bool = False
    metadata: Dict[str, Any] = Field(default_factory=dict)

    class Config:
        """Pydantic model configuration."""
        frozen = True

    @classmethod
    def from_gathered(cls, claim_id: str, gathered: GatheredEvidence) -> "EvidenceItem":
        return cls(
            claim_id=claim_id,
            url=gathered.url,
            publisher=gathered.publisher,
            published_at=gathered.published_at,
            excerpt=gathered.excerpt,
            stance=gathered.stance,
            evidence_grade=gathered.grade,
            primary_flag=gathered.primary_flag,
            metadata=dict(gathered.metadata),
        )

    def as_gathered(self) -> GatheredEvidence:
        return GatheredEvidence(
            url=self.url,
            publisher=self.publisher,
            excerpt=self.excerpt,
            grade=self.evidence_grade,
            stance=self.stance,
            primary_flag=self.primary_flag,
            published_at=self.published_at,
            metadata=dict(self.metadata),
        )
