"""Domain model for ground-truth outcomes."""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, Field


class ResolutionOutcome(str, Enum):
    """Ground-truth outcome of a claim."""

    TRUE = "true"
    FALSE = "false"
    UNRESOLVED = "unresolved"
    PARTIALLY_TRUE = "partially_true"

    @property
    def numeric(self) -> float:
        if self is ResolutionOutcome.TRUE:
            return 1.0
        if self is ResolutionOutcome.FALSE:
            return 0.0
        return 0.5


class Resolution(BaseModel):
    """At most one per claim. Immutable once created."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    claim_id: str
    outcome: ResolutionOutcome
    resolved_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    resolution_evidence_url: Optional[str] = None
    notes: Optional[str] = None

    class Config:
        """Pydantic model configuration."""
        frozen = True
