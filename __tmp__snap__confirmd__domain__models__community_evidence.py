"""Result of validating user-submitted evidence."""

from typing import Optional

from pydantic import BaseModel, Field

from .evidence import GatheredEvidence
from .verdict import VerdictResult


class CommunityEvidenceResult(BaseModel):
    """Outcome of a community evidence submission. Never raised, always returned."""

    accepted: bool = Field(..., description="Whether the submission was accepted")
    reason: Optional[str] = Field(None, description="Why the submission was rejected")
    evidence: Optional[GatheredEvidence] = Field(None, description="Validated evidence")
    verdict: Optional[VerdictResult] = Field(
        None, description="Verdict recomputed over existing plus submitted evidence"
    )

    @classmethod
    def rejected(cls, reason: str) -> "CommunityEvidenceResult":
        return cls(accepted=False, reason=reason)


