"""Domain models for synthesized verdicts."""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional
from uuid import uuid4

from pydantic import BaseModel, Field


class VerdictLabel(str, Enum):
    """Categorical judgment of a claim."""

    VERIFIED = "verified"  # Grade A/B evidence directly confirms
    PLAUSIBLE_UNVERIFIED = "plausible_unverified"  # Credible hints, no primary evidence
    SPECULATIVE = "speculative"  # Mostly grade C/D evidence
    MISLEADING = "misleading"  # Contradicted by strong evidence

    @property
    def is_uncertain(self) -> bool:
        return self in (VerdictLabel.PLAUSIBLE_UNVERIFIED, VerdictLabel.SPECULATIVE)


class VerdictResult(BaseModel):
    """Output of a synthesis strategy, before it is bound to a claim."""

    verdict_label: VerdictLabel
    probability_true: float = Field(..., ge=0.0, le=1.0)
    evidence_strength: float = Field(..., ge=0.0, le=1.0)
    reasoning_summary: str = ""
    invalidation_triggers: str = ""
    model: str = Field("simulation", description="Strategy or model that produced the result")
    prompt_version: str = Field("sim-v1.0.0", description="Prompt or policy version tag")


class Verdict(BaseModel):
    """Judgment for one claim at one point in time. Append-only history."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    claim_id: str
    model: str = Field(..., description="Model identity or 'simulation'")
    prompt_version: str = Field(..., description="Prompt / policy version tag")
    verdict_label: VerdictLabel
    probability_true: float = Field(..., ge=0.0, le=1.0)
    evidence_strength: float = Field(..., ge=0.0, le=1.0)
    key_evidence_ids: List[str] = Field(default_factory=list)
    reasoning_summary: str = ""
    invalidation_triggers: str = ""
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    class Config:
        """Pydantic model configuration."""
        frozen = True

    @classmethod
    def from_result(
        cls,
        claim_id: str,
        result: VerdictResult,
        model: Optional[str] = None,
        prompt_version: Optional[str] = None,
        key_evidence_ids: Optional[List[str]] = None,
    ) -> "Verdict":
        return cls(
            claim_id=claim_id,
            model=model or result.model,
            prompt_version=prompt_version or result.prompt_version,
            verdict_label=result.verdict_label,
            probability_true=result.probability_true,
            evidence_strength=result.evidence_strength,
            key_evidence_ids=list(key_evidence_ids or []),
            reasoning_summary=result.reasoning_summary,
            invalidation_triggers=result.invalidation_triggers,
        )


