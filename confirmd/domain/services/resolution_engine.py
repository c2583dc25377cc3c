"""Ground-truth resolution of claims and re-check scheduling."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, Sequence

from pydantic import BaseModel, Field

from ..errors import FatalPipelineError, ConfirmdError
from ..models.claim import Claim, ClaimStatus, ClaimType, ResolutionType
from ..models.evidence import EvidenceGrade, EvidenceItem, EvidenceStance
from ..models.resolution import Resolution, ResolutionOutcome
from ..models.verdict import Verdict, VerdictLabel
from ..ports.storage import StorageProvider

logger = logging.getLogger(__name__)

HUMAN_REVIEW_TYPES = frozenset({
    ClaimType.EXPLOIT_OR_HACK,
    ClaimType.REGULATORY_ACTION,
    ClaimType.WALLET_ATTRIBUTION,
})


class ResolutionPolicy(BaseModel):
    """Thresholds and schedules for automatic resolution."""

    recheck_intervals_hours: List[float] = Field(default_factory=lambda: [6, 24, 48, 72, 168])
    indefinite_recheck_days: List[float] = Field(default_factory=lambda: [7, 14, 21, 28])
    grace_period_hours: float = 24.0
    max_attempts: int = 10
    strong_evidence_count: int = Field(2, description="A/B items agreeing in stance to auto-resolve")
    verdict_strength_threshold: float = 0.85
    deadline_falsifiability: float = Field(0.7, description="Above this, a missed deadline resolves false")


class ResolutionDecision(BaseModel):
    outcome: Optional[ResolutionOutcome] = None
    reason: str
    evidence_url: Optional[str] = None
    next_recheck_at: Optional[datetime] = None

    @property
    def resolves(self) -> bool:
        return self.outcome is not None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def requires_human_review(claim: Claim) -> bool:
    return claim.claim_type in HUMAN_REVIEW_TYPES


class ResolutionEngine:
    """Decides when claims become determinable and records resolutions."""

    def __init__(
        self,
        storage: StorageProvider,
        policy: Optional[ResolutionPolicy] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._storage = storage
        self._policy = policy or ResolutionPolicy()
        self._clock = clock or _utcnow

    def evaluate(
        self,
        claim: Claim,
        evidence: Sequence[EvidenceItem],
        verdict: Optional[Verdict],
        attempts: int = 0,
    ) -> ResolutionDecision:
        """Pure decision for one claim; nothing is written."""
        policy = self._policy
        now = self._clock()

        strong = [e for e in evidence if e.evidence_grade in (EvidenceGrade.A, EvidenceGrade.B)]
        primary_url = next((e.url for e in evidence if e.primary_flag), None)
        contradicting = [e for e in strong if e.stance == EvidenceStance.CONTRADICTS]
        supporting = [e for e in strong if e.stance == EvidenceStance.SUPPORTS]

        if len(evidence) >= 2:
            if len(contradicting) >= policy.strong_evidence_count:
                return ResolutionDecision(
                    outcome=ResolutionOutcome.FALSE,
                    reason=f"{len(contradicting)} primary sources contradict the claim",
                    evidence_url=contradicting[0].url,
                )
            if len(supporting) >= policy.strong_evidence_count:
                return ResolutionDecision(
                    outcome=ResolutionOutcome.TRUE,
                    reason=f"{len(supporting)} primary sources support the claim",
                    evidence_url=supporting[0].url,
                )
            if verdict is not None and verdict.evidence_strength >= policy.verdict_strength_threshold:
                if verdict.verdict_label == VerdictLabel.VERIFIED:
                    return ResolutionDecision(
                        outcome=ResolutionOutcome.TRUE,
                        reason="Verdict indicates verified with high confidence",
                        evidence_url=primary_url,
                    )
                if verdict.verdict_label == VerdictLabel.MISLEADING:
                    return ResolutionDecision(
                        outcome=ResolutionOutcome.FALSE,
                        reason="Verdict indicates misleading with high confidence",
                        evidence_url=primary_url,
                    )

        if attempts >= policy.max_attempts:
            return ResolutionDecision(
                outcome=ResolutionOutcome.UNRESOLVED,
                reason="Max re-check attempts exceeded without conclusive evidence",
            )

        if claim.resolution_type == ResolutionType.SCHEDULED and claim.resolve_by is not None:
            grace_end = _aware(claim.resolve_by) + timedelta(hours=policy.grace_period_hours)
            if now > grace_end:
                if claim.falsifiability_score > policy.deadline_falsifiability:
                    return ResolutionDecision(
                        outcome=ResolutionOutcome.FALSE,
                        reason="Specific claim not confirmed within expected timeframe",
                    )
                return ResolutionDecision(
                    outcome=ResolutionOutcome.UNRESOLVED,
                    reason="Claim not confirmed or refuted within expected timeframe",
                )

        next_recheck = self.next_recheck(claim, attempts)
        if next_recheck is not None:
            return ResolutionDecision(reason="Evidence is inconclusive", next_recheck_at=next_recheck)

        if claim.resolution_type == ResolutionType.INDEFINITE:
            return ResolutionDecision(
                outcome=ResolutionOutcome.UNRESOLVED,
                reason="No conclusive evidence found within re-check window",
            )
        return ResolutionDecision(reason="Evidence is inconclusive")

    def next_recheck(self, claim: Claim, attempts: int) -> Optional[datetime]:
        policy = self._policy
        now = self._clock()

        if claim.resolution_type == ResolutionType.SCHEDULED and claim.resolve_by is not None:
            resolve_by = _aware(claim.resolve_by)
            if now > resolve_by + timedelta(hours=policy.grace_period_hours):
                return None
            if attempts < len(policy.recheck_intervals_hours):
                return now + timedelta(hours=policy.recheck_intervals_hours[attempts])
            return resolve_by if now < resolve_by else None

        if claim.resolution_type == ResolutionType.INDEFINITE:
            if attempts < len(policy.indefinite_recheck_days):
                return now + timedelta(days=policy.indefinite_recheck_days[attempts])
        return None

    async def resolve_claim(self, claim: Claim) -> Optional[Resolution]:
        """Evaluate one claim and persist the outcome or the next re-check."""
        if claim.status == ClaimStatus.RESOLVED:
            return None
        if await self._storage.get_resolution_by_claim(claim.id) is not None:
            return None

        metadata = dict(claim.metadata)
        if requires_human_review(claim):
            if not metadata.get("requires_human_review"):
                metadata["requires_human_review"] = True
                await self._storage.update_claim_metadata(claim.id, metadata)
                logger.info(f"🚩 Claim {claim.id[:8]} flagged for human review ({claim.claim_type.value})")
            return None

        next_at = metadata.get("next_recheck_at")
        if next_at and datetime.fromisoformat(str(next_at)) > self._clock():
            return None

        attempts = int(metadata.get("resolution_attempts", 0))
        evidence = await self._storage.get_evidence_by_claim(claim.id)
        verdict = await self._storage.get_latest_verdict(claim.id)
        decision = self.evaluate(claim, evidence, verdict, attempts)

        if not decision.resolves:
            if decision.next_recheck_at is not None:
                metadata["resolution_attempts"] = attempts + 1
                metadata["next_recheck_at"] = decision.next_recheck_at.isoformat()
                await self._storage.update_claim_metadata(claim.id, metadata)
            return None

        resolution = await self._storage.create_resolution(Resolution(
            claim_id=claim.id,
            outcome=decision.outcome,
            resolved_at=self._clock(),
            resolution_evidence_url=decision.evidence_url,
            notes=decision.reason,
        ))
        await self._storage.update_claim_status(claim.id, ClaimStatus.RESOLVED)
        logger.info(f"🏁 Resolved claim {claim.id[:8]} as {resolution.outcome.value}: {decision.reason}")
        return resolution

    async def resolve_due_claims(self) -> List[Resolution]:
        """Run one resolution pass over all open claims.

        Failures on one claim are logged and skipped; storage outages propagate.
        """
        created: List[Resolution] = []
        for claim in await self._storage.get_claims():
            try:
                resolution = await self.resolve_claim(claim)
            except FatalPipelineError:
                raise
            except ConfirmdError as e:
                logger.warning(f"⚠️ Resolution failed for claim {claim.id[:8]}: {e}")
                continue
            if resolution is not None:
                created.append(resolution)
        logger.info(f"📊 Resolution pass complete: {len(created)} claims resolved")
        return created
