"""Deterministic reliability scoring for sources.

Claim scores combine calibration (Brier), timeliness and evidence
discipline. Source scores shrink the mean claim score toward the global
mean so that a handful of lucky calls cannot produce a top score.
"""

import logging
import math
from typing import Dict, List, Optional, Sequence

from pydantic import BaseModel, Field

from ..models.claim import Claim
from ..models.evidence import EvidenceGrade, EvidenceItem
from ..models.resolution import Resolution
from ..models.source import ConfidenceInterval, SourceScore
from ..models.verdict import Verdict
from ..ports.storage import StorageProvider

logger = logging.getLogger(__name__)

SCORE_VERSION = "v1.0.0"


class ScoringPolicy(BaseModel):
    accuracy_weight: float = 0.6
    timeliness_weight: float = 0.2
    discipline_weight: float = 0.2
    timeliness_half_life_hours: float = 48.0
    prior_strength: float = Field(20.0, description="Virtual claims pulling new sources toward the mean")
    default_global_mean: float = 0.5
    evidence_strength_weight: float = 0.6
    primary_share_weight: float = 0.4
    min_falsifiability: float = 0.2


class ClaimScore(BaseModel):
    claim_id: str
    accuracy: float
    timeliness: float
    evidence_discipline: float
    primary_share: float
    final: float


def _clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def _sigmoid(x: float) -> float:
    return 1.0 / (1.0 + math.exp(-x))


def primary_share(evidence: Sequence[EvidenceItem]) -> float:
    if not evidence:
        return 0.0
    strong = sum(1 for e in evidence if e.evidence_grade in (EvidenceGrade.A, EvidenceGrade.B))
    return strong / len(evidence)


def score_claim(
    claim: Claim,
    resolution: Resolution,
    verdict: Optional[Verdict],
    evidence: Sequence[EvidenceItem],
    policy: Optional[ScoringPolicy] = None,
) -> ClaimScore:
    policy = policy or ScoringPolicy()
    outcome = resolution.outcome.numeric
    probability = verdict.probability_true if verdict is not None else claim.llm_confidence
    raw_accuracy = 1.0 - (probability - outcome) ** 2

    falsifiability = max(claim.falsifiability_score, policy.min_falsifiability)
    accuracy = raw_accuracy * falsifiability

    timeliness = 0.0
    if raw_accuracy > 0.5:
        lead_hours = (resolution.resolved_at - claim.asserted_at).total_seconds() / 3600
        timeliness = accuracy * _sigmoid(lead_hours / policy.timeliness_half_life_hours - 1)

    discipline = verdict.evidence_strength if verdict is not None else 0.5

    final = _clamp(
        policy.accuracy_weight * accuracy
        + policy.timeliness_weight * timeliness
        + policy.discipline_weight * discipline
    )
    return ClaimScore(
        claim_id=claim.id,
        accuracy=accuracy,
        timeliness=timeliness,
        evidence_discipline=discipline,
        primary_share=primary_share(evidence),
        final=final,
    )


def score_source(
    source_id: str,
    claim_scores: Sequence[ClaimScore],
    global_mean: float,
    policy: Optional[ScoringPolicy] = None,
) -> SourceScore:
    """Aggregate claim scores into a 0-100 source score with a 95% interval."""
    policy = policy or ScoringPolicy()
    n = len(claim_scores)
    if n == 0:
        return SourceScore(
            source_id=source_id,
            score_version=SCORE_VERSION,
            track_record=50.0,
            method_discipline=50.0,
            confidence_interval=ConfidenceInterval(lower=0, upper=100),
            sample_size=0,
            metadata={"prior_only": True},
        )

    raw_mean = sum(s.final for s in claim_scores) / n
    shrunk = (n * raw_mean + policy.prior_strength * global_mean) / (n + policy.prior_strength)
    variance = sum((s.final - raw_mean) ** 2 for s in claim_scores) / max(n - 1, 1)
    std = math.sqrt(variance)
    se = std / math.sqrt(n)

    avg_discipline = sum(s.evidence_discipline for s in claim_scores) / n
    avg_primary = sum(s.primary_share for s in claim_scores) / n
    discipline = policy.evidence_strength_weight * avg_discipline + policy.primary_share_weight * avg_primary

    return SourceScore(
        source_id=source_id,
        score_version=SCORE_VERSION,
        track_record=shrunk * 100,
        method_discipline=discipline * 100,
        confidence_interval=ConfidenceInterval(
            lower=_clamp(shrunk - 1.96 * se) * 100,
            upper=_clamp(shrunk + 1.96 * se) * 100,
        ),
        sample_size=n,
        metadata={"raw_mean": raw_mean, "standard_deviation": std, "prior_strength": policy.prior_strength},
    )


class SourceScorer:
    """Recomputes scores for every source with resolved claims."""

    def __init__(self, storage: StorageProvider, policy: Optional[ScoringPolicy] = None):
        self._storage = storage
        self._policy = policy or ScoringPolicy()

    async def recompute_all(self) -> List[SourceScore]:
        """Append a new score version for each source that has resolved claims."""
        by_source: Dict[str, List[ClaimScore]] = {}
        for claim in await self._storage.get_claims():
            resolution = await self._storage.get_resolution_by_claim(claim.id)
            if resolution is None:
                continue
            verdict = await self._storage.get_latest_verdict(claim.id)
            evidence = await self._storage.get_evidence_by_claim(claim.id)
            score = score_claim(claim, resolution, verdict, evidence, self._policy)
            by_source.setdefault(claim.source_id, []).append(score)

        all_scores = [s for scores in by_source.values() for s in scores]
        global_mean = (
            sum(s.final for s in all_scores) / len(all_scores)
            if all_scores else self._policy.default_global_mean
        )

        created = []
        for source_id, scores in by_source.items():
            created.append(await self._storage.create_source_score(
                score_source(source_id, scores, global_mean, self._policy)
            ))
        logger.info(f"📊 Recomputed scores for {len(created)} sources (global mean {global_mean:.2f})")
        return created
