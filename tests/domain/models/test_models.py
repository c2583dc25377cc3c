"""Tests for domain model validation."""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from confirmd.domain.models.claim import CandidateClaim, Claim, ClaimStatus, ClaimType
from confirmd.domain.models.evidence import EvidenceGrade, EvidenceItem, EvidenceStance, GatheredEvidence
from confirmd.domain.models.item import Item, RawItem
from confirmd.domain.models.resolution import ResolutionOutcome
from confirmd.domain.models.verdict import Verdict, VerdictLabel, VerdictResult

from conftest import NOW


def test_claim_deadline_cannot_precede_assertion():
    with pytest.raises(ValidationError):
        Claim(source_id="s", item_id="i", claim_text="c", claim_type=ClaimType.RUMOR,
              asserted_at=NOW, resolve_by=NOW - timedelta(seconds=1))
    claim = Claim(source_id="s", item_id="i", claim_text="c", claim_type=ClaimType.RUMOR,
                  asserted_at=NOW, resolve_by=NOW)
    assert claim.resolve_by == claim.asserted_at


def test_claims_are_immutable():
    claim = Claim(source_id="s", item_id="i", claim_text="c", claim_type=ClaimType.RUMOR)
    with pytest.raises(ValidationError):
        claim.claim_text = "changed"


def test_candidate_claim_normalizes_fields():
    candidate = CandidateClaim(claim_text="  SOL rallies  ", claim_type=ClaimType.MISC_CLAIM,
                               asset_symbols=["sol", "SOL", " eth "])
    assert candidate.claim_text == "SOL rallies"
    assert candidate.asset_symbols == ["SOL", "ETH"]

    with pytest.raises(ValidationError):
        CandidateClaim(claim_text="   ", claim_type=ClaimType.RUMOR)
    with pytest.raises(ValidationError):
        CandidateClaim(claim_text="x", claim_type=ClaimType.RUMOR, falsifiability_score=1.5)


def test_status_ranks_follow_lifecycle():
    ranks = [status.rank for status in ClaimStatus]
    assert ranks == sorted(ranks)
    assert ClaimStatus.RESOLVED.rank > ClaimStatus.REVIEWED.rank


def test_verdict_probabilities_are_bounded():
    with pytest.raises(ValidationError):
        VerdictResult(verdict_label=VerdictLabel.VERIFIED, probability_true=1.2, evidence_strength=0.5)


def test_verdict_from_result_keeps_provenance():
    result = VerdictResult(verdict_label=VerdictLabel.PLAUSIBLE_UNVERIFIED, probability_true=0.6,
                           evidence_strength=0.5, reasoning_summary="why")
    verdict = Verdict.from_result("c1", result, key_evidence_ids=["e1"])

    assert (verdict.model, verdict.prompt_version) == ("simulation", "sim-v1.0.0")
    assert verdict.key_evidence_ids == ["e1"]
    assert verdict.reasoning_summary == "why"
    assert verdict.verdict_label.is_uncertain
    assert not VerdictLabel.MISLEADING.is_uncertain


def test_evidence_conversion_keeps_grade_and_stance():
    gathered = GatheredEvidence(url="https://sec.gov/x", publisher="SEC", grade=EvidenceGrade.A,
                                stance=EvidenceStance.SUPPORTS, primary_flag=True, metadata={"k": "v"})
    item = EvidenceItem.from_gathered("c1", gathered)

    assert item.evidence_grade == EvidenceGrade.A
    assert item.as_gathered() == gathered


def test_resolution_outcome_numeric_values():
    assert ResolutionOutcome.TRUE.numeric == 1.0
    assert ResolutionOutcome.FALSE.numeric == 0.0
    assert ResolutionOutcome.PARTIALLY_TRUE.numeric == 0.5


def test_timestamps_are_normalized_to_utc():
    naive = datetime(2025, 3, 10, 9, 0)
    utc = datetime(2025, 3, 10, 9, 0, tzinfo=timezone.utc)

    raw = RawItem(title="t", published_at=naive, source_name="s", source_domain="s.io")
    item = Item(source_id="s", raw_text="t", content_hash="h",
                published_at=datetime(2025, 3, 10, 4, 0, tzinfo=timezone(timedelta(hours=-5))))
    assert raw.published_at == utc and raw.published_at.tzinfo is not None
    assert item.published_at.utcoffset() == timedelta(0)
    assert item.published_at == utc

    claim = Claim(source_id="s", item_id="i", claim_text="c", claim_type=ClaimType.RUMOR,
                  asserted_at=naive, resolve_by=utc + timedelta(days=1))
    assert claim.asserted_at == utc
