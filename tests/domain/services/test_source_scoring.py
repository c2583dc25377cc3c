"""Tests for source reliability scoring."""

from datetime import timedelta

import pytest

from confirmd.domain.models.claim import Claim, ClaimType
from confirmd.domain.models.evidence import EvidenceGrade, EvidenceItem, EvidenceStance
from confirmd.domain.models.resolution import Resolution, ResolutionOutcome
from confirmd.domain.models.verdict import Verdict, VerdictLabel
from confirmd.domain.services.source_scoring import (
    SCORE_VERSION,
    ClaimScore,
    SourceScorer,
    primary_share,
    score_claim,
    score_source,
)

from conftest import NOW


def _claim(falsifiability: float = 1.0) -> Claim:
    return Claim(
        source_id="s", item_id="i", claim_text="Listing goes live", claim_type=ClaimType.LISTING_LIVE,
        asserted_at=NOW, falsifiability_score=falsifiability,
    )


def _verdict(probability: float, strength: float = 0.9) -> Verdict:
    return Verdict(claim_id="c", model="m", prompt_version="v", verdict_label=VerdictLabel.VERIFIED,
                   probability_true=probability, evidence_strength=strength)


def _resolution(outcome: ResolutionOutcome, hours: float = 48) -> Resolution:
    return Resolution(claim_id="c", outcome=outcome, resolved_at=NOW + timedelta(hours=hours))


def _score(final: float, discipline: float = 0.5, share: float = 0.5) -> ClaimScore:
    return ClaimScore(claim_id="c", accuracy=final, timeliness=0.0,
                      evidence_discipline=discipline, primary_share=share, final=final)


def test_primary_share_counts_grade_a_and_b():
    evidence = [
        EvidenceItem(claim_id="c", url=f"https://e/{g.value}", publisher="p", evidence_grade=g,
                     stance=EvidenceStance.MENTIONS)
        for g in (EvidenceGrade.A, EvidenceGrade.B, EvidenceGrade.C, EvidenceGrade.D)
    ]
    assert primary_share(evidence) == 0.5
    assert primary_share([]) == 0.0


def test_correct_confident_call_scores_high():
    score = score_claim(_claim(), _resolution(ResolutionOutcome.TRUE), _verdict(1.0), [])
    assert score.accuracy == pytest.approx(1.0)
    # Resolved one half-life after assertion.
    assert score.timeliness == pytest.approx(0.5)
    assert score.final == pytest.approx(0.6 + 0.2 * 0.5 + 0.2 * 0.9)


def test_confident_wrong_call_earns_no_accuracy_or_timeliness():
    score = score_claim(_claim(), _resolution(ResolutionOutcome.TRUE), _verdict(0.0), [])
    assert score.accuracy == 0.0
    assert score.timeliness == 0.0


def test_vague_claims_are_discounted():
    precise = score_claim(_claim(1.0), _resolution(ResolutionOutcome.TRUE), _verdict(0.9), [])
    vague = score_claim(_claim(0.05), _resolution(ResolutionOutcome.TRUE), _verdict(0.9), [])
    assert vague.accuracy == pytest.approx(precise.accuracy * 0.2)


def test_unresolved_outcome_scores_against_midpoint():
    score = score_claim(_claim(), _resolution(ResolutionOutcome.UNRESOLVED), _verdict(0.5), [])
    assert score.accuracy == pytest.approx(1.0)


def test_source_without_resolved_claims_gets_prior():
    score = score_source("s", [], global_mean=0.7)
    assert score.track_record == 50.0
    assert score.method_discipline == 50.0
    assert (score.confidence_interval.lower, score.confidence_interval.upper) == (0, 100)
    assert score.sample_size == 0
    assert score.metadata["prior_only"] is True


def test_single_perfect_claim_is_shrunk_toward_global_mean():
    score = score_source("s", [_score(1.0)], global_mean=0.5)
    assert score.track_record == pytest.approx((1.0 + 20 * 0.5) / 21 * 100)
    assert score.track_record < 60
    assert score.score_version == SCORE_VERSION


def test_more_evidence_narrows_interval_and_moves_away_from_prior():
    few = score_source("s", [_score(0.9), _score(0.8)], global_mean=0.5)
    many = score_source("s", [_score(0.9), _score(0.8)] * 20, global_mean=0.5)
    assert many.track_record > few.track_record
    few_width = few.confidence_interval.upper - few.confidence_interval.lower
    many_width = many.confidence_interval.upper - many.confidence_interval.lower
    assert many_width < few_width
    assert 0 <= many.confidence_interval.lower <= many.track_record <= many.confidence_interval.upper <= 100


def test_method_discipline_blends_strength_and_primary_share():
    score = score_source("s", [_score(0.8, discipline=1.0, share=0.0)], global_mean=0.5)
    assert score.method_discipline == pytest.approx(60.0)


@pytest.mark.asyncio
async def test_recompute_all_appends_scores_for_resolved_sources(seeded_storage):
    resolved_sources = set()
    for claim in await seeded_storage.get_claims():
        if await seeded_storage.get_resolution_by_claim(claim.id) is not None:
            resolved_sources.add(claim.source_id)

    created = await SourceScorer(seeded_storage).recompute_all()

    assert {s.source_id for s in created} == resolved_sources
    for source_id in resolved_sources:
        latest = await seeded_storage.get_source_score(source_id)
        assert latest.score_version == SCORE_VERSION
        assert latest.sample_size >= 1
        assert 0 <= latest.track_record <= 100
