"""Tests for claim resolution and re-check scheduling."""

from datetime import datetime, timedelta

import pytest

from confirmd.domain.models.claim import Claim, ClaimStatus, ClaimType, ResolutionType
from confirmd.domain.models.evidence import EvidenceGrade, EvidenceItem, EvidenceStance
from confirmd.domain.models.item import Item
from confirmd.domain.models.resolution import ResolutionOutcome
from confirmd.domain.models.source import Source, SourceType
from confirmd.domain.models.verdict import Verdict, VerdictLabel
from confirmd.domain.services.resolution_engine import ResolutionEngine, requires_human_review

from conftest import NOW


def _claim(**overrides) -> Claim:
    values = dict(
        source_id="s", item_id="i", claim_text="Token listed on exchange",
        claim_type=ClaimType.LISTING_ANNOUNCED, asserted_at=NOW - timedelta(days=2),
        resolution_type=ResolutionType.SCHEDULED, resolve_by=NOW + timedelta(days=5),
        falsifiability_score=0.8,
    )
    values.update(overrides)
    return Claim(**values)


def _ev(grade: EvidenceGrade, stance: EvidenceStance, n: int = 0, claim_id: str = "c") -> EvidenceItem:
    return EvidenceItem(
        claim_id=claim_id, url=f"https://example.com/{n}", publisher="p",
        evidence_grade=grade, stance=stance, primary_flag=grade == EvidenceGrade.A,
    )


@pytest.fixture
def engine(storage, clock) -> ResolutionEngine:
    return ResolutionEngine(storage, clock=clock)


def test_two_strong_contradictions_resolve_false(engine):
    decision = engine.evaluate(_claim(), [
        _ev(EvidenceGrade.A, EvidenceStance.CONTRADICTS, 1),
        _ev(EvidenceGrade.B, EvidenceStance.CONTRADICTS, 2),
    ], None)
    assert decision.outcome == ResolutionOutcome.FALSE
    assert decision.evidence_url == "https://example.com/1"


def test_two_strong_supports_resolve_true(engine):
    decision = engine.evaluate(_claim(), [
        _ev(EvidenceGrade.A, EvidenceStance.SUPPORTS, 1),
        _ev(EvidenceGrade.B, EvidenceStance.SUPPORTS, 2),
        _ev(EvidenceGrade.D, EvidenceStance.CONTRADICTS, 3),
    ], None)
    assert decision.outcome == ResolutionOutcome.TRUE


def test_confident_verdict_resolves(engine):
    verdict = Verdict(claim_id="c", model="m", prompt_version="v", verdict_label=VerdictLabel.MISLEADING,
                      probability_true=0.1, evidence_strength=0.9)
    decision = engine.evaluate(_claim(), [
        _ev(EvidenceGrade.C, EvidenceStance.CONTRADICTS, 1),
        _ev(EvidenceGrade.D, EvidenceStance.MENTIONS, 2),
    ], verdict)
    assert decision.outcome == ResolutionOutcome.FALSE


def test_single_evidence_never_resolves_on_strength(engine):
    decision = engine.evaluate(_claim(), [_ev(EvidenceGrade.A, EvidenceStance.SUPPORTS)], None)
    assert not decision.resolves
    assert decision.next_recheck_at == NOW + timedelta(hours=6)


def test_missed_deadline_resolves_false_for_specific_claims(engine):
    past = _claim(asserted_at=NOW - timedelta(days=10), resolve_by=NOW - timedelta(days=2))
    assert engine.evaluate(past, [], None).outcome == ResolutionOutcome.FALSE

    vague = _claim(asserted_at=NOW - timedelta(days=10), resolve_by=NOW - timedelta(days=2), falsifiability_score=0.5)
    assert engine.evaluate(vague, [], None).outcome == ResolutionOutcome.UNRESOLVED


def test_deadline_within_grace_keeps_claim_open(engine):
    claim = _claim(asserted_at=NOW - timedelta(days=10), resolve_by=NOW - timedelta(hours=12))
    assert not engine.evaluate(claim, [], None).resolves


def test_max_attempts_resolves_unresolved(engine):
    assert engine.evaluate(_claim(), [], None, attempts=10).outcome == ResolutionOutcome.UNRESOLVED


def test_recheck_schedule(engine):
    scheduled = _claim()
    assert engine.next_recheck(scheduled, 0) == NOW + timedelta(hours=6)
    assert engine.next_recheck(scheduled, 4) == NOW + timedelta(hours=168)
    assert engine.next_recheck(scheduled, 5) == scheduled.resolve_by

    indefinite = _claim(resolution_type=ResolutionType.INDEFINITE, resolve_by=None)
    assert engine.next_recheck(indefinite, 1) == NOW + timedelta(days=14)
    assert engine.next_recheck(indefinite, 4) is None
    assert engine.evaluate(indefinite, [], None, attempts=4).outcome == ResolutionOutcome.UNRESOLVED


def test_immediate_claims_without_evidence_stay_open(engine):
    claim = _claim(resolution_type=ResolutionType.IMMEDIATE, resolve_by=None)
    assert not engine.evaluate(claim, [], None).resolves


def test_human_review_types():
    assert requires_human_review(_claim(claim_type=ClaimType.EXPLOIT_OR_HACK))
    assert not requires_human_review(_claim())


async def _store_claim(storage, **overrides) -> Claim:
    source = await storage.create_source(Source(type=SourceType.PUBLISHER, handle_or_domain="coindesk.com", display_name="CoinDesk"))
    item = await storage.create_item(Item(source_id=source.id, raw_text="t", content_hash="h", published_at=NOW))
    return await storage.create_claim(_claim(source_id=source.id, item_id=item.id, **overrides))


@pytest.mark.asyncio
async def test_resolve_claim_persists_resolution_and_status(storage, engine):
    claim = await _store_claim(storage)
    for n, grade in enumerate((EvidenceGrade.A, EvidenceGrade.B)):
        await storage.create_evidence(_ev(grade, EvidenceStance.SUPPORTS, n, claim_id=claim.id))

    resolution = await engine.resolve_claim(claim)

    assert resolution.outcome == ResolutionOutcome.TRUE
    assert resolution.notes == "2 primary sources support the claim"
    assert (await storage.get_claim(claim.id)).status == ClaimStatus.RESOLVED
    assert await engine.resolve_claim(await storage.get_claim(claim.id)) is None


@pytest.mark.asyncio
async def test_resolve_claim_records_recheck(storage, engine):
    claim = await _store_claim(storage)

    assert await engine.resolve_claim(claim) is None

    metadata = (await storage.get_claim(claim.id)).metadata
    assert metadata["resolution_attempts"] == 1
    assert datetime.fromisoformat(metadata["next_recheck_at"]) == NOW + timedelta(hours=6)
    # Not due yet: nothing changes.
    assert await engine.resolve_claim(await storage.get_claim(claim.id)) is None
    assert (await storage.get_claim(claim.id)).metadata["resolution_attempts"] == 1


@pytest.mark.asyncio
async def test_human_review_claims_are_flagged_not_resolved(storage, engine):
    claim = await _store_claim(storage, claim_type=ClaimType.REGULATORY_ACTION)
    for n in range(2):
        await storage.create_evidence(_ev(EvidenceGrade.A, EvidenceStance.SUPPORTS, n, claim_id=claim.id))

    assert await engine.resolve_claim(claim) is None

    stored = await storage.get_claim(claim.id)
    assert stored.metadata["requires_human_review"] is True
    assert stored.status != ClaimStatus.RESOLVED


@pytest.mark.asyncio
async def test_resolved_claims_have_exactly_one_resolution(seeded_storage, clock):
    engine = ResolutionEngine(seeded_storage, clock=clock)
    await engine.resolve_due_claims()

    for claim in await seeded_storage.get_claims():
        resolution = await seeded_storage.get_resolution_by_claim(claim.id)
        if claim.status == ClaimStatus.RESOLVED:
            assert resolution is not None
            assert resolution.outcome in set(ResolutionOutcome)
        else:
            assert resolution is None
