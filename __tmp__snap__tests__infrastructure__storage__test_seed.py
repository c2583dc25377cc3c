"""Tests for the fixture data set."""

import pytest

from confirmd.domain.models.claim import ClaimStatus
from confirmd.domain.models.verdict import VerdictLabel
from confirmd.infrastructure.storage.seed import SEED_MODEL, SEED_SCORE_VERSION

from conftest import NOW


async def _claim(storage, text: str):
    return next(c for c in await storage.get_claims() if text in c.claim_text)


@pytest.mark.asyncio
async def test_seed_populates_every_entity(seeded_storage):
    stats = await seeded_storage.get_pipeline_stats()
    assert stats.total_sources >= 13
    assert stats.total_items >= 6
    assert stats.total_claims >= 6
    assert stats.total_evidence >= 20
    assert stats.total_verdicts >= 6
    assert stats.total_stories == 5
    assert stats.total_resolutions == 2
    assert stats.last_run_at is None


@pytest.mark.asyncio
async def test_seed_verdicts_span_credibility(seeded_storage):
    nexus = await seeded_storage.get_latest_verdict((await _claim(seeded_storage, "Nexus Protocol")).id)
    arbitrum = await seeded_storage.get_latest_verdict((await _claim(seeded_storage, "Arbitrum")).id)

    assert nexus.verdict_label == VerdictLabel.VERIFIED
    assert nexus.probability_true > 0.9
    assert nexus.model == SEED_MODEL
    assert arbitrum.verdict_label == VerdictLabel.SPECULATIVE
    assert arbitrum.probability_true < 0.2


@pytest.mark.asyncio
async def test_resolved_seed_claims_have_one_resolution(seeded_storage):
    for claim in await seeded_storage.get_claims():
        resolution = await seeded_storage.get_resolution_by_claim(claim.id)
        assert (resolution is not None) == (claim.status == ClaimStatus.RESOLVED)


@pytest.mark.asyncio
async def test_seed_dates_are_relative_to_now(seeded_storage):
    for claim in await seeded_storage.get_claims():
        assert claim.asserted_at < NOW
        assert claim.resolve_by is None or claim.resolve_by >= claim.asserted_at


@pytest.mark.asyncio
async def test_every_source_has_a_score(seeded_storage):
    for source in await seeded_storage.get_sources():
        score = await seeded_storage.get_source_score(source.id)
        assert score.score_version == SEED_SCORE_VERSION
        assert score.confidence_interval.lower <= score.track_record <= score.confidence_interval.upper


@pytest.mark.asyncio
async def test_etf_story_groups_both_etf_claims(seeded_storage):
    etf = next(s for s in await seeded_storage.get_stories() if s.title.startswith("Ethereum ETF Decision"))
    with_claims = await seeded_storage.get_story_with_claims(etf.id)

    assert len(with_claims.claims) == 2
    assert etf.source_count == 2
    assert "ETH" in etf.asset_symbols


