"""Tests for the verification pipeline orchestrator."""

import asyncio

import pytest

from confirmd.domain.errors import FeedFetchError, StorageUnavailableError
from confirmd.domain.models.claim import ClaimStatus
from confirmd.domain.services.claim_extractor import PatternClaimExtractor
from confirmd.domain.services.evidence_gatherer import EvidenceGatherer
from confirmd.domain.services.pipeline_orchestrator import VerificationPipeline
from confirmd.domain.services.resolution_engine import ResolutionEngine
from confirmd.domain.services.story_grouper import StoryGrouper
from confirmd.domain.services.verdict_synthesizer import DeterministicVerdictSynthesizer

from conftest import ARTICLE_TEXT, FakeFeedReader, FakeFetcher, feed, raw_item

ENTRIES = [
    raw_item("Nexus Protocol exploited, $45M drained", ARTICLE_TEXT, "https://theblock.co/post/1"),
    raw_item(
        "SEC approves spot Ethereum ETF applications",
        "The regulator approved the applications after months of review.",
        "https://theblock.co/post/2",
    ),
]


def _pipeline(storage, config, reader, clock, resolution_engine=None) -> VerificationPipeline:
    synthesizer = DeterministicVerdictSynthesizer()
    gatherer = EvidenceGatherer(None, FakeFetcher(default=ARTICLE_TEXT), synthesizer)
    return VerificationPipeline(
        storage,
        reader,
        PatternClaimExtractor(clock=clock),
        gatherer,
        synthesizer,
        StoryGrouper(storage),
        config=config,
        resolution_engine=resolution_engine,
    )


@pytest.fixture
def reader() -> FakeFeedReader:
    return FakeFeedReader({feed().url: list(ENTRIES)})


def test_status_before_any_run(storage, config, reader, clock):
    status = _pipeline(storage, config, reader, clock).get_status()
    assert (status.is_running, status.articles_processed, status.claims_extracted, status.last_run_at) == (
        False, 0, 0, None
    )
    assert status.scheduler_active is False


@pytest.mark.asyncio
async def test_run_ingests_extracts_verifies_and_groups(storage, config, reader, clock):
    pipeline = _pipeline(storage, config, reader, clock)

    summary = await pipeline.run()

    assert summary.started is True
    assert summary.articles_processed == 2
    assert summary.claims_extracted >= 2
    assert summary.stories_touched >= 1

    claims = await storage.get_claims()
    assert len(claims) == summary.claims_extracted
    for claim in claims:
        assert claim.status == ClaimStatus.REVIEWED
        assert await storage.get_latest_verdict(claim.id) is not None
        assert await storage.get_story_by_claim_id(claim.id) is not None

    source = await storage.get_source_by_domain("theblock.co")
    assert source.display_name == "The Block"

    status = pipeline.get_status()
    assert status.is_running is False
    assert status.last_run_at is not None
    assert (await storage.get_pipeline_stats()).last_run_at == status.last_run_at


@pytest.mark.asyncio
async def test_concurrent_run_is_rejected(storage, config, reader, clock):
    pipeline = _pipeline(storage, config, reader, clock)
    reader.gate = asyncio.Event()

    first = asyncio.create_task(pipeline.run())
    while not reader.fetched:
        await asyncio.sleep(0)

    second = await pipeline.run()
    assert second.started is False
    assert pipeline.get_status().is_running is True

    reader.gate.set()
    result = await first
    assert result.started is True
    assert result.articles_processed == 2
    assert pipeline.get_status().is_running is False
    assert len(reader.fetched) == 1


@pytest.mark.asyncio
async def test_failed_feed_is_skipped(storage, config, clock):
    coindesk = feed("CoinDesk", "coindesk.com")
    reader = FakeFeedReader({
        feed().url: list(ENTRIES),
        coindesk.url: FeedFetchError("HTTP 503 from CoinDesk"),
    })
    config = config.model_copy(update={"feeds": [feed(), coindesk]})

    summary = await _pipeline(storage, config, reader, clock).run()

    assert summary.sources_failed == 1
    assert summary.articles_processed == 2
    assert await storage.get_source_by_domain("coindesk.com") is None


@pytest.mark.asyncio
async def test_rerun_does_not_duplicate_items(storage, config, reader, clock):
    pipeline = _pipeline(storage, config, reader, clock)

    await pipeline.run()
    stats_before = await storage.get_pipeline_stats()
    second = await pipeline.run()
    stats_after = await storage.get_pipeline_stats()

    assert second.articles_processed == 0
    assert stats_after.total_items == stats_before.total_items
    assert stats_after.total_claims == stats_before.total_claims
    # Counters accumulate across runs.
    assert pipeline.get_status().articles_processed == 2


@pytest.mark.asyncio
async def test_item_budget_caps_a_run(storage, config, reader, clock):
    config = config.model_copy(update={"max_items_per_run": 1})
    summary = await _pipeline(storage, config, reader, clock).run()
    assert summary.articles_processed == 1


@pytest.mark.asyncio
async def test_storage_outage_aborts_run_and_resets_status(storage, config, reader, clock):
    pipeline = _pipeline(storage, config, reader, clock)
    storage.set_available(False)

    with pytest.raises(StorageUnavailableError):
        await pipeline.run()

    status = pipeline.get_status()
    assert status.is_running is False
    assert "unavailable" in status.last_error

    storage.set_available(True)
    assert (await pipeline.run()).started is True
    assert pipeline.get_status().last_error is None


@pytest.mark.asyncio
async def test_run_resolves_due_claims_when_enabled(seeded_storage, config, reader, clock):
    engine = ResolutionEngine(seeded_storage, clock=clock)
    config = config.model_copy(update={"auto_resolve": True})
    resolved_before = (await seeded_storage.get_pipeline_stats()).total_resolutions

    summary = await _pipeline(seeded_storage, config, reader, clock, resolution_engine=engine).run()

    stats = await seeded_storage.get_pipeline_stats()
    assert stats.total_resolutions == resolved_before + summary.resolutions_created


@pytest.mark.asyncio
async def test_ensure_source_matches_display_name(storage, config, reader, clock):
    pipeline = _pipeline(storage, config, reader, clock)
    first = await pipeline.ensure_source("The Block", "theblock.co")
    assert await pipeline.ensure_source("the block", "www.theblock.co") == first
    assert first.metadata["rss_source"] is True


@pytest.mark.asyncio
async def test_scheduler_start_and_stop_are_idempotent(storage, config, reader, clock):
    pipeline = _pipeline(storage, config, reader, clock)

    assert pipeline.start_scheduler(interval_hours=1) is True
    assert pipeline.start_scheduler(interval_hours=1) is False
    assert pipeline.get_status().scheduler_active is True

    assert await pipeline.stop_scheduler() is True
    assert await pipeline.stop_scheduler() is False
    assert pipeline.get_status().scheduler_active is False


