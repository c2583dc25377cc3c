"""Tests for the in-memory storage provider."""

from datetime import timedelta

import pytest
import pytest_asyncio

from confirmd.domain.errors import (
    DuplicateContentError,
    NotFoundError,
    StorageUnavailableError,
    ValidationFailure,
)
from confirmd.domain.models.claim import Claim, ClaimStatus, ClaimType
from confirmd.domain.models.item import Item
from confirmd.domain.models.resolution import Resolution, ResolutionOutcome
from confirmd.domain.models.source import SourceScore, Source, SourceType
from confirmd.domain.models.story import Story
from confirmd.domain.models.verdict import Verdict, VerdictLabel

from conftest import NOW


@pytest_asyncio.fixture
async def source(storage) -> Source:
    return await storage.create_source(
        Source(type=SourceType.PUBLISHER, handle_or_domain="theblock.co", display_name="The Block")
    )


async def _item(storage, source, content_hash: str = "hash-1") -> Item:
    return await storage.create_item(Item(
        source_id=source.id, title="Title", raw_text="Body", content_hash=content_hash, published_at=NOW,
    ))


async def _claim(storage, source, item) -> Claim:
    return await storage.create_claim(Claim(
        source_id=source.id, item_id=item.id, claim_text="Claim", claim_type=ClaimType.RUMOR, asserted_at=NOW,
    ))


def _verdict(claim_id: str, probability: float, minutes: int) -> Verdict:
    return Verdict(
        claim_id=claim_id, model="simulation", prompt_version="v", verdict_label=VerdictLabel.SPECULATIVE,
        probability_true=probability, evidence_strength=0.3, created_at=NOW + timedelta(minutes=minutes),
    )


@pytest.mark.asyncio
async def test_source_domain_is_unique(storage, source):
    with pytest.raises(ValidationFailure):
        await storage.create_source(
            Source(type=SourceType.PUBLISHER, handle_or_domain="theblock.co", display_name="Other")
        )
    assert (await storage.get_source_by_domain("theblock.co")).id == source.id


@pytest.mark.asyncio
async def test_duplicate_fingerprint_is_rejected(storage, source):
    item = await _item(storage, source)
    with pytest.raises(DuplicateContentError):
        await _item(storage, source)
    assert (await storage.get_item_by_fingerprint("hash-1")).id == item.id
    assert len(await storage.get_items()) == 1


@pytest.mark.asyncio
async def test_references_must_exist(storage, source):
    with pytest.raises(NotFoundError):
        await storage.create_item(Item(source_id="missing", raw_text="x", content_hash="h"))
    with pytest.raises(NotFoundError):
        await storage.create_claim(Claim(
            source_id=source.id, item_id="missing", claim_text="c", claim_type=ClaimType.RUMOR,
        ))
    with pytest.raises(NotFoundError):
        await storage.create_verdict(_verdict("missing", 0.5, 0))


@pytest.mark.asyncio
async def test_claim_status_only_moves_forward(storage, source):
    claim = await _claim(storage, source, await _item(storage, source))

    await storage.update_claim_status(claim.id, ClaimStatus.REVIEWED)
    with pytest.raises(ValidationFailure):
        await storage.update_claim_status(claim.id, ClaimStatus.NEEDS_EVIDENCE)
    updated = await storage.update_claim_status(claim.id, ClaimStatus.RESOLVED)

    assert updated.status == ClaimStatus.RESOLVED


@pytest.mark.asyncio
async def test_latest_verdict_and_history_ordering(storage, source):
    claim = await _claim(storage, source, await _item(storage, source))
    await storage.create_verdict(_verdict(claim.id, 0.2, 10))
    await storage.create_verdict(_verdict(claim.id, 0.4, 0))
    tie = await storage.create_verdict(_verdict(claim.id, 0.6, 10))

    assert (await storage.get_latest_verdict(claim.id)).id == tie.id
    history = await storage.get_verdict_history(claim.id)
    assert [v.probability_true for v in history] == [0.4, 0.2, 0.6]


@pytest.mark.asyncio
async def test_one_resolution_per_claim(storage, source):
    claim = await _claim(storage, source, await _item(storage, source))
    await storage.create_resolution(Resolution(claim_id=claim.id, outcome=ResolutionOutcome.TRUE))

    with pytest.raises(ValidationFailure):
        await storage.create_resolution(Resolution(claim_id=claim.id, outcome=ResolutionOutcome.FALSE))
    assert (await storage.get_resolution_by_claim(claim.id)).outcome == ResolutionOutcome.TRUE


@pytest.mark.asyncio
async def test_story_identity_is_immutable(storage):
    story = await storage.create_story(Story(title="Story"))

    updated = await storage.update_story(story.id, title="Renamed", source_count=2)
    assert (updated.title, updated.source_count) == ("Renamed", 2)
    with pytest.raises(ValidationFailure):
        await storage.update_story(story.id, id="other")
    with pytest.raises(NotFoundError):
        await storage.update_story("missing", title="x")


@pytest.mark.asyncio
async def test_story_links_are_idempotent(storage, source):
    item = await _item(storage, source)
    claim = await _claim(storage, source, item)
    story = await storage.create_story(Story(title="Story"))

    await storage.add_claim_to_story(story.id, claim.id)
    await storage.add_claim_to_story(story.id, claim.id)
    await storage.add_item_to_story(story.id, item.id)

    with_claims = await storage.get_story_with_claims(story.id)
    assert [c.id for c in with_claims.claims] == [claim.id]
    assert (await storage.get_story_by_claim_id(claim.id)).id == story.id


@pytest.mark.asyncio
async def test_feed_counts_claims_without_verdicts_as_medium(storage, source):
    item = await _item(storage, source)
    claim = await _claim(storage, source, item)
    story = await storage.create_story(Story(title="Story"))
    await storage.add_claim_to_story(story.id, claim.id)
    await storage.add_item_to_story(story.id, item.id)

    [entry] = await storage.get_stories_for_feed()

    assert entry.credibility_distribution.medium == 1
    assert entry.latest_item_timestamp == NOW
    assert entry.top_sources[0].display_name == "The Block"


@pytest.mark.asyncio
async def test_source_scores_are_append_only(storage, source):
    await storage.create_source_score(SourceScore(source_id=source.id, score_version="v1", track_record=40))
    await storage.create_source_score(SourceScore(source_id=source.id, score_version="v2", track_record=70))

    latest = await storage.get_source_score(source.id)
    assert (latest.score_version, latest.track_record) == ("v2", 70)
    assert await storage.get_source_score("missing") is None


@pytest.mark.asyncio
async def test_unavailable_storage_raises_fatal_error(storage):
    storage.set_available(False)
    with pytest.raises(StorageUnavailableError):
        await storage.get_claims()
    with pytest.raises(StorageUnavailableError):
        await storage.get_pipeline_stats()
