"""Tests for story grouping and feed projection."""

from datetime import timedelta

import pytest

from confirmd.domain.models.claim import Claim, ClaimType
from confirmd.domain.models.item import Item
from confirmd.domain.models.source import Source, SourceType
from confirmd.domain.models.story import CredibilityDistribution
from confirmd.domain.services.story_grouper import (
    GroupingCandidate,
    StoryGrouper,
    candidates_from_claims,
    group_candidates,
    keyword_asset_similarity,
    story_summary,
)

from conftest import NOW


def _candidate(claim_id: str, title: str, symbols=(), hours: float = 0, source_id: str = "s1") -> GroupingCandidate:
    return GroupingCandidate(
        claim_id=claim_id,
        claim_text=title,
        title=title,
        asset_symbols=list(symbols),
        published_at=NOW + timedelta(hours=hours),
        item_id=f"item-{claim_id}",
        source_id=source_id,
    )


def test_similarity_links_shared_words_or_assets():
    similar = keyword_asset_similarity()
    a = _candidate("1", "Nexus Protocol exploit drains funds")
    b = _candidate("2", "Nexus Protocol confirms exploit")
    c = _candidate("3", "Solana validators upgrade", symbols=["SOL"])
    d = _candidate("4", "Memecoin season returns", symbols=["SOL"])
    assert similar(a, b)
    assert not similar(a, c)
    assert similar(c, d)


def test_similarity_respects_time_window():
    similar = keyword_asset_similarity()
    a = _candidate("1", "Nexus Protocol exploit drains funds")
    b = _candidate("2", "Nexus Protocol confirms exploit", hours=100)
    assert not similar(a, b)


def test_group_candidates_is_transitive():
    groups = group_candidates([
        _candidate("1", "Nexus Protocol exploit drains funds"),
        _candidate("2", "Bitcoin hashrate record", symbols=["BTC"]),
        _candidate("3", "Nexus Protocol confirms exploit"),
    ], keyword_asset_similarity())
    assert sorted(sorted(g.claim_ids) for g in groups) == [["1", "3"], ["2"]]


def test_story_summary_mentions_related_claims():
    assert story_summary("T", ["only claim"]) == "only claim"
    assert "This story includes 2 related claims" in story_summary("T", ["first", "second"])


def test_credibility_distribution_sums_to_claim_count():
    distribution = CredibilityDistribution.from_probabilities([0.95, 0.7, 0.5, None, 0.29, 0.0])
    assert (distribution.high, distribution.medium, distribution.low) == (2, 2, 2)
    assert distribution.total == 6


async def _seed_claims(storage, titles_and_symbols):
    source = await storage.create_source(Source(type=SourceType.PUBLISHER, handle_or_domain="theblock.co", display_name="The Block"))
    claims, titles = [], {}
    for index, (title, symbols) in enumerate(titles_and_symbols):
        item = await storage.create_item(Item(
            source_id=source.id, title=title, raw_text=title, content_hash=f"h{index}", published_at=NOW,
        ))
        claims.append(await storage.create_claim(Claim(
            source_id=source.id, item_id=item.id, claim_text=title,
            claim_type=ClaimType.MISC_CLAIM, asset_symbols=symbols, asserted_at=NOW,
        )))
        titles[item.id] = title
    return claims, titles


@pytest.mark.asyncio
async def test_group_and_persist_creates_story_with_links(storage):
    claims, titles = await _seed_claims(storage, [
        ("Nexus Protocol exploit drains funds", ["ETH"]),
        ("Nexus Protocol confirms exploit", ["ETH"]),
    ])
    grouper = StoryGrouper(storage)

    stories = await grouper.group_and_persist(candidates_from_claims(claims, titles))

    assert len(stories) == 1
    story = stories[0]
    assert story.source_count == 1
    assert story.category == "crypto"
    assert story.asset_symbols == ["ETH"]
    with_claims = await storage.get_story_with_claims(story.id)
    assert {c.id for c in with_claims.claims} == {c.id for c in claims}


@pytest.mark.asyncio
async def test_regrouping_does_not_duplicate_stories(storage):
    claims, titles = await _seed_claims(storage, [
        ("Nexus Protocol exploit drains funds", ["ETH"]),
        ("Nexus Protocol confirms exploit losses", ["ETH"]),
    ])
    grouper = StoryGrouper(storage)

    await grouper.group_and_persist(candidates_from_claims(claims[:1], titles))
    await grouper.group_and_persist(candidates_from_claims(claims, titles))

    stories = await storage.get_stories()
    assert len(stories) == 1
    with_claims = await storage.get_story_with_claims(stories[0].id)
    assert len(with_claims.claims) == 2


@pytest.mark.asyncio
async def test_feed_distribution_matches_member_counts(seeded_storage):
    feed = await seeded_storage.get_stories_for_feed()
    assert len(feed) == 5
    for entry in feed:
        distribution = entry.credibility_distribution
        assert min(distribution.high, distribution.medium, distribution.low) >= 0
        assert distribution.total == entry.claim_count
        assert entry.top_sources


