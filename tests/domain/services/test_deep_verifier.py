"""Tests for deep verification and re-verification batches."""

import asyncio
from datetime import timedelta

import pytest

from confirmd.config import DeepVerifyConfig
from confirmd.domain.models.claim import Claim, ClaimStatus, ClaimType, ResolutionType
from confirmd.domain.models.item import Item
from confirmd.domain.models.source import Source, SourceType
from confirmd.domain.models.verdict import Verdict, VerdictLabel
from confirmd.domain.ports.search_provider import SearchResult
from confirmd.domain.services.deep_verifier import (
    DEEP_PROMPT_VERSION,
    REVERIFY_PROMPT_VERSION,
    DeepVerifier,
    build_deep_queries,
    calculate_priority,
    extract_main_entity,
)
from confirmd.domain.services.evidence_gatherer import EvidenceGatherer
from confirmd.domain.services.verdict_synthesizer import DeterministicVerdictSynthesizer

from conftest import NOW, FakeFetcher, FakeSearch

SEARCH_RESULTS = [
    SearchResult(url="https://www.reuters.com/markets/crypto-1", title="Reuters report",
                 snippet="Officials confirmed the announcement on Tuesday"),
    SearchResult(url="https://etherscan.io/tx/0xdef", title="Transaction",
                 snippet="On-chain data shows the transfer"),
]


def _claim(**overrides) -> Claim:
    values = dict(
        source_id="s", item_id="i", claim_type=ClaimType.MISC_CLAIM, asserted_at=NOW - timedelta(days=5),
        claim_text="Nexus Protocol lost approximately $45 million in a reentrancy exploit",
        falsifiability_score=0.4,
    )
    values.update(overrides)
    return Claim(**values)


def _verifier(storage, clock, search=None, config=None) -> DeepVerifier:
    synthesizer = DeterministicVerdictSynthesizer()
    gatherer = EvidenceGatherer(
        search if search is not None else FakeSearch(SEARCH_RESULTS),
        FakeFetcher(default="page body"),
        synthesizer,
    )
    return DeepVerifier(storage, gatherer, synthesizer, config=config, clock=clock)


async def _claim_containing(storage, text: str) -> Claim:
    return next(c for c in await storage.get_claims() if text in c.claim_text)


def test_main_entity_prefers_longest_capitalized_phrase():
    assert extract_main_entity("Nexus Protocol lost $45 million", []) == "Nexus Protocol"
    assert extract_main_entity("price goes up soon", ["BTC"]) == "BTC"
    assert extract_main_entity("price goes up very soon", []) == "price goes up very"


def test_quantitative_claims_get_a_data_query():
    exploit = _claim(claim_type=ClaimType.EXPLOIT_OR_HACK, asset_symbols=["ETH"])
    queries = build_deep_queries(exploit, NOW)
    assert len(queries) == 5
    assert queries[0].startswith('"Nexus Protocol lost')
    assert queries[1] == "Nexus Protocol official announcement 2025"
    assert "debunked" in queries[2]
    assert "March 2025" in queries[3]
    assert queries[4].startswith("ETH ")

    assert len(build_deep_queries(_claim(), NOW)) == 4


def test_priority_components():
    verified = Verdict(claim_id="c", model="m", prompt_version="v", verdict_label=VerdictLabel.VERIFIED,
                       probability_true=0.95, evidence_strength=1.0)
    base = _claim(asset_symbols=["BTC"])
    assert calculate_priority(base, verified, now=NOW) == pytest.approx(10.0)
    assert calculate_priority(base, verified, watchlist=["btc"], now=NOW) == pytest.approx(25.0)
    assert calculate_priority(base, None, now=NOW) == pytest.approx(50.0)

    urgent = _claim(
        claim_type=ClaimType.EXPLOIT_OR_HACK, falsifiability_score=1.0, asserted_at=NOW,
        resolution_type=ResolutionType.SCHEDULED, resolve_by=NOW + timedelta(days=1),
    )
    assert calculate_priority(urgent, None, now=NOW) == 100.0


@pytest.mark.asyncio
async def test_deep_verify_claim_adds_evidence_and_verdict(seeded_storage, clock):
    search = FakeSearch(SEARCH_RESULTS)
    verifier = _verifier(seeded_storage, clock, search)
    claim = await _claim_containing(seeded_storage, "Arbitrum")
    history_before = await seeded_storage.get_verdict_history(claim.id)
    evidence_before = await seeded_storage.get_evidence_by_claim(claim.id)

    outcome = await verifier.deep_verify_claim(claim)

    assert search.queries == outcome.queries
    # Every query returns the same two URLs; each is stored once.
    assert sorted(e.url for e in outcome.new_evidence) == sorted(r.url for r in SEARCH_RESULTS)
    assert all(e.metadata["tier"] == "deep" for e in outcome.new_evidence)
    assert len(await seeded_storage.get_evidence_by_claim(claim.id)) == len(evidence_before) + 2

    history = await seeded_storage.get_verdict_history(claim.id)
    assert len(history) == len(history_before) + 1
    assert outcome.verdict.prompt_version == DEEP_PROMPT_VERSION

    stored = await seeded_storage.get_claim(claim.id)
    assert stored.metadata["verification_tier"] == "deep_verified"
    assert stored.metadata["deep_verification_count"] == 1
    assert stored.status == ClaimStatus.REVIEWED


@pytest.mark.asyncio
async def test_deep_verify_skips_urls_already_in_evidence(seeded_storage, clock):
    verifier = _verifier(seeded_storage, clock)
    claim = await _claim_containing(seeded_storage, "Arbitrum")

    await verifier.deep_verify_claim(claim)
    again = await verifier.deep_verify_claim(await seeded_storage.get_claim(claim.id))

    assert again.new_evidence == []
    assert (await seeded_storage.get_claim(claim.id)).metadata["deep_verification_count"] == 2


@pytest.mark.asyncio
async def test_deep_verify_without_search_still_records_verdict(seeded_storage, clock):
    synthesizer = DeterministicVerdictSynthesizer()
    gatherer = EvidenceGatherer(None, FakeFetcher(default="page"), synthesizer)
    verifier = DeepVerifier(seeded_storage, gatherer, synthesizer, clock=clock)
    claim = await _claim_containing(seeded_storage, "Bitcoin will reach")

    outcome = await verifier.deep_verify_claim(claim)

    assert outcome.new_evidence == []
    assert outcome.verdict.claim_id == claim.id


@pytest.mark.asyncio
async def test_deep_candidates_exclude_resolved_and_recently_verified(seeded_storage, clock):
    verifier = _verifier(seeded_storage, clock)
    candidates = await verifier.select_deep_candidates()

    assert all(c.status != ClaimStatus.RESOLVED for c in candidates)
    assert len(candidates) == 4

    await verifier.deep_verify_claim(candidates[0])
    remaining = await verifier.select_deep_candidates()
    assert candidates[0].id not in {c.id for c in remaining}


@pytest.mark.asyncio
async def test_reverify_candidates_are_uncertain_or_near_deadline(seeded_storage, clock):
    verifier = _verifier(seeded_storage, clock)

    candidates = await verifier.select_reverify_candidates()

    texts = {c.claim_text.split()[0] for c in candidates}
    assert texts == {"ETH", "Arbitrum", "Bitcoin"}


@pytest.mark.asyncio
async def test_batch_respects_limit(seeded_storage, clock):
    stats = await _verifier(seeded_storage, clock).run_deep_verification_batch(max_claims=2)
    assert stats.claims_processed == 2
    assert stats.verdicts_updated == 2
    assert stats.cancelled is False


@pytest.mark.asyncio
async def test_batch_stops_between_claims(seeded_storage, clock):
    stop = asyncio.Event()
    stop.set()

    stats = await _verifier(seeded_storage, clock).run_deep_verification_batch(stop_event=stop)

    assert stats.cancelled is True
    assert stats.claims_processed == 0


@pytest.mark.asyncio
async def test_reverification_batch_uses_its_own_prompt_version(seeded_storage, clock):
    stats = await _verifier(seeded_storage, clock).run_reverification_batch(max_claims=1)

    assert stats.claims_processed == 1
    versions = []
    for claim in await seeded_storage.get_claims():
        latest = await seeded_storage.get_latest_verdict(claim.id)
        versions.append(latest.prompt_version)
    assert versions.count(REVERIFY_PROMPT_VERSION) == 1


def test_custom_config_changes_batch_size(storage, clock):
    verifier = _verifier(storage, clock, config=DeepVerifyConfig(max_claims_per_batch=1, watchlist=["SOL"]))
    assert verifier.priority(_claim(asset_symbols=["SOL"]), None) == pytest.approx(65.0)


@pytest.mark.asyncio
async def test_verify_claims_processes_requested_ids_by_priority(storage, clock):
    source = await storage.create_source(Source(
        type=SourceType.PUBLISHER, handle_or_domain="theblock.co", display_name="The Block",
    ))
    item = await storage.create_item(Item(source_id=source.id, raw_text="body", content_hash="h1", published_at=NOW))
    routine = await storage.create_claim(_claim(
        source_id=source.id, item_id=item.id, claim_text="Solana validators plan an upgrade next quarter",
    ))
    urgent = await storage.create_claim(_claim(
        source_id=source.id, item_id=item.id, claim_type=ClaimType.EXPLOIT_OR_HACK,
        falsifiability_score=1.0, asserted_at=NOW,
        resolution_type=ResolutionType.SCHEDULED, resolve_by=NOW + timedelta(days=1),
    ))
    search = FakeSearch(SEARCH_RESULTS)
    verifier = _verifier(storage, clock, search)
    assert verifier.priority(urgent, None) > verifier.priority(routine, None)

    stats = await verifier.verify_claims([routine.id, "no-such-claim", urgent.id])

    assert stats.claims_processed == 2
    direct_queries = [q for q in search.queries if q.startswith('"')]
    assert direct_queries[0].startswith('"Nexus Protocol')
    assert direct_queries[1].startswith('"Solana validators')
    for claim in (routine, urgent):
        stored = await storage.get_claim(claim.id)
        assert stored.metadata["deep_verification_count"] == 1
