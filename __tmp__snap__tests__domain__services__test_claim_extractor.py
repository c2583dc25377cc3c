"""Tests for the claim extraction strategies."""

from datetime import timedelta

import pytest

from confirmd.domain.errors import ModelProviderError
from confirmd.domain.models.claim import ClaimType, ResolutionType
from confirmd.domain.models.item import Item
from confirmd.domain.services.claim_extractor import (
    LanguageModelClaimExtractor,
    PatternClaimExtractor,
    extract_asset_symbols,
    parse_extraction_payload,
    strip_pattern_prefix,
)
from confirmd.domain.services.content_normalizer import compute_fingerprint

from conftest import NOW, FakeLanguageModel


def _item(title: str, text: str = "", published_at=NOW) -> Item:
    raw = f"{title} {text}".strip()
    return Item(
        source_id="src",
        url="https://theblock.co/post/1",
        title=title,
        raw_text=raw,
        content_hash=compute_fingerprint(raw),
        published_at=published_at,
    )


@pytest.fixture
def extractor(clock) -> PatternClaimExtractor:
    return PatternClaimExtractor(clock=clock)


def test_asset_symbols_detected_in_table_order():
    assert extract_asset_symbols("Solana and Bitcoin rally while ETH lags") == ["BTC", "ETH", "SOL"]


def test_asset_symbols_require_word_boundaries():
    assert extract_asset_symbols("the solution is linked") == []


@pytest.mark.asyncio
async def test_etf_approval_is_scheduled_filing_claim(extractor):
    claims = await extractor.extract(_item("SEC approves spot Ethereum ETF applications"))

    etf = claims[0]
    assert etf.claim_type == ClaimType.FILING_APPROVED_OR_DENIED
    assert etf.resolution_type == ResolutionType.SCHEDULED
    assert etf.asset_symbols == ["ETH"]
    assert etf.resolve_by == NOW + timedelta(days=30)
    assert etf.claim_text.endswith("SEC approves spot Ethereum ETF applications")


@pytest.mark.asyncio
async def test_etf_filing_does_not_double_count_as_regulatory(extractor):
    claims = await extractor.extract(_item("Firm files with SEC for Solana ETF"))
    types = [c.claim_type for c in claims]
    assert ClaimType.FILING_SUBMITTED in types
    assert ClaimType.REGULATORY_ACTION not in types


@pytest.mark.asyncio
async def test_exploit_is_immediate(extractor):
    claims = await extractor.extract(_item("DeFi protocol exploited, $10M drained"))
    assert claims[0].claim_type == ClaimType.EXPLOIT_OR_HACK
    assert claims[0].resolution_type == ResolutionType.IMMEDIATE
    assert claims[0].resolve_by is None


@pytest.mark.asyncio
async def test_unmatched_text_falls_back_to_single_rumor(extractor):
    claims = await extractor.extract(_item("Market sentiment shifts among traders"))
    assert len(claims) == 1
    assert claims[0].claim_type == ClaimType.RUMOR
    assert claims[0].resolution_type == ResolutionType.INDEFINITE


@pytest.mark.asyncio
async def test_deadline_never_precedes_assertion(extractor):
    # Published a year after the clock: the 30-day deadline would precede it.
    claims = await extractor.extract(
        _item("SEC approves Bitcoin ETF", published_at=NOW + timedelta(days=365))
    )
    for claim in claims:
        assert claim.resolve_by is None or claim.resolve_by >= NOW + timedelta(days=365)


def test_strip_pattern_prefix():
    assert strip_pattern_prefix("Security incident reported: Nexus hacked") == "Nexus hacked"
    assert strip_pattern_prefix("Nexus hacked") == "Nexus hacked"


def test_parse_payload_drops_only_invalid_claims():
    payload = {
        "claims": [
            {"claim_text": "Nexus lost $45M", "claim_type": "exploit_or_hack", "asset_symbols": ["eth"],
             "resolution_type": "immediate", "falsifiability_score": 1.7, "llm_confidence": "bad"},
            {"claim_text": "Something", "claim_type": "not_a_type"},
            {"claim_text": "   ", "claim_type": "rumor"},
            "garbage",
        ]
    }
    claims = parse_extraction_payload(payload)

    assert len(claims) == 1
    assert claims[0].asset_symbols == ["ETH"]
    assert claims[0].falsifiability_score == 1.0
    assert claims[0].llm_confidence == 0.5


def test_parse_payload_without_claims_list():
    assert parse_extraction_payload({"result": "nothing"}) == []


@pytest.mark.asyncio
async def test_language_model_extractor_uses_model_output(clock):
    model = FakeLanguageModel({"claims": {"claims": [
        {"claim_text": "Nexus Protocol lost $45 million", "claim_type": "exploit_or_hack",
         "asset_symbols": ["ETH"], "resolution_type": "immediate",
         "falsifiability_score": 0.9, "llm_confidence": 0.8},
    ]}})
    extractor = LanguageModelClaimExtractor(model, fallback=PatternClaimExtractor(clock=clock))

    claims = await extractor.extract(_item("Nexus Protocol hacked"))

    assert [c.claim_text for c in claims] == ["Nexus Protocol lost $45 million"]
    assert model.calls[0]["schema"] == "claims"
    assert extractor.strategy_name == "language_model:fake-model"


@pytest.mark.asyncio
async def test_language_model_failure_falls_back_to_pattern(clock):
    model = FakeLanguageModel({"claims": ModelProviderError("timeout")})
    extractor = LanguageModelClaimExtractor(model, fallback=PatternClaimExtractor(clock=clock))

    claims = await extractor.extract(_item("Exchange hacked overnight"))

    assert claims[0].claim_type == ClaimType.EXPLOIT_OR_HACK
    assert claims[0].claim_text.startswith("Security incident reported: ")


