"""Tests for evidence gathering and community evidence validation."""

import pytest

from confirmd.domain.errors import ContentFetchError, SearchProviderError, ValidationFailure
from confirmd.domain.models.claim import CandidateClaim, ClaimType
from confirmd.domain.models.evidence import EvidenceGrade, EvidenceStance, GatheredEvidence
from confirmd.domain.models.item import Item
from confirmd.domain.models.verdict import VerdictLabel
from confirmd.domain.ports.search_provider import SearchResult
from confirmd.domain.services.evidence_gatherer import (
    DUPLICATE_EVIDENCE,
    INVALID_URL,
    NOT_RELEVANT,
    TOO_SHORT,
    EvidenceGatherer,
    build_search_query,
    determine_stance,
    grade_by_domain,
)
from confirmd.domain.services.verdict_synthesizer import DeterministicVerdictSynthesizer

from conftest import ARTICLE_TEXT, NOW, FakeFetcher, FakeSearch

CLAIM = CandidateClaim(
    claim_text="Security incident reported: Nexus Protocol lost approximately $45 million in a reentrancy exploit",
    claim_type=ClaimType.EXPLOIT_OR_HACK,
    asset_symbols=["ETH"],
)


def _gatherer(search=None, fetcher=None, **kwargs) -> EvidenceGatherer:
    return EvidenceGatherer(
        search,
        fetcher if fetcher is not None else FakeFetcher(default=ARTICLE_TEXT),
        DeterministicVerdictSynthesizer(),
        **kwargs,
    )


def _article(url: str = "https://www.theblock.co/post/nexus") -> Item:
    return Item(
        source_id="src",
        url=url,
        title="Nexus Protocol exploited",
        raw_text=ARTICLE_TEXT,
        content_hash="hash",
        published_at=NOW,
    )


@pytest.mark.parametrize("url,grade", [
    ("https://www.sec.gov/news/press-release", EvidenceGrade.A),
    ("https://etherscan.io/tx/0xabc", EvidenceGrade.A),
    ("https://www.reuters.com/markets/x", EvidenceGrade.B),
    ("https://www.coindesk.com/x", EvidenceGrade.C),
    ("https://x.com/someone/status/1", EvidenceGrade.D),
    ("https://unknown-blog.example/post", EvidenceGrade.C),
    ("https://news.microsoft.com/crypto", EvidenceGrade.C),
    ("https://www.netflix.com/title/1", EvidenceGrade.C),
    ("https://markets.ft.com/data", EvidenceGrade.B),
    ("https://old.reddit.com/r/ethereum", EvidenceGrade.D),
])
def test_grade_by_domain(url, grade):
    assert grade_by_domain(url) == grade


def test_stance_contradiction_wins_over_support():
    assert determine_stance("Officials confirmed the report was false", CLAIM.claim_text) == EvidenceStance.CONTRADICTS
    assert determine_stance("The team confirmed the incident", CLAIM.claim_text) == EvidenceStance.SUPPORTS
    assert determine_stance("Weather is sunny today", CLAIM.claim_text) == EvidenceStance.IRRELEVANT


def test_search_query_strips_prefix_and_adds_symbols():
    query = build_search_query(CLAIM)
    assert query.startswith("Nexus Protocol lost")
    assert query.endswith(" ETH crypto")


@pytest.mark.asyncio
async def test_validate_url_rejects_malformed():
    with pytest.raises(ValidationFailure) as exc:
        await _gatherer().validate_url("not-a-url")
    assert exc.value.reason == INVALID_URL


@pytest.mark.asyncio
async def test_validate_url_reports_status_code():
    fetcher = FakeFetcher({"https://example.com/gone": ContentFetchError("HTTP 404", status_code=404)})
    with pytest.raises(ValidationFailure) as exc:
        await _gatherer(fetcher=fetcher).validate_url("https://example.com/gone")
    assert "HTTP 404" in exc.value.reason


@pytest.mark.asyncio
async def test_gather_puts_article_first_and_skips_its_url_in_search():
    article = _article()
    search = FakeSearch([
        SearchResult(url=article.url, title="duplicate"),
        SearchResult(url="https://etherscan.io/tx/0xabc", title="tx", snippet="Data confirms transfer of 15,000 ETH"),
        SearchResult(url="https://dead.example/page", title="dead", snippet="confirmed"),
    ])
    fetcher = FakeFetcher({article.url: ARTICLE_TEXT, "https://etherscan.io/tx/0xabc": "tx page"})

    evidence = await _gatherer(search, fetcher).gather(CLAIM, article=article, publisher="The Block")

    assert [e.url for e in evidence] == [article.url, "https://etherscan.io/tx/0xabc"]
    assert evidence[0].publisher == "The Block"
    assert evidence[0].stance == EvidenceStance.SUPPORTS
    assert evidence[0].grade == EvidenceGrade.B
    assert evidence[1].grade == EvidenceGrade.A
    assert evidence[1].primary_flag is True
    assert search.queries == [build_search_query(CLAIM)]


@pytest.mark.asyncio
async def test_gather_tolerates_search_failure_and_zero_results():
    failing = FakeSearch(error=SearchProviderError("down"))
    assert len(await _gatherer(failing).gather(CLAIM, article=_article())) == 1
    assert await _gatherer(FakeSearch()).gather(CLAIM) == []


@pytest.mark.asyncio
async def test_gather_without_search_uses_article_only():
    gatherer = _gatherer(None)
    evidence = await gatherer.gather(CLAIM, article=_article())
    assert len(evidence) == 1


@pytest.mark.asyncio
async def test_unreachable_article_is_not_evidence():
    gatherer = _gatherer(fetcher=FakeFetcher())
    assert await gatherer.gather(CLAIM, article=_article()) == []


@pytest.mark.asyncio
async def test_community_evidence_invalid_url():
    result = await _gatherer().validate_community_evidence("not-a-url", CLAIM.claim_text, CLAIM.claim_type, [])
    assert result.accepted is False
    assert result.reason == "Invalid URL"


@pytest.mark.asyncio
async def test_community_evidence_unreachable_url():
    result = await _gatherer(fetcher=FakeFetcher()).validate_community_evidence(
        "https://unreachable.invalid/page", CLAIM.claim_text, CLAIM.claim_type, []
    )
    assert result.accepted is False
    assert "Could not retrieve content" in result.reason


@pytest.mark.asyncio
async def test_community_evidence_too_short():
    fetcher = FakeFetcher({"https://example.com/short": "tiny page"})
    result = await _gatherer(fetcher=fetcher).validate_community_evidence(
        "https://example.com/short", CLAIM.claim_text, CLAIM.claim_type, []
    )
    assert result.reason == TOO_SHORT


@pytest.mark.asyncio
async def test_community_evidence_not_relevant():
    fetcher = FakeFetcher({"https://example.com/cats": "A long article about cats and gardening tips for the spring season."})
    result = await _gatherer(fetcher=fetcher).validate_community_evidence(
        "https://example.com/cats", CLAIM.claim_text, CLAIM.claim_type, []
    )
    assert result.reason == NOT_RELEVANT


@pytest.mark.asyncio
async def test_community_evidence_duplicate():
    existing = [GatheredEvidence(
        url="https://etherscan.io/tx/0xabc", publisher="Etherscan",
        grade=EvidenceGrade.A, stance=EvidenceStance.SUPPORTS,
    )]
    result = await _gatherer().validate_community_evidence(
        "https://etherscan.io/tx/0xabc", CLAIM.claim_text, CLAIM.claim_type, existing
    )
    assert result.reason == DUPLICATE_EVIDENCE


@pytest.mark.asyncio
async def test_community_evidence_accepted_with_recomputed_verdict():
    existing = [GatheredEvidence(
        url="https://www.theblock.co/post/nexus", publisher="The Block",
        grade=EvidenceGrade.B, stance=EvidenceStance.SUPPORTS,
    )]
    result = await _gatherer().validate_community_evidence(
        "https://etherscan.io/tx/0xabc", CLAIM.claim_text, CLAIM.claim_type, existing, notes="on-chain proof"
    )

    assert result.accepted is True
    assert result.reason is None
    assert result.evidence.grade == EvidenceGrade.A
    assert result.evidence.stance == EvidenceStance.SUPPORTS
    assert result.evidence.metadata["notes"] == "on-chain proof"
    assert result.verdict.verdict_label == VerdictLabel.VERIFIED
