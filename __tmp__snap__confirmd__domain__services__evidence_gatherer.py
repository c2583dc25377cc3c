"""Evidence gathering, grading and stance classification."""

import asyncio
import logging
import re
from typing import Iterable, List, Optional, Sequence
from urllib.parse import urlparse

from ..errors import ContentFetchError, SearchProviderError, ValidationFailure
from ..models.claim import CandidateClaim, ClaimType
from ..models.community_evidence import CommunityEvidenceResult
from ..models.evidence import EvidenceGrade, EvidenceStance, GatheredEvidence
from ..models.item import Item
from ..ports.content_fetcher import ContentFetcher
from ..ports.search_provider import SearchProvider, SearchResult
from .claim_extractor import strip_pattern_prefix
from .content_normalizer import normalize_text
from .verdict_synthesizer import ClaimLike, VerdictSynthesizer

logger = logging.getLogger(__name__)

MAX_EXCERPT_CHARS = 500
MAX_QUERY_CLAIM_CHARS = 120
MIN_PAGE_CHARS = 50

INVALID_URL = "Invalid URL"
UNREACHABLE_URL = "Could not retrieve content from the provided URL"
TOO_SHORT = "Page content too short to analyze"
NOT_RELEVANT = "Content does not appear relevant to this claim"
DUPLICATE_EVIDENCE = "Duplicate evidence"

DOMAIN_GRADES = (
    (EvidenceGrade.A, (
        "sec.gov", "cftc.gov", "treasury.gov", "etherscan.io", "blockchain.com",
        "solscan.io", "ethereum.org", "bitcoin.org", "binance.com", "coinbase.com",
    )),
    (EvidenceGrade.B, ("bloomberg.com", "reuters.com", "wsj.com", "ft.com", "theblock.co")),
    (EvidenceGrade.C, ("coindesk.com", "decrypt.co", "cointelegraph.com", "cryptoslate.com", "bitcoinmagazine.com")),
    (EvidenceGrade.D, ("twitter.com", "x.com", "t.me", "telegram", "discord", "reddit.com")),
)
DEFAULT_GRADE = EvidenceGrade.C

CONTRADICT_KEYWORDS = (
    "denied", "refuted", "false", "incorrect", "misleading", "not true",
    "debunked", "no evidence", "unconfirmed", "disputes", "rejects",
)
SUPPORT_KEYWORDS = (
    "confirmed", "verified", "announced", "official", "according to",
    "states that", "proves", "validates", "evidence shows", "data confirms", "reported",
)

_SENTENCE_SPLIT = re.compile(r"[.!?]+")


def extract_domain(url: str) -> str:
    """Host of a URL without a leading ``www.``; the input itself when unparsable."""
    host = urlparse(url).hostname
    if not host:
        return url
    return host[4:] if host.startswith("www.") else host


def grade_by_domain(url: str) -> EvidenceGrade:
    """Publisher trust tier from the domain reputation table."""
    domain = extract_domain(url).lower()
    for grade, domains in DOMAIN_GRADES:
        if any(known in domain for known in domains):
            return grade
    return DEFAULT_GRADE


def claim_keywords(claim_text: str) -> List[str]:
    return [word for word in claim_text.lower().split() if len(word) > 4]


def determine_stance(text: str, claim_text: str) -> EvidenceStance:
    """Keyword stance heuristic; contradiction wins over support."""
    lowered = text.lower()
    if any(keyword in lowered for keyword in CONTRADICT_KEYWORDS):
        return EvidenceStance.CONTRADICTS
    if any(keyword in lowered for keyword in SUPPORT_KEYWORDS):
        return EvidenceStance.SUPPORTS
    overlap = sum(1 for keyword in claim_keywords(claim_text) if keyword in lowered)
    if overlap >= 2:
        return EvidenceStance.MENTIONS
    return EvidenceStance.IRRELEVANT


def is_valid_url(url: str) -> bool:
    try:
        parsed = urlparse(url.strip())
    except (AttributeError, ValueError):
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.hostname) and " " not in url.strip()


def build_search_query(claim: ClaimLike) -> str:
    """Claim text without the keyword-rule prefix, trimmed, plus symbols and ``crypto``."""
    text = strip_pattern_prefix(claim.claim_text)[:MAX_QUERY_CLAIM_CHARS]
    symbols = f" {' '.join(claim.asset_symbols)}" if claim.asset_symbols else ""
    return f"{text}{symbols} crypto"


class EvidenceGatherer:
    """Finds, validates, grades and classifies evidence for claims.

    Every URL that becomes evidence is checked for syntax and then for
    reachability through the content fetcher. Failures are reported as
    ``ValidationFailure`` and never stored.
    """

    def __init__(
        self,
        search: Optional[SearchProvider],
        fetcher: Optional[ContentFetcher],
        synthesizer: VerdictSynthesizer,
        max_results: int = 5,
        web_search_enabled: bool = True,
        verify_reachability: bool = True,
    ):
        self._search = search
        self._fetcher = fetcher
        self._synthesizer = synthesizer
        self._max_results = max_results
        self._web_search_enabled = web_search_enabled and search is not None
        self._verify_reachability = verify_reachability and fetcher is not None
        logger.info(
            f"🔧 EvidenceGatherer initialized (search={'on' if self._web_search_enabled else 'off'}, "
            f"reachability={'on' if self._verify_reachability else 'off'})"
        )

    async def validate_url(self, url: str) -> str:
        """Check a URL and return the visible page text.

        Raises:
            ValidationFailure: Malformed or unreachable URL
        """
        if not url or not is_valid_url(url):
            raise ValidationFailure(INVALID_URL)
        if not self._verify_reachability:
            return ""
        return await self._fetch(url)

    async def gather(
        self,
        claim: ClaimLike,
        article: Optional[Item] = None,
        publisher: Optional[str] = None,
    ) -> List[GatheredEvidence]:
        """Collect evidence for a freshly extracted claim.

        Args:
            claim: Claim to gather evidence for
            article: Item the claim came from; becomes the first evidence entry
            publisher: Display name of the article's source

        Returns:
            Validated evidence, article first
        """
        evidence: List[GatheredEvidence] = []

        if article is not None and article.url:
            try:
                await self.validate_url(article.url)
                grade = grade_by_domain(article.url)
                evidence.append(GatheredEvidence(
                    url=article.url,
                    publisher=publisher or extract_domain(article.url),
                    excerpt=article.raw_text[:MAX_EXCERPT_CHARS],
                    grade=grade,
                    stance=EvidenceStance.SUPPORTS,
                    primary_flag=grade == EvidenceGrade.A,
                    published_at=article.published_at,
                    metadata={"source_type": "rss_article"},
                ))
            except ValidationFailure as e:
                logger.warning(f"⚠️ Article URL rejected as evidence ({e.reason}): {article.url}")

        if self._web_search_enabled:
            exclude = {e.url for e in evidence}
            evidence.extend(await self.search_evidence(claim, build_search_query(claim), exclude=exclude))

        logger.info(f"🔍 Gathered {len(evidence)} evidence items for: {claim.claim_text[:60]}")
        return evidence

    async def search_evidence(
        self,
        claim: ClaimLike,
        query: str,
        exclude: Optional[Iterable[str]] = None,
        max_results: Optional[int] = None,
    ) -> List[GatheredEvidence]:
        """Run one search and keep the results that pass URL validation.

        Search failures yield no evidence; the caller continues.
        """
        if self._search is None:
            return []
        try:
            results = await self._search.search(query, max_results or self._max_results)
        except SearchProviderError as e:
            logger.warning(f"⚠️ Search failed for '{query[:60]}': {e}")
            return []

        seen = set(exclude or ())
        candidates: List[SearchResult] = []
        for result in results:
            if result.url in seen:
                continue
            seen.add(result.url)
            candidates.append(result)

        validated = await asyncio.gather(*(self._from_search_result(claim, r, query) for r in candidates))
        return [evidence for evidence in validated if evidence is not None]

    async def _from_search_result(
        self, claim: ClaimLike, result: SearchResult, query: str
    ) -> Optional[GatheredEvidence]:
        try:
            await self.validate_url(result.url)
        except ValidationFailure as e:
            logger.debug(f"⚠️ Search result rejected ({e.reason}): {result.url}")
            return None

        grade = grade_by_domain(result.url)
        excerpt = result.snippet or result.title
        return GatheredEvidence(
            url=result.url,
            publisher=extract_domain(result.url),
            excerpt=excerpt[:MAX_EXCERPT_CHARS],
            grade=grade,
            stance=determine_stance(excerpt, claim.claim_text),
            primary_flag=grade == EvidenceGrade.A,
            published_at=result.published_at,
            metadata={"source_type": "web_search", "search_query": query, "result_title": result.title},
        )

    async def validate_community_evidence(
        self,
        url: str,
        claim_text: str,
        claim_type: ClaimType,
        existing_evidence: Sequence[GatheredEvidence],
        publisher: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> CommunityEvidenceResult:
        """Validate a user-submitted URL. Never raises for bad input."""
        url = (url or "").strip()
        if not is_valid_url(url):
            return CommunityEvidenceResult.rejected(INVALID_URL)

        if any(existing.url == url for existing in existing_evidence):
            return CommunityEvidenceResult.rejected(DUPLICATE_EVIDENCE)

        try:
            page_text = normalize_text(await self._fetch(url))
        except ValidationFailure as e:
            return CommunityEvidenceResult.rejected(e.reason)

        if len(page_text) < MIN_PAGE_CHARS:
            return CommunityEvidenceResult.rejected(TOO_SHORT)

        keywords = claim_keywords(claim_text)
        lowered = page_text.lower()
        if sum(1 for keyword in keywords if keyword in lowered) < 2:
            return CommunityEvidenceResult.rejected(NOT_RELEVANT)

        stance = determine_stance(page_text, claim_text)
        if stance == EvidenceStance.IRRELEVANT:
            return CommunityEvidenceResult.rejected(NOT_RELEVANT)

        sentences = [s.strip() for s in _SENTENCE_SPLIT.split(page_text) if len(s.strip()) > 20]
        excerpt = next(
            (s for s in sentences if any(keyword in s.lower() for keyword in keywords)),
            page_text[:200],
        )

        grade = grade_by_domain(url)
        evidence = GatheredEvidence(
            url=url,
            publisher=publisher or extract_domain(url),
            excerpt=excerpt[:MAX_EXCERPT_CHARS],
            grade=grade,
            stance=stance,
            primary_flag=grade == EvidenceGrade.A,
            metadata={"source_type": "community_submission", "notes": notes} if notes else {"source_type": "community_submission"},
        )

        claim = CandidateClaim(claim_text=claim_text, claim_type=claim_type)
        verdict = await self._synthesizer.synthesize(claim, [*existing_evidence, evidence])
        logger.info(f"✅ Community evidence accepted ({stance.value}, grade {grade.value}): {url}")
        return CommunityEvidenceResult(accepted=True, evidence=evidence, verdict=verdict)

    async def _fetch(self, url: str) -> str:
        if self._fetcher is None:
            raise ValidationFailure(UNREACHABLE_URL)
        try:
            return await self._fetcher.fetch_text(url)
        except ContentFetchError as e:
            if e.status_code is not None:
                raise ValidationFailure(f"Could not retrieve content (HTTP {e.status_code})") from e
            raise ValidationFailure(UNREACHABLE_URL) from e


