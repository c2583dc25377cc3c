"""Deep verification: multi-query evidence gathering and re-verification batches."""

import asyncio
import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, Sequence, Tuple

from pydantic import BaseModel

from ...config import DeepVerifyConfig
from ..errors import ConfirmdError, FatalPipelineError
from ..models.claim import Claim, ClaimStatus, ClaimType
from ..models.evidence import EvidenceItem, GatheredEvidence
from ..models.pipeline_status import BatchStats
from ..models.verdict import Verdict
from ..ports.storage import StorageProvider
from .claim_extractor import strip_pattern_prefix
from .evidence_gatherer import EvidenceGatherer
from .verdict_synthesizer import VerdictSynthesizer, record_verdict

logger = logging.getLogger(__name__)

DEEP_PROMPT_VERSION = "deep-v1.0.0"
REVERIFY_PROMPT_VERSION = "reverify-v1.0.0"

DEEP_VERDICT_SYSTEM_PROMPT = """You are a senior due diligence analyst specializing in crypto news verification. You have been given a claim and evidence gathered from multiple independent web searches. Synthesize all evidence into a well-reasoned verdict.

EVIDENCE GRADES:
- A: Primary/authoritative (official filings, on-chain data, project announcements, regulator statements)
- B: Strong secondary (Bloomberg, Reuters, WSJ, The Block quoting primary sources)
- C: Weak secondary (aggregators, crypto news outlets, unsourced articles)
- D: Speculative (influencer posts, anonymous tips, rumors, social media)

WEIGHTING RULES:
- Grade A/B evidence weighs 3-5x more than Grade C/D
- Contradicting evidence from Grade A/B sources strongly influences the verdict
- Grade D evidence alone is NEVER sufficient for a "verified" verdict

VERDICT LABELS:
- verified: Grade A/B evidence directly confirms the claim with no credible contradictions
- plausible_unverified: Credible indicators suggest truth but no primary confirmation exists
- speculative: Mostly Grade C/D evidence; unsubstantiated or poorly sourced
- misleading: Contradicted by strong evidence, demonstrably false, or materially distorted

OUTPUT FORMAT (strict JSON):
{
  "verdict_label": "verified | plausible_unverified | speculative | misleading",
  "probability_true": 0.0-1.0,
  "evidence_strength": 0.0-1.0,
  "reasoning_summary": "100-200 word analysis citing specific evidence items by URL or publisher",
  "invalidation_triggers": "Specific, actionable conditions that would change this verdict"
}

Be conservative. Output ONLY valid JSON."""

HIGH_IMPACT_TYPES = frozenset({
    ClaimType.FILING_APPROVED_OR_DENIED,
    ClaimType.REGULATORY_ACTION,
    ClaimType.EXPLOIT_OR_HACK,
    ClaimType.FILING_SUBMITTED,
})
QUANTITATIVE_TYPES = frozenset({
    ClaimType.EXPLOIT_OR_HACK,
    ClaimType.LARGE_TRANSFER_OR_WHALE,
    ClaimType.MINT_OR_BURN,
    ClaimType.PRICE_PREDICTION,
})

_ENTITY = re.compile(r"\b([A-Z][a-zA-Z]*(?:\s+[A-Z][a-zA-Z]*)*)\b")
_ENTITY_SKIP = {"The", "This", "That", "And", "For", "But"}
_TOPIC_CLEAN = re.compile(r"[^a-zA-Z0-9\s$%]")
_TOPIC_STOP_WORDS = frozenset({
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for",
    "of", "with", "by", "from", "is", "are", "was", "were", "be", "been",
    "has", "have", "had", "will", "would", "could", "should", "this", "that",
    "it", "its", "not", "no",
})


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def extract_main_entity(claim_text: str, symbols: Sequence[str]) -> str:
    """Longest capitalized phrase, else the first symbol, else the first four words."""
    entities = [
        match for match in _ENTITY.findall(claim_text)
        if len(match) > 2 and match not in _ENTITY_SKIP
    ]
    if entities:
        return max(entities, key=len)
    if symbols:
        return symbols[0]
    return " ".join(claim_text.split()[:4])


def extract_claim_topic(claim_text: str) -> str:
    words = [
        w for w in _TOPIC_CLEAN.sub("", claim_text).split()
        if len(w) > 2 and w.lower() not in _TOPIC_STOP_WORDS
    ]
    return " ".join(words[:6])


def build_deep_queries(claim: Claim, now: Optional[datetime] = None) -> List[str]:
    """Direct, official-source, contradiction, timeline and (quantitative) data queries."""
    now = now or _utcnow()
    text = strip_pattern_prefix(claim.claim_text)
    symbols = " ".join(claim.asset_symbols)
    entity = extract_main_entity(text, claim.asset_symbols)
    topic = extract_claim_topic(text)

    queries = [
        f'"{text[:100]}" {symbols}'.strip(),
        f"{entity} official announcement {now.year}".strip(),
        f"{topic} false denied debunked rumor".strip(),
        f"{entity} {topic} latest news {now.strftime('%B')} {now.year}".strip(),
    ]
    if claim.claim_type in QUANTITATIVE_TYPES:
        primary = claim.asset_symbols[0] if claim.asset_symbols else entity
        queries.append(f"{primary} {topic} data statistics".strip())
    return queries


def calculate_priority(
    claim: Claim,
    verdict: Optional[Verdict],
    watchlist: Sequence[str] = (),
    deadline_window_days: float = 3.0,
    now: Optional[datetime] = None,
) -> float:
    """Rank how urgently a claim needs deep verification, on a 0-100 scale.

    Args:
        claim: Claim to score
        verdict: Current verdict, if any
        watchlist: Asset symbols that earn a bonus
        deadline_window_days: Deadline proximity that earns a bonus
        now: Reference time

    Returns:
        Priority; higher means sooner
    """
    now = now or _utcnow()
    priority = claim.falsifiability_score * 25

    if verdict is None or verdict.verdict_label.is_uncertain:
        priority += 30
    strength = verdict.evidence_strength if verdict is not None else 0.0
    priority += (1.0 - strength) * 10

    if claim.claim_type in HIGH_IMPACT_TYPES:
        priority += 20

    hours_old = (now - _aware(claim.asserted_at)).total_seconds() / 3600
    if hours_old < 24:
        priority += 20
    elif hours_old < 72:
        priority += 10

    if claim.resolve_by is not None:
        if _aware(claim.resolve_by) - now <= timedelta(days=deadline_window_days):
            priority += 15

    watched = {symbol.upper() for symbol in watchlist}
    if watched & {symbol.upper() for symbol in claim.asset_symbols}:
        priority += 15

    return max(0.0, min(100.0, priority))


class DeepVerificationOutcome(BaseModel):
    """Result of deep-verifying one claim."""

    claim_id: str
    queries: List[str]
    new_evidence: List[EvidenceItem]
    verdict: Verdict
    research_summary: str


class DeepVerifier:
    """Runs targeted searches per claim and appends a fresh verdict.

    Each claim is an independent unit: its evidence, verdict and
    metadata are persisted before the next claim starts, so stopping a
    batch never loses completed work.
    """

    def __init__(
        self,
        storage: StorageProvider,
        gatherer: EvidenceGatherer,
        synthesizer: VerdictSynthesizer,
        config: Optional[DeepVerifyConfig] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._storage = storage
        self._gatherer = gatherer
        self._synthesizer = synthesizer
        self._config = config or DeepVerifyConfig()
        self._clock = clock or _utcnow
        logger.info("🔧 DeepVerifier initialized")

    def priority(self, claim: Claim, verdict: Optional[Verdict]) -> float:
        return calculate_priority(
            claim,
            verdict,
            watchlist=self._config.watchlist,
            deadline_window_days=self._config.deadline_window_days,
            now=self._clock(),
        )

    async def deep_verify_claim(
        self, claim: Claim, prompt_version: str = DEEP_PROMPT_VERSION
    ) -> DeepVerificationOutcome:
        """Search, store new evidence, append a verdict and mark the claim."""
        now = self._clock()
        existing = await self._storage.get_evidence_by_claim(claim.id)
        queries = build_deep_queries(claim, now)
        logger.info(f"🔍 Deep verifying claim {claim.id[:8]} with {len(queries)} searches")

        seen = {e.url for e in existing}
        gathered: List[Tuple[str, GatheredEvidence]] = []
        for query in queries:
            results = await self._gatherer.search_evidence(
                claim, query, exclude=seen, max_results=self._config.results_per_query
            )
            for evidence in results:
                seen.add(evidence.url)
                gathered.append((query, evidence))

        tier = "deep" if prompt_version == DEEP_PROMPT_VERSION else "reverify"
        stored: List[EvidenceItem] = []
        for query, evidence in gathered:
            item = EvidenceItem.from_gathered(claim.id, evidence)
            item = item.model_copy(update={
                "metadata": {**item.metadata, "source_type": f"{tier}_verification", "search_query": query, "tier": tier}
            })
            stored.append(await self._storage.create_evidence(item))

        verdict = await record_verdict(
            self._storage, self._synthesizer, claim, [*existing, *stored], prompt_version=prompt_version
        )

        metadata = dict(claim.metadata)
        metadata.update({
            "verification_tier": "deep_verified",
            "last_deep_verified_at": now.isoformat(),
            "deep_verification_count": int(metadata.get("deep_verification_count", 0)) + 1,
        })
        await self._storage.update_claim_metadata(claim.id, metadata)
        if claim.status.rank < ClaimStatus.REVIEWED.rank:
            await self._storage.update_claim_status(claim.id, ClaimStatus.REVIEWED)

        summary = (
            f"Deep verification ran {len(queries)} targeted searches yielding {len(stored)} new evidence items, "
            f"combined with {len(existing)} existing items."
        )
        return DeepVerificationOutcome(
            claim_id=claim.id,
            queries=queries,
            new_evidence=stored,
            verdict=verdict,
            research_summary=summary,
        )

    async def select_deep_candidates(self, max_claims: Optional[int] = None) -> List[Claim]:
        """Claims never deep-verified, or last deep-verified too long ago, by priority."""
        now = self._clock()
        max_claims = max_claims if max_claims is not None else self._config.max_claims_per_batch
        scored: List[Tuple[float, Claim]] = []
        for claim in await self._storage.get_claims():
            if claim.status == ClaimStatus.RESOLVED:
                continue
            last = _last_deep_verified(claim)
            if last is not None and now - last <= timedelta(days=self._config.redeep_after_days):
                continue
            verdict = await self._storage.get_latest_verdict(claim.id)
            scored.append((self.priority(claim, verdict), claim))
        scored.sort(key=lambda pair: pair[0], reverse=True)
        return [claim for _, claim in scored[:max_claims]]

    async def select_reverify_candidates(self, max_claims: Optional[int] = None) -> List[Claim]:
        """Young claims that are uncertain and stale, or whose deadline is near."""
        now = self._clock()
        config = self._config
        max_claims = max_claims if max_claims is not None else config.max_reverify_claims
        scored: List[Tuple[float, Claim]] = []
        for claim in await self._storage.get_claims():
            if claim.status == ClaimStatus.RESOLVED:
                continue
            if now - _aware(claim.asserted_at) > timedelta(days=config.reverify_max_age_days):
                continue
            verdict = await self._storage.get_latest_verdict(claim.id)
            last = _last_deep_verified(claim)
            stale = last is None or now - last > timedelta(days=config.reverify_stale_days)
            uncertain = verdict is not None and verdict.verdict_label.is_uncertain
            resolving_soon = (
                claim.resolve_by is not None
                and now < _aware(claim.resolve_by) <= now + timedelta(days=config.deadline_window_days)
            )
            if (uncertain and stale) or resolving_soon:
                scored.append((self.priority(claim, verdict), claim))
        scored.sort(key=lambda pair: pair[0], reverse=True)
        return [claim for _, claim in scored[:max_claims]]

    async def verify_claims(
        self,
        claim_ids: Sequence[str],
        stop_event: Optional[asyncio.Event] = None,
    ) -> BatchStats:
        """Deep-verify the given claims in priority order. Unknown ids are skipped."""
        scored: List[Tuple[float, Claim]] = []
        for claim_id in dict.fromkeys(claim_ids):
            claim = await self._storage.get_claim(claim_id)
            if claim is None:
                logger.warning(f"⚠️ Skipping unknown claim {claim_id}")
                continue
            verdict = await self._storage.get_latest_verdict(claim.id)
            scored.append((self.priority(claim, verdict), claim))
        scored.sort(key=lambda pair: pair[0], reverse=True)
        logger.info(f"📊 Deep verification of {len(scored)} requested claims")
        return await self._run_batch([claim for _, claim in scored], DEEP_PROMPT_VERSION, stop_event)

    async def run_deep_verification_batch(
        self,
        max_claims: Optional[int] = None,
        stop_event: Optional[asyncio.Event] = None,
    ) -> BatchStats:
        selected = await self.select_deep_candidates(max_claims)
        logger.info(f"📊 Deep verification batch: {len(selected)} claims selected")
        return await self._run_batch(selected, DEEP_PROMPT_VERSION, stop_event)

    async def run_reverification_batch(
        self,
        max_claims: Optional[int] = None,
        stop_event: Optional[asyncio.Event] = None,
    ) -> BatchStats:
        selected = await self.select_reverify_candidates(max_claims)
        logger.info(f"📊 Re-verification batch: {len(selected)} claims selected")
        return await self._run_batch(selected, REVERIFY_PROMPT_VERSION, stop_event)

    async def _run_batch(
        self,
        claims: Sequence[Claim],
        prompt_version: str,
        stop_event: Optional[asyncio.Event],
    ) -> BatchStats:
        stats = BatchStats()
        for claim in claims:
            if stop_event is not None and stop_event.is_set():
                logger.info(f"⚠️ Batch stopped after {stats.claims_processed} claims")
                stats.cancelled = True
                break
            try:
                outcome = await self.deep_verify_claim(claim, prompt_version)
            except FatalPipelineError:
                raise
            except ConfirmdError as e:
                logger.warning(f"⚠️ Deep verification failed for claim {claim.id[:8]}: {e}")
                continue
            stats.claims_processed += 1
            stats.evidence_added += len(outcome.new_evidence)
            stats.verdicts_updated += 1
            logger.info(
                f"✅ {outcome.verdict.verdict_label.value} (p={outcome.verdict.probability_true:.2f}, "
                f"+{len(outcome.new_evidence)} evidence) for claim {claim.id[:8]}"
            )
        logger.info(
            f"📊 Batch complete: {stats.claims_processed} claims, {stats.evidence_added} evidence, "
            f"{stats.verdicts_updated} verdicts"
        )
        return stats


def _last_deep_verified(claim: Claim) -> Optional[datetime]:
    raw = claim.metadata.get("last_deep_verified_at")
    if not raw:
        return None
    if isinstance(raw, datetime):
        return _aware(raw)
    try:
        return _aware(datetime.fromisoformat(str(raw)))
    except ValueError:
        return None
