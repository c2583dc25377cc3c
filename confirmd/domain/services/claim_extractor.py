"""Claim extraction strategies.

Two interchangeable strategies sit behind the ``ClaimExtractor`` protocol:
a language-model strategy and a deterministic keyword strategy. The
container picks one at startup; the pipeline never branches on which.
"""

import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple

from pydantic import ValidationError

from ..errors import ModelProviderError
from ..models.claim import CandidateClaim, ClaimType, ResolutionType
from ..models.item import Item, ItemKind
from ..ports.language_model import LanguageModelProvider

logger = logging.getLogger(__name__)

EXTRACTION_PROMPT_VERSION = "extract-v1.0.0"

ASSET_PATTERNS: List[Tuple[re.Pattern, str]] = [
    (re.compile(r"\b(bitcoin|btc)\b", re.IGNORECASE), "BTC"),
    (re.compile(r"\b(ethereum|eth)\b", re.IGNORECASE), "ETH"),
    (re.compile(r"\b(solana|sol)\b", re.IGNORECASE), "SOL"),
    (re.compile(r"\b(cardano|ada)\b", re.IGNORECASE), "ADA"),
    (re.compile(r"\b(polkadot|dot)\b", re.IGNORECASE), "DOT"),
    (re.compile(r"\b(avalanche|avax)\b", re.IGNORECASE), "AVAX"),
    (re.compile(r"\b(chainlink|link)\b", re.IGNORECASE), "LINK"),
    (re.compile(r"\b(polygon|matic)\b", re.IGNORECASE), "MATIC"),
    (re.compile(r"\b(ripple|xrp)\b", re.IGNORECASE), "XRP"),
    (re.compile(r"\b(dogecoin|doge)\b", re.IGNORECASE), "DOGE"),
    (re.compile(r"\b(litecoin|ltc)\b", re.IGNORECASE), "LTC"),
    (re.compile(r"\b(uniswap|uni)\b", re.IGNORECASE), "UNI"),
    (re.compile(r"\baave\b", re.IGNORECASE), "AAVE"),
    (re.compile(r"\bbnb\b", re.IGNORECASE), "BNB"),
]

# Prefixes added by the keyword strategy; removed again when building search queries.
PATTERN_PREFIXES = (
    "ETF-related regulatory development reported: ",
    "Security incident reported: ",
    "Exchange listing reported: ",
    "Regulatory development reported: ",
    "Partnership or integration reported: ",
    "Price prediction reported: ",
    "Protocol launch or upgrade reported: ",
    "Unverified claim: ",
)

EXTRACTION_SYSTEM_PROMPT = """You are a specialized claim extraction agent for crypto news analysis. Extract atomic, falsifiable claims from news content.

RULES:
1. Claims must be ATOMIC - one testable assertion per claim
2. Claims must be FALSIFIABLE - can be proven true or false
3. Claims should be SPECIFIC - include dates, amounts, entities when available
4. Separate FACTS from PREDICTIONS - use the appropriate claim_type
5. falsifiability_score reflects specificity (1.0 = specific and time-bounded, 0.2 = vague)
6. llm_confidence is the probability the claim is true given the article

CLAIM TYPES:
- filing_submitted, filing_approved_or_denied, regulatory_action
- listing_announced, listing_live, delisting_announced, trading_halt
- mainnet_launch, testnet_launch, upgrade_released, exploit_or_hack, audit_result
- partnership_announced, investment_or_acquisition
- large_transfer_or_whale, mint_or_burn, wallet_attribution
- price_prediction, timeline_prediction
- rumor, misc_claim

OUTPUT FORMAT (strict JSON):
{
  "claims": [
    {
      "claim_text": "the atomic claim",
      "claim_type": "one of the types above",
      "asset_symbols": ["BTC", "ETH"],
      "resolution_type": "immediate | scheduled | indefinite",
      "resolve_by": "ISO timestamp or null",
      "falsifiability_score": 0.0-1.0,
      "llm_confidence": 0.0-1.0
    }
  ]
}

Output ONLY valid JSON."""


def extract_asset_symbols(text: str) -> List[str]:
    """Return known asset tickers mentioned in text, in table order."""
    return [symbol for pattern, symbol in ASSET_PATTERNS if pattern.search(text)]


def strip_pattern_prefix(claim_text: str) -> str:
    for prefix in PATTERN_PREFIXES:
        if claim_text.startswith(prefix):
            return claim_text[len(prefix):]
    return claim_text


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def finalize_candidates(
    candidates: List[CandidateClaim],
    asserted_at: datetime,
) -> List[CandidateClaim]:
    """Drop candidates that would violate claim invariants.

    Removes claims whose deadline precedes the assertion time and
    collapses repeated claim texts so one item never yields duplicates.
    """
    asserted_at = _aware(asserted_at)
    seen = set()
    kept: List[CandidateClaim] = []
    for candidate in candidates:
        if candidate.resolve_by is not None and _aware(candidate.resolve_by) < asserted_at:
            logger.warning(f"⚠️ Dropping claim with deadline before assertion: {candidate.claim_text[:60]}")
            continue
        key = candidate.claim_text.lower()
        if key in seen:
            continue
        seen.add(key)
        kept.append(candidate)
    return kept


class ClaimExtractor(Protocol):
    """Capability producing candidate claims from an item."""

    async def extract(self, item: Item) -> List[CandidateClaim]:
        ...

    @property
    def strategy_name(self) -> str:
        ...


class PatternClaimExtractor:
    """Deterministic keyword strategy. Needs no external collaborator."""

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        self._clock = clock or _utcnow

    @property
    def strategy_name(self) -> str:
        return "pattern"

    async def extract(self, item: Item) -> List[CandidateClaim]:
        return self.extract_sync(item.title, item.raw_text, item.published_at)

    def extract_sync(
        self,
        title: str,
        text: str,
        asserted_at: Optional[datetime] = None,
    ) -> List[CandidateClaim]:
        """Match the keyword rules against title and body.

        Args:
            title: Item headline, used verbatim in claim text
            text: Normalized item text
            asserted_at: Publish time of the item

        Returns:
            Candidate claims; never empty for non-empty input
        """
        now = self._clock()
        title = title or text[:120]
        lowered = f"{title} {text}".lower()
        symbols = extract_asset_symbols(lowered)
        claims: List[CandidateClaim] = []

        def add(prefix: str, claim_type: ClaimType, resolution: ResolutionType,
                days: Optional[int], falsifiability: float, confidence: float,
                assets: Optional[List[str]] = None) -> None:
            claims.append(CandidateClaim(
                claim_text=f"{prefix}{title}",
                claim_type=claim_type,
                asset_symbols=symbols if assets is None else assets,
                resolution_type=resolution,
                resolve_by=now + timedelta(days=days) if days else None,
                falsifiability_score=falsifiability,
                llm_confidence=confidence,
            ))

        if "etf" in lowered and any(k in lowered for k in ("approv", "fil", "sec")):
            etf_assets = [
                symbol for symbol, words in (("BTC", ("bitcoin", "btc")), ("ETH", ("ethereum", "eth")), ("SOL", ("solana", "sol")))
                if any(word in lowered for word in words)
            ]
            add(
                PATTERN_PREFIXES[0],
                ClaimType.FILING_APPROVED_OR_DENIED if "approv" in lowered else ClaimType.FILING_SUBMITTED,
                ResolutionType.SCHEDULED, 30, 0.9, 0.65,
                assets=etf_assets or ["BTC"],
            )

        if any(k in lowered for k in ("hack", "exploit", "stolen", "drained", "breach")):
            add(PATTERN_PREFIXES[1], ClaimType.EXPLOIT_OR_HACK, ResolutionType.IMMEDIATE, None, 0.9, 0.7)

        if "list" in lowered and any(k in lowered for k in ("exchange", "coinbase", "binance", "kraken")):
            add(PATTERN_PREFIXES[2], ClaimType.LISTING_ANNOUNCED, ResolutionType.SCHEDULED, 7, 0.8, 0.6)

        if any(k in lowered for k in ("sec ", "cftc", "regulation", "lawsuit", "enforcement")):
            has_etf = any(
                c.claim_type in (ClaimType.FILING_APPROVED_OR_DENIED, ClaimType.FILING_SUBMITTED)
                for c in claims
            )
            if not has_etf:
                add(PATTERN_PREFIXES[3], ClaimType.REGULATORY_ACTION, ResolutionType.SCHEDULED, 14, 0.85, 0.6)

        if any(k in lowered for k in ("partner", "collaborat", "integrat")):
            add(PATTERN_PREFIXES[4], ClaimType.PARTNERSHIP_ANNOUNCED, ResolutionType.IMMEDIATE, None, 0.75, 0.65)

        if any(k in lowered for k in ("price target", "will reach", "could hit", "to $")):
            add(PATTERN_PREFIXES[5], ClaimType.PRICE_PREDICTION, ResolutionType.INDEFINITE, None, 0.3, 0.35)

        if any(k in lowered for k in ("mainnet", "launch", "upgrade", "hard fork")):
            add(PATTERN_PREFIXES[6], ClaimType.MAINNET_LAUNCH, ResolutionType.SCHEDULED, 14, 0.85, 0.7)

        if not claims:
            add(PATTERN_PREFIXES[7], ClaimType.RUMOR, ResolutionType.INDEFINITE, None, 0.4, 0.3)

        return finalize_candidates(claims, asserted_at or now)


class LanguageModelClaimExtractor:
    """Language-model strategy with per-call fallback to the keyword strategy."""

    def __init__(
        self,
        model: LanguageModelProvider,
        fallback: Optional[PatternClaimExtractor] = None,
    ):
        self._model = model
        self._fallback = fallback or PatternClaimExtractor()

    @property
    def strategy_name(self) -> str:
        return f"language_model:{self._model.model_name}"

    async def extract(self, item: Item) -> List[CandidateClaim]:
        """Extract claims with the model, discarding invalid claims one by one."""
        published = item.published_at.isoformat() if item.published_at else "Unknown"
        label = "VIDEO TRANSCRIPT" if item.item_type == ItemKind.TRANSCRIPT else "ARTICLE"
        user_prompt = (
            f"{label} TO ANALYZE:\n"
            f"- Title: {item.title}\n"
            f"- Source: {item.metadata.get('source_name', 'unknown')}\n"
            f"- Published: {published}\n\n"
            f"CONTENT:\n{item.raw_text}\n\n---\n"
            f"Extract all atomic, falsifiable claims from this {label.lower()}. Output JSON only."
        )

        try:
            payload = await self._model.generate_structured(
                EXTRACTION_SYSTEM_PROMPT, user_prompt, "claims"
            )
        except ModelProviderError as e:
            logger.warning(f"⚠️ Model extraction failed, using keyword rules: {e}")
            return await self._fallback.extract(item)

        candidates = parse_extraction_payload(payload)
        asserted_at = item.published_at or item.ingested_at
        return finalize_candidates(candidates, asserted_at)


def parse_extraction_payload(payload: Dict[str, Any]) -> List[CandidateClaim]:
    """Turn a decoded model response into validated candidates.

    Schema violations and unknown claim types drop only the offending claim.
    """
    raw_claims = payload.get("claims") if isinstance(payload, dict) else None
    if not isinstance(raw_claims, list):
        logger.warning("⚠️ Model response has no claims list")
        return []

    candidates: List[CandidateClaim] = []
    for raw in raw_claims:
        if not isinstance(raw, dict):
            continue
        try:
            candidates.append(CandidateClaim(
                claim_text=raw.get("claim_text") or raw.get("claimText") or "",
                claim_type=raw.get("claim_type") or raw.get("claimType"),
                asset_symbols=raw.get("asset_symbols") or raw.get("assetSymbols") or [],
                resolution_type=raw.get("resolution_type") or ResolutionType.INDEFINITE,
                resolve_by=raw.get("resolve_by") or None,
                falsifiability_score=_clamp_score(raw.get("falsifiability_score")),
                llm_confidence=_clamp_score(raw.get("llm_confidence")),
            ))
        except ValidationError as e:
            logger.warning(f"⚠️ Discarding invalid extracted claim: {e.error_count()} error(s)")
    logger.info(f"📝 Parsed {len(candidates)}/{len(raw_claims)} claims from model output")
    return candidates


def _clamp_score(value: Any, default: float = 0.5) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if number != number:  # NaN
        return default
    return max(0.0, min(1.0, number))
