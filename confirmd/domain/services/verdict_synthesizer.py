"""Verdict synthesis strategies."""

import json
import logging
from typing import Any, Dict, List, Optional, Protocol, Sequence

from ...config import VerdictBands
from ..errors import ModelProviderError
from ..models.claim import ClaimType
from ..models.evidence import EvidenceGrade, EvidenceItem, EvidenceStance, GatheredEvidence
from ..models.verdict import Verdict, VerdictLabel, VerdictResult
from ..ports.language_model import LanguageModelProvider
from ..ports.storage import StorageProvider

logger = logging.getLogger(__name__)

SIMULATION_MODEL = "simulation"
SIMULATION_PROMPT_VERSION = "sim-v1.0.0"
VERDICT_PROMPT_VERSION = "verdict-v1.0.0"

VERDICT_SYSTEM_PROMPT = """You are a due diligence analyst specializing in crypto news verification. Assess the claim using the provided evidence.

EVIDENCE GRADES:
- A: Primary/authoritative (official filings, on-chain data, project announcements)
- B: Strong secondary (Bloomberg, Reuters, The Block quoting primary)
- C: Weak secondary (aggregators, unsourced articles)
- D: Speculative (influencer posts, anonymous tips, rumors)

VERDICT LABELS:
- verified: Grade A/B evidence directly confirms the claim
- plausible_unverified: Credible hints but no primary evidence
- speculative: Mostly grade C/D evidence; unsubstantiated
- misleading: Contradicted by strong evidence or demonstrably false

OUTPUT FORMAT (strict JSON):
{
  "verdict_label": "verified | plausible_unverified | speculative | misleading",
  "probability_true": 0.0-1.0,
  "evidence_strength": 0.0-1.0,
  "reasoning_summary": "80-120 word explanation",
  "invalidation_triggers": "What would flip this verdict"
}

Be conservative. Only use "verified" when A/B grade evidence directly confirms. Output ONLY valid JSON."""

_LABEL_SENTENCES = {
    VerdictLabel.VERIFIED: "Primary sources directly confirm this claim with consistent supporting evidence.",
    VerdictLabel.PLAUSIBLE_UNVERIFIED: "Credible indicators suggest the claim may be accurate, but primary confirmation is lacking.",
    VerdictLabel.MISLEADING: "Strong evidence contradicts this claim. Primary sources refute the assertion.",
    VerdictLabel.SPECULATIVE: "Insufficient high-quality evidence. Most sources are speculative or unverified.",
}

_INVALIDATION_TRIGGERS = {
    VerdictLabel.VERIFIED: "Official retraction, contradicting on-chain data, or regulatory denial would downgrade this verdict.",
    VerdictLabel.PLAUSIBLE_UNVERIFIED: "Primary source confirmation would upgrade to verified; official denial would downgrade to speculative.",
    VerdictLabel.MISLEADING: "New primary evidence supporting the claim, or retraction of contradicting sources.",
    VerdictLabel.SPECULATIVE: "Any grade A/B evidence directly confirming or refuting the claim.",
}

_STRONG_GRADES = (EvidenceGrade.A, EvidenceGrade.B)


class ClaimLike(Protocol):
    claim_text: str
    claim_type: ClaimType
    asset_symbols: List[str]


class VerdictSynthesizer(Protocol):
    """Capability turning a claim plus its evidence into a verdict."""

    async def synthesize(self, claim: ClaimLike, evidence: Sequence[GatheredEvidence]) -> VerdictResult:
        ...

    @property
    def strategy_name(self) -> str:
        ...


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def clean_json_response(response: str) -> str:
    """Strip markdown code fences around a JSON document."""
    cleaned = response.strip()
    if cleaned.startswith("```json"):
        cleaned = cleaned[7:]
    elif cleaned.startswith("```"):
        cleaned = cleaned[3:]
    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]
    return cleaned.strip()


class DeterministicVerdictSynthesizer:
    """Grade and stance weighted aggregation driven by ``VerdictBands``."""

    def __init__(self, bands: Optional[VerdictBands] = None):
        self._bands = bands or VerdictBands()

    @property
    def strategy_name(self) -> str:
        return SIMULATION_MODEL

    async def synthesize(self, claim: ClaimLike, evidence: Sequence[GatheredEvidence]) -> VerdictResult:
        return self.synthesize_sync(evidence)

    def synthesize_sync(self, evidence: Sequence[GatheredEvidence]) -> VerdictResult:
        bands = self._bands
        count = len(evidence)

        total_weight = sum(bands.grade_weights.get(e.grade, 0.0) for e in evidence)
        quality = total_weight / (count * bands.max_grade_weight) if count else 0.0

        supporting = sum(1 for e in evidence if e.stance == EvidenceStance.SUPPORTS)
        contradicting = sum(1 for e in evidence if e.stance == EvidenceStance.CONTRADICTS)
        support_ratio = supporting / count if count else 0.0
        contradict_ratio = contradicting / count if count else 0.0

        strong_support = any(
            e.grade in _STRONG_GRADES and e.stance == EvidenceStance.SUPPORTS for e in evidence
        )
        strong_contradiction = any(
            e.grade in _STRONG_GRADES and e.stance == EvidenceStance.CONTRADICTS for e in evidence
        )

        if strong_contradiction and contradict_ratio > bands.misleading_contradict_ratio:
            label, band, probability_driver = VerdictLabel.MISLEADING, bands.misleading, support_ratio
        elif strong_support and support_ratio > bands.verified_support_ratio:
            label, band, probability_driver = VerdictLabel.VERIFIED, bands.verified, quality
        elif support_ratio > bands.plausible_support_ratio and not strong_contradiction:
            label, band, probability_driver = VerdictLabel.PLAUSIBLE_UNVERIFIED, bands.plausible_unverified, support_ratio
        else:
            label, band, probability_driver = VerdictLabel.SPECULATIVE, bands.speculative, support_ratio

        grades = {grade: sum(1 for e in evidence if e.grade == grade) for grade in EvidenceGrade}
        reasoning = (
            f"Analysis of {count} evidence items: "
            f"{grades[EvidenceGrade.A]} primary (A), {grades[EvidenceGrade.B]} strong secondary (B), "
            f"{grades[EvidenceGrade.C]} weak secondary (C), {grades[EvidenceGrade.D]} speculative (D). "
            f"{_LABEL_SENTENCES[label]}"
        )

        return VerdictResult(
            verdict_label=label,
            probability_true=clamp(band.probability_base + band.probability_slope * probability_driver),
            evidence_strength=clamp(band.strength_base + band.strength_slope * quality),
            reasoning_summary=reasoning,
            invalidation_triggers=_INVALIDATION_TRIGGERS[label],
            model=SIMULATION_MODEL,
            prompt_version=SIMULATION_PROMPT_VERSION,
        )


class LanguageModelVerdictSynthesizer:
    """Model-backed synthesis with per-call fallback to the deterministic policy."""

    def __init__(
        self,
        model: LanguageModelProvider,
        fallback: Optional[DeterministicVerdictSynthesizer] = None,
        system_prompt: str = VERDICT_SYSTEM_PROMPT,
        prompt_version: str = VERDICT_PROMPT_VERSION,
    ):
        self._model = model
        self._fallback = fallback or DeterministicVerdictSynthesizer()
        self._system_prompt = system_prompt
        self._prompt_version = prompt_version

    @property
    def strategy_name(self) -> str:
        return self._model.model_name

    def with_prompt(self, system_prompt: str, prompt_version: str) -> "LanguageModelVerdictSynthesizer":
        """Same model and fallback, different instruction template."""
        return LanguageModelVerdictSynthesizer(
            self._model, self._fallback, system_prompt=system_prompt, prompt_version=prompt_version
        )

    async def synthesize(self, claim: ClaimLike, evidence: Sequence[GatheredEvidence]) -> VerdictResult:
        evidence_json = [
            {
                "url": e.url,
                "publisher": e.publisher,
                "excerpt": e.excerpt,
                "grade": e.grade.value,
                "stance": e.stance.value,
            }
            for e in evidence
        ]
        user_prompt = (
            f'CLAIM TO ASSESS:\n"{claim.claim_text}"\n\n'
            f"Claim Type: {claim.claim_type.value}\n"
            f"Assets: {', '.join(claim.asset_symbols) or 'None'}\n\n"
            f"EVIDENCE ({len(evidence)} items):\n{json.dumps(evidence_json, indent=2)}\n\n"
            "---\nProvide your verdict. Output JSON only."
        )

        try:
            payload = await self._model.generate_structured(self._system_prompt, user_prompt, "verdict")
        except ModelProviderError as e:
            logger.warning(f"⚠️ Model verdict failed, using deterministic policy: {e}")
            return await self._fallback.synthesize(claim, evidence)

        return parse_verdict_payload(payload, self._model.model_name, self._prompt_version)


def parse_verdict_payload(payload: Dict[str, Any], model: str, prompt_version: str) -> VerdictResult:
    """Build a result from decoded model output, clamping and defaulting fields."""
    raw_label = str(payload.get("verdict_label") or payload.get("verdictLabel") or "").lower()
    try:
        label = VerdictLabel(raw_label)
    except ValueError:
        label = VerdictLabel.SPECULATIVE

    return VerdictResult(
        verdict_label=label,
        probability_true=_score(payload.get("probability_true"), 0.5),
        evidence_strength=_score(payload.get("evidence_strength"), 0.3),
        reasoning_summary=str(payload.get("reasoning_summary") or ""),
        invalidation_triggers=str(payload.get("invalidation_triggers") or ""),
        model=model,
        prompt_version=prompt_version,
    )


def _score(value: Any, default: float) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if number != number:
        return default
    return clamp(number)


async def record_verdict(
    storage: StorageProvider,
    synthesizer: VerdictSynthesizer,
    claim: Any,
    evidence: Sequence[EvidenceItem],
    prompt_version: Optional[str] = None,
) -> Verdict:
    """Synthesize over stored evidence and append a new verdict record.

    Prior verdicts for the claim are left untouched.
    """
    result = await synthesizer.synthesize(claim, [e.as_gathered() for e in evidence])
    key_ids = [
        e.id for e in evidence
        if e.evidence_grade in _STRONG_GRADES or e.stance != EvidenceStance.IRRELEVANT
    ]
    verdict = Verdict.from_result(
        claim.id,
        result,
        prompt_version=prompt_version,
        key_evidence_ids=key_ids,
    )
    stored = await storage.create_verdict(verdict)
    logger.info(
        f"⚖️ Verdict {stored.verdict_label.value} "
        f"(p={stored.probability_true:.2f}) for claim {claim.id[:8]}"
    )
    return stored
