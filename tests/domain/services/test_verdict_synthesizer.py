"""Tests for verdict synthesis strategies."""

import pytest

from confirmd.config import VerdictBands
from confirmd.domain.errors import ModelProviderError
from confirmd.domain.models.claim import CandidateClaim, Claim, ClaimType
from confirmd.domain.models.evidence import EvidenceGrade, EvidenceItem, EvidenceStance, GatheredEvidence
from confirmd.domain.models.verdict import VerdictLabel
from confirmd.domain.services.verdict_synthesizer import (
    DeterministicVerdictSynthesizer,
    LanguageModelVerdictSynthesizer,
    clean_json_response,
    parse_verdict_payload,
    record_verdict,
)

from conftest import FakeLanguageModel

CLAIM = CandidateClaim(claim_text="ETH ETF approved this week", claim_type=ClaimType.FILING_APPROVED_OR_DENIED)


def _ev(grade: EvidenceGrade, stance: EvidenceStance, n: int = 0) -> GatheredEvidence:
    return GatheredEvidence(url=f"https://example.com/{grade.value}/{stance.value}/{n}", publisher="x",
                            grade=grade, stance=stance)


@pytest.fixture
def synthesizer() -> DeterministicVerdictSynthesizer:
    return DeterministicVerdictSynthesizer()


def test_no_evidence_is_speculative(synthesizer):
    result = synthesizer.synthesize_sync([])
    assert result.verdict_label == VerdictLabel.SPECULATIVE
    assert result.probability_true == pytest.approx(0.3)
    assert result.evidence_strength == pytest.approx(0.2)
    assert result.model == "simulation"


def test_strong_support_is_verified(synthesizer):
    result = synthesizer.synthesize_sync([
        _ev(EvidenceGrade.A, EvidenceStance.SUPPORTS),
        _ev(EvidenceGrade.B, EvidenceStance.SUPPORTS),
    ])
    # quality = (4 + 3) / (2 * 4)
    assert result.verdict_label == VerdictLabel.VERIFIED
    assert result.probability_true == pytest.approx(0.8 + 0.15 * 0.875)
    assert result.evidence_strength == pytest.approx(0.8 + 0.15 * 0.875)


def test_strong_contradiction_is_misleading(synthesizer):
    result = synthesizer.synthesize_sync([
        _ev(EvidenceGrade.A, EvidenceStance.CONTRADICTS),
        _ev(EvidenceGrade.D, EvidenceStance.SUPPORTS),
    ])
    assert result.verdict_label == VerdictLabel.MISLEADING
    assert result.probability_true == pytest.approx(0.1 + 0.2 * 0.5)


def test_weak_support_is_plausible(synthesizer):
    result = synthesizer.synthesize_sync([
        _ev(EvidenceGrade.C, EvidenceStance.SUPPORTS),
        _ev(EvidenceGrade.C, EvidenceStance.MENTIONS),
    ])
    assert result.verdict_label == VerdictLabel.PLAUSIBLE_UNVERIFIED


def test_social_only_is_speculative(synthesizer):
    result = synthesizer.synthesize_sync([
        _ev(EvidenceGrade.D, EvidenceStance.MENTIONS, 1),
        _ev(EvidenceGrade.D, EvidenceStance.MENTIONS, 2),
        _ev(EvidenceGrade.D, EvidenceStance.MENTIONS, 3),
        _ev(EvidenceGrade.D, EvidenceStance.SUPPORTS, 4),
    ])
    assert result.verdict_label == VerdictLabel.SPECULATIVE
    assert 0.0 <= result.probability_true <= 1.0


def test_bands_are_configurable():
    bands = VerdictBands(verified_support_ratio=0.99)
    result = DeterministicVerdictSynthesizer(bands).synthesize_sync([
        _ev(EvidenceGrade.A, EvidenceStance.SUPPORTS),
        _ev(EvidenceGrade.C, EvidenceStance.MENTIONS),
    ])
    assert result.verdict_label == VerdictLabel.PLAUSIBLE_UNVERIFIED


def test_clean_json_response_strips_fences():
    assert clean_json_response('```json\n{"a": 1}\n```') == '{"a": 1}'
    assert clean_json_response('```\n{"a": 1}```') == '{"a": 1}'
    assert clean_json_response('{"a": 1}') == '{"a": 1}'


def test_parse_payload_clamps_and_defaults_label():
    result = parse_verdict_payload(
        {"verdict_label": "certainly", "probability_true": 4, "evidence_strength": "n/a"}, "m", "v"
    )
    assert result.verdict_label == VerdictLabel.SPECULATIVE
    assert result.probability_true == 1.0
    assert result.evidence_strength == 0.3


@pytest.mark.asyncio
async def test_language_model_synthesizer_uses_model():
    model = FakeLanguageModel({"verdict": {
        "verdict_label": "misleading", "probability_true": 0.1, "evidence_strength": 0.9,
        "reasoning_summary": "SEC statement contradicts", "invalidation_triggers": "approval",
    }})
    synthesizer = LanguageModelVerdictSynthesizer(model)

    result = await synthesizer.synthesize(CLAIM, [_ev(EvidenceGrade.A, EvidenceStance.CONTRADICTS)])

    assert result.verdict_label == VerdictLabel.MISLEADING
    assert result.model == "fake-model"
    assert result.prompt_version == "verdict-v1.0.0"
    assert "ETH ETF approved this week" in model.calls[0]["user"]


@pytest.mark.asyncio
async def test_language_model_failure_falls_back_for_that_call():
    model = FakeLanguageModel({"verdict": ModelProviderError("rate limited")})
    result = await LanguageModelVerdictSynthesizer(model).synthesize(CLAIM, [])
    assert result.model == "simulation"
    assert result.verdict_label == VerdictLabel.SPECULATIVE


@pytest.mark.asyncio
async def test_with_prompt_changes_template_and_version():
    model = FakeLanguageModel({"verdict": {"verdict_label": "verified", "probability_true": 0.9, "evidence_strength": 0.9}})
    deep = LanguageModelVerdictSynthesizer(model).with_prompt("DEEP PROMPT", "deep-test")

    result = await deep.synthesize(CLAIM, [])

    assert model.calls[0]["system"] == "DEEP PROMPT"
    assert result.prompt_version == "deep-test"


@pytest.mark.asyncio
async def test_record_verdict_appends_history(seeded_storage, synthesizer):
    claim = next(c for c in await seeded_storage.get_claims() if "Arbitrum" in c.claim_text)
    before = await seeded_storage.get_verdict_history(claim.id)

    evidence = await seeded_storage.get_evidence_by_claim(claim.id)
    verdict = await record_verdict(seeded_storage, synthesizer, claim, evidence, prompt_version="test-v1")

    history = await seeded_storage.get_verdict_history(claim.id)
    assert len(history) == len(before) + 1
    assert history[:-1] == before
    assert verdict.prompt_version == "test-v1"
    assert (await seeded_storage.get_latest_verdict(claim.id)).id == verdict.id
