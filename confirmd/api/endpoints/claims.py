"""Claim endpoints: listing, detail and community evidence submission."""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from ...domain.models.claim import Claim
from ...domain.models.community_evidence import CommunityEvidenceResult
from ...domain.models.evidence import EvidenceItem
from ...domain.models.resolution import Resolution
from ...domain.models.source import Source, SourceScore
from ...domain.models.story import Story
from ...domain.models.verdict import Verdict
from ...domain.ports.storage import StorageProvider
from ...infrastructure.dependencies import ServiceContainer, get_container, get_storage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/claims", tags=["claims"])


class ClaimSummary(BaseModel):
    """A claim with its current verdict, for listings."""

    claim: Claim
    source_name: Optional[str] = None
    verdict: Optional[Verdict] = None


class ClaimDetail(BaseModel):
    """Everything known about one claim."""

    claim: Claim
    source: Optional[Source] = None
    source_score: Optional[SourceScore] = None
    evidence: List[EvidenceItem] = Field(default_factory=list)
    verdict: Optional[Verdict] = None
    verdict_history: List[Verdict] = Field(default_factory=list)
    resolution: Optional[Resolution] = None
    story: Optional[Story] = None


class EvidenceSubmission(BaseModel):
    """Request model for community evidence."""

    url: str = Field(..., description="URL of the supporting or contradicting page")
    publisher: Optional[str] = Field(None, description="Publisher name, defaults to the domain")
    notes: Optional[str] = Field(None, description="Submitter notes")


async def _require_claim(storage: StorageProvider, claim_id: str) -> Claim:
    claim = await storage.get_claim(claim_id)
    if claim is None:
        raise HTTPException(status_code=404, detail=f"Claim not found: {claim_id}")
    return claim


@router.get("", response_model=List[ClaimSummary])
async def list_claims(
    limit: int = Query(50, ge=1, le=500),
    storage: StorageProvider = Depends(get_storage),
) -> List[ClaimSummary]:
    """Claims newest first, each with its latest verdict."""
    summaries = []
    for claim in await storage.get_claims(limit=limit):
        source = await storage.get_source(claim.source_id)
        summaries.append(ClaimSummary(
            claim=claim,
            source_name=source.display_name if source else None,
            verdict=await storage.get_latest_verdict(claim.id),
        ))
    return summaries


@router.get("/{claim_id}", response_model=ClaimDetail)
async def get_claim(claim_id: str, storage: StorageProvider = Depends(get_storage)) -> ClaimDetail:
    """Claim with source, evidence, verdict history, resolution and story."""
    claim = await _require_claim(storage, claim_id)
    history = await storage.get_verdict_history(claim_id)
    return ClaimDetail(
        claim=claim,
        source=await storage.get_source(claim.source_id),
        source_score=await storage.get_source_score(claim.source_id),
        evidence=await storage.get_evidence_by_claim(claim_id),
        verdict=await storage.get_latest_verdict(claim_id),
        verdict_history=history,
        resolution=await storage.get_resolution_by_claim(claim_id),
        story=await storage.get_story_by_claim_id(claim_id),
    )


@router.post("/{claim_id}/evidence", response_model=CommunityEvidenceResult)
async def submit_evidence(
    claim_id: str,
    submission: EvidenceSubmission,
    container: ServiceContainer = Depends(get_container),
) -> CommunityEvidenceResult:
    """Validate a user-submitted URL; if accepted, store it and append the recomputed verdict.

    Rejections are returned with a reason, not as HTTP errors.
    """
    storage = container.get_storage()
    claim = await _require_claim(storage, claim_id)
    existing = await storage.get_evidence_by_claim(claim_id)

    result = await container.get_evidence_gatherer().validate_community_evidence(
        submission.url,
        claim.claim_text,
        claim.claim_type,
        [e.as_gathered() for e in existing],
        publisher=submission.publisher,
        notes=submission.notes,
    )
    if not result.accepted:
        logger.info(f"⚠️ Community evidence rejected for claim {claim_id[:8]}: {result.reason}")
        return result

    stored = await storage.create_evidence(EvidenceItem.from_gathered(claim_id, result.evidence))
    await storage.create_verdict(Verdict.from_result(
        claim_id,
        result.verdict,
        key_evidence_ids=[e.id for e in existing] + [stored.id],
    ))
    logger.info(f"✅ Community evidence stored for claim {claim_id[:8]}")
    return result
