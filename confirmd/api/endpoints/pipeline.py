"""Pipeline control endpoints: runs, verification batches, resolution and stats."""

import logging
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from pydantic import BaseModel, Field

from ...domain.models.pipeline_status import BatchStats, PipelineStats, PipelineStatus, RunSummary
from ...domain.models.resolution import Resolution
from ...domain.ports.storage import StorageProvider
from ...domain.services.deep_verifier import DeepVerifier
from ...domain.services.pipeline_orchestrator import VerificationPipeline
from ...infrastructure.dependencies import (
    ServiceContainer,
    get_container,
    get_deep_verifier,
    get_pipeline,
    get_storage,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/pipeline", tags=["pipeline"])


class RunResponse(BaseModel):
    """Response for a run request."""

    started: bool = Field(..., description="False when a run was already in flight")
    summary: Optional[RunSummary] = Field(None, description="Run outcome when waited for")
    status: PipelineStatus


class BatchRequest(BaseModel):
    """Request body for deep verification and re-verification batches."""

    max_claims: Optional[int] = Field(None, ge=1, le=100, description="Cap on claims in the batch")
    claim_ids: Optional[List[str]] = Field(
        None, min_length=1, max_length=100, description="Deep-verify exactly these claims, in priority order"
    )


class ResolveResponse(BaseModel):
    """Response for a resolution pass."""

    resolved: List[Resolution]
    scores_updated: int


async def _run_in_background(pipeline: VerificationPipeline) -> None:
    try:
        await pipeline.run()
    except Exception as e:
        # Already recorded as last_error on the pipeline status.
        logger.error(f"❌ Background pipeline run failed: {e}", exc_info=True)


@router.get("/status", response_model=PipelineStatus)
async def pipeline_status(pipeline: VerificationPipeline = Depends(get_pipeline)) -> PipelineStatus:
    """Snapshot of the orchestrator state."""
    return pipeline.get_status()


@router.post("/run", response_model=RunResponse)
async def run_pipeline(
    background_tasks: BackgroundTasks,
    wait: bool = Query(False, description="Run inline and return the summary"),
    pipeline: VerificationPipeline = Depends(get_pipeline),
) -> RunResponse:
    """Trigger one pipeline batch.

    A request while a run is active does not start another; it returns the
    current status with ``started`` false.
    """
    if pipeline.is_running:
        return RunResponse(started=False, status=pipeline.get_status())

    if wait:
        summary = await pipeline.run()
        return RunResponse(started=summary.started, summary=summary, status=pipeline.get_status())

    background_tasks.add_task(_run_in_background, pipeline)
    logger.info("🔍 Pipeline run scheduled in background")
    return RunResponse(started=True, status=pipeline.get_status())


@router.post("/deep-verify", response_model=BatchStats)
async def deep_verify(
    request: Optional[BatchRequest] = None,
    verifier: DeepVerifier = Depends(get_deep_verifier),
) -> BatchStats:
    """Deep-verify the requested claims, or those never (or not recently) deep-verified."""
    if request is not None and request.claim_ids:
        return await verifier.verify_claims(request.claim_ids)
    max_claims = request.max_claims if request else None
    return await verifier.run_deep_verification_batch(max_claims=max_claims)


@router.post("/reverify", response_model=BatchStats)
async def reverify(
    request: Optional[BatchRequest] = None,
    verifier: DeepVerifier = Depends(get_deep_verifier),
) -> BatchStats:
    """Re-verify uncertain, stale or soon-due claims."""
    max_claims = request.max_claims if request else None
    return await verifier.run_reverification_batch(max_claims=max_claims)


@router.post("/resolve", response_model=ResolveResponse)
async def resolve_claims(container: ServiceContainer = Depends(get_container)) -> ResolveResponse:
    """Run a resolution pass and refresh source scores if anything resolved."""
    resolved = await container.get_resolution_engine().resolve_due_claims()
    scores = await container.get_source_scorer().recompute_all() if resolved else []
    return ResolveResponse(resolved=resolved, scores_updated=len(scores))


@router.get("/stats", response_model=PipelineStats)
async def pipeline_stats(storage: StorageProvider = Depends(get_storage)) -> PipelineStats:
    """Total counts per entity and the last run time."""
    return await storage.get_pipeline_stats()
