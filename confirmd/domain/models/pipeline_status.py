"""Models describing pipeline runs and store totals."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class PipelineStatus(BaseModel):
    """Snapshot of the orchestrator state."""

    is_running: bool = False
    articles_processed: int = 0
    claims_extracted: int = 0
    last_run_at: Optional[datetime] = None
    last_error: Optional[str] = None
    scheduler_active: bool = False


class PipelineStats(BaseModel):
    """Total counts per entity in the store."""

    total_sources: int = 0
    total_items: int = 0
    total_claims: int = 0
    total_evidence: int = 0
    total_verdicts: int = 0
    total_resolutions: int = 0
    total_stories: int = 0
    last_run_at: Optional[datetime] = None


class BatchStats(BaseModel):
    """Outcome of a deep verification or re-verification batch."""

    claims_processed: int = 0
    evidence_added: int = 0
    verdicts_updated: int = 0
    cancelled: bool = False


class RunSummary(BaseModel):
    """Outcome of one orchestrator run."""

    started: bool = Field(..., description="False when a run was already in flight")
    articles_processed: int = 0
    claims_extracted: int = 0
    sources_failed: int = 0
    stories_touched: int = 0
    resolutions_created: int = 0
