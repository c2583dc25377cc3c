"""Storage interface consumed by the verification pipeline."""

from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol

from ..models.claim import Claim, ClaimStatus
from ..models.evidence import EvidenceItem
from ..models.item import Item
from ..models.pipeline_status import PipelineStats
from ..models.resolution import Resolution
from ..models.source import Source, SourceScore
from ..models.story import Story, StoryFeedItem, StoryWithClaims
from ..models.verdict import Verdict


class StorageProvider(Protocol):
    """Narrow create/get/list/update contract per entity type.

    Implementations raise StorageUnavailableError when the backing store
    cannot be reached, DuplicateContentError on a repeated item fingerprint,
    and NotFoundError when a referenced entity is missing.
    """

    # Sources
    async def create_source(self, source: Source) -> Source:
        ...

    async def get_source(self, source_id: str) -> Optional[Source]:
        ...

    async def get_sources(self) -> List[Source]:
        ...

    async def get_source_by_domain(self, handle_or_domain: str) -> Optional[Source]:
        ...

    # Items
    async def create_item(self, item: Item) -> Item:
        ...

    async def get_item(self, item_id: str) -> Optional[Item]:
        ...

    async def get_item_by_fingerprint(self, content_hash: str) -> Optional[Item]:
        ...

    async def get_items(self) -> List[Item]:
        ...

    # Claims
    async def create_claim(self, claim: Claim) -> Claim:
        ...

    async def get_claim(self, claim_id: str) -> Optional[Claim]:
        ...

    async def get_claims(self, limit: Optional[int] = None) -> List[Claim]:
        ...

    async def get_claims_by_item(self, item_id: str) -> List[Claim]:
        ...

    async def update_claim_status(self, claim_id: str, status: ClaimStatus) -> Claim:
        ...

    async def update_claim_metadata(self, claim_id: str, metadata: Dict[str, Any]) -> Claim:
        ...

    # Evidence
    async def create_evidence(self, evidence: EvidenceItem) -> EvidenceItem:
        ...

    async def get_evidence_by_claim(self, claim_id: str) -> List[EvidenceItem]:
        ...

    # Verdicts
    async def create_verdict(self, verdict: Verdict) -> Verdict:
        ...

    async def get_latest_verdict(self, claim_id: str) -> Optional[Verdict]:
        ...

    async def get_verdict_history(self, claim_id: str) -> List[Verdict]:
        ...

    # Resolutions
    async def create_resolution(self, resolution: Resolution) -> Resolution:
        ...

    async def get_resolution_by_claim(self, claim_id: str) -> Optional[Resolution]:
        ...

    # Stories
    async def create_story(self, story: Story) -> Story:
        ...

    async def get_story(self, story_id: str) -> Optional[Story]:
        ...

    async def get_stories(self) -> List[Story]:
        ...

    async def update_story(self, story_id: str, **changes: Any) -> Story:
        ...

    async def add_claim_to_story(self, story_id: str, claim_id: str) -> None:
        ...

    async def add_item_to_story(self, story_id: str, item_id: str) -> None:
        ...

    async def get_story_with_claims(self, story_id: str) -> Optional[StoryWithClaims]:
        ...

    async def get_story_by_claim_id(self, claim_id: str) -> Optional[Story]:
        ...

    async def get_stories_for_feed(self, limit: int = 50, offset: int = 0) -> List[StoryFeedItem]:
        ...

    # Source scores
    async def create_source_score(self, score: SourceScore) -> SourceScore:
        ...

    async def get_source_score(self, source_id: str) -> Optional[SourceScore]:
        ...

    # Aggregates
    async def get_pipeline_stats(self) -> PipelineStats:
        ...

    async def set_last_run_at(self, timestamp: datetime) -> None:
        ...


