"""In-memory implementation of the storage provider interface."""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Set

from ...config import CredibilityBands
from ...domain.errors import (
    DuplicateContentError,
    NotFoundError,
    StorageUnavailableError,
    ValidationFailure,
)
from ...domain.models.claim import Claim, ClaimStatus
from ...domain.models.evidence import EvidenceItem
from ...domain.models.item import Item
from ...domain.models.pipeline_status import PipelineStats
from ...domain.models.resolution import Resolution
from ...domain.models.source import Source, SourceScore
from ...domain.models.story import Story, StoryFeedItem, StoryWithClaims
from ...domain.models.verdict import Verdict
from ...domain.services.story_grouper import build_feed_item

logger = logging.getLogger(__name__)

_IMMUTABLE_STORY_FIELDS = {"id", "created_at"}


class InMemoryStorage:
    """Dictionary-backed store enforcing the pipeline's data invariants.

    * item fingerprints are unique
    * claims, evidence, verdicts and resolutions reference existing rows
    * at most one resolution per claim
    * claim status only moves forward
    * verdicts and source scores are append-only
    """

    def __init__(self, credibility_bands: Optional[CredibilityBands] = None):
        self._bands = credibility_bands or CredibilityBands()
        self._available = True
        self._sources: Dict[str, Source] = {}
        self._items: Dict[str, Item] = {}
        self._items_by_hash: Dict[str, str] = {}
        self._claims: Dict[str, Claim] = {}
        self._evidence: Dict[str, List[EvidenceItem]] = {}
        self._verdicts: Dict[str, List[Verdict]] = {}
        self._resolutions: Dict[str, Resolution] = {}
        self._stories: Dict[str, Story] = {}
        self._story_claims: Dict[str, List[str]] = {}
        self._story_items: Dict[str, Set[str]] = {}
        self._source_scores: Dict[str, List[SourceScore]] = {}
        self._last_run_at: Optional[datetime] = None

    def set_available(self, available: bool) -> None:
        """Simulate the backing store going away (or coming back)."""
        self._available = available

    def _check(self) -> None:
        if not self._available:
            raise StorageUnavailableError("Storage backend is unavailable")

    def _require_claim(self, claim_id: str) -> Claim:
        claim = self._claims.get(claim_id)
        if claim is None:
            raise NotFoundError(f"Claim {claim_id} not found")
        return claim

    def _require_story(self, story_id: str) -> Story:
        story = self._stories.get(story_id)
        if story is None:
            raise NotFoundError(f"Story {story_id} not found")
        return story

    # Sources

    async def create_source(self, source: Source) -> Source:
        self._check()
        if any(s.handle_or_domain == source.handle_or_domain for s in self._sources.values()):
            raise ValidationFailure(f"Source {source.handle_or_domain} already exists")
        self._sources[source.id] = source
        return source

    async def get_source(self, source_id: str) -> Optional[Source]:
        self._check()
        return self._sources.get(source_id)

    async def get_sources(self) -> List[Source]:
        self._check()
        return list(self._sources.values())

    async def get_source_by_domain(self, handle_or_domain: str) -> Optional[Source]:
        self._check()
        return next(
            (s for s in self._sources.values() if s.handle_or_domain == handle_or_domain), None
        )

    # Items

    async def create_item(self, item: Item) -> Item:
        self._check()
        if item.content_hash in self._items_by_hash:
            raise DuplicateContentError(f"Item with fingerprint {item.content_hash[:12]} already exists")
        if item.source_id not in self._sources:
            raise NotFoundError(f"Source {item.source_id} not found")
        self._items[item.id] = item
        self._items_by_hash[item.content_hash] = item.id
        return item

    async def get_item(self, item_id: str) -> Optional[Item]:
        self._check()
        return self._items.get(item_id)

    async def get_item_by_fingerprint(self, content_hash: str) -> Optional[Item]:
        self._check()
        item_id = self._items_by_hash.get(content_hash)
        return self._items.get(item_id) if item_id else None

    async def get_items(self) -> List[Item]:
        self._check()
        return list(self._items.values())

    # Claims

    async def create_claim(self, claim: Claim) -> Claim:
        self._check()
        if claim.item_id not in self._items:
            raise NotFoundError(f"Item {claim.item_id} not found")
        if claim.source_id not in self._sources:
            raise NotFoundError(f"Source {claim.source_id} not found")
        self._claims[claim.id] = claim
        return claim

    async def get_claim(self, claim_id: str) -> Optional[Claim]:
        self._check()
        return self._claims.get(claim_id)

    async def get_claims(self, limit: Optional[int] = None) -> List[Claim]:
        """Claims newest first by assertion time."""
        self._check()
        claims = sorted(self._claims.values(), key=lambda c: c.asserted_at, reverse=True)
        return claims[:limit] if limit is not None else claims

    async def get_claims_by_item(self, item_id: str) -> List[Claim]:
        self._check()
        return [c for c in self._claims.values() if c.item_id == item_id]

    async def update_claim_status(self, claim_id: str, status: ClaimStatus) -> Claim:
        self._check()
        claim = self._require_claim(claim_id)
        if status.rank < claim.status.rank:
            raise ValidationFailure(
                f"Claim status cannot move from {claim.status.value} back to {status.value}"
            )
        updated = claim.model_copy(update={"status": status})
        self._claims[claim_id] = updated
        return updated

    async def update_claim_metadata(self, claim_id: str, metadata: Dict[str, Any]) -> Claim:
        self._check()
        claim = self._require_claim(claim_id)
        updated = claim.model_copy(update={"metadata": dict(metadata)})
        self._claims[claim_id] = updated
        return updated

    # Evidence

    async def create_evidence(self, evidence: EvidenceItem) -> EvidenceItem:
        self._check()
        self._require_claim(evidence.claim_id)
        self._evidence.setdefault(evidence.claim_id, []).append(evidence)
        return evidence

    async def get_evidence_by_claim(self, claim_id: str) -> List[EvidenceItem]:
        self._check()
        return list(self._evidence.get(claim_id, []))

    # Verdicts

    async def create_verdict(self, verdict: Verdict) -> Verdict:
        self._check()
        self._require_claim(verdict.claim_id)
        self._verdicts.setdefault(verdict.claim_id, []).append(verdict)
        return verdict

    async def get_latest_verdict(self, claim_id: str) -> Optional[Verdict]:
        """Most recently created verdict; later insertion wins ties."""
        self._check()
        history = self._verdicts.get(claim_id)
        if not history:
            return None
        latest = history[0]
        for verdict in history[1:]:
            if verdict.created_at >= latest.created_at:
                latest = verdict
        return latest

    async def get_verdict_history(self, claim_id: str) -> List[Verdict]:
        self._check()
        return sorted(self._verdicts.get(claim_id, []), key=lambda v: v.created_at)

    # Resolutions

    async def create_resolution(self, resolution: Resolution) -> Resolution:
        self._check()
        self._require_claim(resolution.claim_id)
        if resolution.claim_id in self._resolutions:
            raise ValidationFailure(f"Claim {resolution.claim_id} is already resolved")
        self._resolutions[resolution.claim_id] = resolution
        return resolution

    async def get_resolution_by_claim(self, claim_id: str) -> Optional[Resolution]:
        self._check()
        return self._resolutions.get(claim_id)

    # Stories

    async def create_story(self, story: Story) -> Story:
        self._check()
        self._stories[story.id] = story
        self._story_claims[story.id] = []
        self._story_items[story.id] = set()
        return story

    async def get_story(self, story_id: str) -> Optional[Story]:
        self._check()
        return self._stories.get(story_id)

    async def get_stories(self) -> List[Story]:
        self._check()
        return sorted(self._stories.values(), key=lambda s: s.created_at, reverse=True)

    async def update_story(self, story_id: str, **changes: Any) -> Story:
        self._check()
        story = self._require_story(story_id)
        forbidden = _IMMUTABLE_STORY_FIELDS & changes.keys()
        if forbidden:
            raise ValidationFailure(f"Cannot update story fields: {', '.join(sorted(forbidden))}")
        updated = story.model_copy(update=changes)
        self._stories[story_id] = updated
        return updated

    async def add_claim_to_story(self, story_id: str, claim_id: str) -> None:
        self._check()
        self._require_story(story_id)
        self._require_claim(claim_id)
        if claim_id not in self._story_claims[story_id]:
            self._story_claims[story_id].append(claim_id)

    async def add_item_to_story(self, story_id: str, item_id: str) -> None:
        self._check()
        self._require_story(story_id)
        if item_id not in self._items:
            raise NotFoundError(f"Item {item_id} not found")
        self._story_items[story_id].add(item_id)

    async def get_story_with_claims(self, story_id: str) -> Optional[StoryWithClaims]:
        self._check()
        story = self._stories.get(story_id)
        if story is None:
            return None
        claims = [self._claims[c] for c in self._story_claims[story_id] if c in self._claims]
        return StoryWithClaims(story=story, claims=claims)

    async def get_story_by_claim_id(self, claim_id: str) -> Optional[Story]:
        self._check()
        for story_id, claim_ids in self._story_claims.items():
            if claim_id in claim_ids:
                return self._stories[story_id]
        return None

    async def get_stories_for_feed(self, limit: int = 50, offset: int = 0) -> List[StoryFeedItem]:
        """Stories with credibility distribution and top sources, newest activity first."""
        self._check()
        feed: List[StoryFeedItem] = []
        for story in self._stories.values():
            claims = [self._claims[c] for c in self._story_claims[story.id] if c in self._claims]
            probabilities = {}
            for claim in claims:
                latest = await self.get_latest_verdict(claim.id)
                probabilities[claim.id] = latest.probability_true if latest else None
            timestamps = [
                self._items[i].published_at or self._items[i].ingested_at
                for i in self._story_items[story.id]
                if i in self._items
            ]
            feed.append(build_feed_item(
                story,
                claims,
                probabilities,
                self._sources,
                latest_item_timestamp=max(timestamps) if timestamps else None,
                high_threshold=self._bands.high,
                low_threshold=self._bands.low,
            ))
        feed.sort(key=lambda f: f.latest_item_timestamp or f.created_at, reverse=True)
        return feed[offset:offset + limit]

    # Source scores

    async def create_source_score(self, score: SourceScore) -> SourceScore:
        self._check()
        if score.source_id not in self._sources:
            raise NotFoundError(f"Source {score.source_id} not found")
        self._source_scores.setdefault(score.source_id, []).append(score)
        return score

    async def get_source_score(self, source_id: str) -> Optional[SourceScore]:
        """Latest computed score for the source."""
        self._check()
        history = self._source_scores.get(source_id)
        return history[-1] if history else None

    # Aggregates

    async def get_pipeline_stats(self) -> PipelineStats:
        self._check()
        return PipelineStats(
            total_sources=len(self._sources),
            total_items=len(self._items),
            total_claims=len(self._claims),
            total_evidence=sum(len(e) for e in self._evidence.values()),
            total_verdicts=sum(len(v) for v in self._verdicts.values()),
            total_resolutions=len(self._resolutions),
            total_stories=len(self._stories),
            last_run_at=self._last_run_at,
        )

    async def set_last_run_at(self, timestamp: datetime) -> None:
        self._check()
        self._last_run_at = timestamp
