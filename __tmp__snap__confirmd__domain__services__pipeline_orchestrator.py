"""Verification pipeline orchestrator.

Owns the run-status flag and counters. A run walks the configured feeds,
ingests new items, extracts claims, gathers evidence, records verdicts and
groups the new claims into stories.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional

from ...config import PipelineConfig
from ..errors import (
    DuplicateContentError,
    FatalPipelineError,
    TransientExternalError,
    ValidationFailure,
)
from ..models.claim import CandidateClaim, Claim, ClaimStatus
from ..models.evidence import EvidenceItem
from ..models.item import Item, RawItem
from ..models.pipeline_status import PipelineStatus, RunSummary
from ..models.source import Source, SourceType
from ..ports.feed_reader import FeedReader, FeedSource
from ..ports.storage import StorageProvider
from .claim_extractor import ClaimExtractor
from .content_normalizer import normalize
from .evidence_gatherer import EvidenceGatherer
from .resolution_engine import ResolutionEngine
from .source_scoring import SourceScorer
from .story_grouper import StoryGrouper, candidates_from_claims
from .verdict_synthesizer import VerdictSynthesizer, record_verdict

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class VerificationPipeline:
    """Runs ingestion-to-verdict batches, at most one at a time."""

    def __init__(
        self,
        storage: StorageProvider,
        feed_reader: FeedReader,
        extractor: ClaimExtractor,
        gatherer: EvidenceGatherer,
        synthesizer: VerdictSynthesizer,
        grouper: StoryGrouper,
        config: Optional[PipelineConfig] = None,
        resolution_engine: Optional[ResolutionEngine] = None,
        scorer: Optional[SourceScorer] = None,
    ):
        self._storage = storage
        self._feed_reader = feed_reader
        self._extractor = extractor
        self._gatherer = gatherer
        self._synthesizer = synthesizer
        self._grouper = grouper
        self._config = config or PipelineConfig()
        self._resolution_engine = resolution_engine
        self._scorer = scorer

        self._is_running = False
        self._articles_processed = 0
        self._claims_extracted = 0
        self._last_run_at: Optional[datetime] = None
        self._last_error: Optional[str] = None
        self._scheduler_task: Optional[asyncio.Task] = None

        logger.info(
            f"🔧 VerificationPipeline initialized (extractor={extractor.strategy_name}, "
            f"synthesizer={synthesizer.strategy_name}, feeds={len(self._config.feeds)})"
        )

    @property
    def is_running(self) -> bool:
        return self._is_running

    def get_status(self) -> PipelineStatus:
        """Snapshot of the run state. Never blocks."""
        return PipelineStatus(
            is_running=self._is_running,
            articles_processed=self._articles_processed,
            claims_extracted=self._claims_extracted,
            last_run_at=self._last_run_at,
            last_error=self._last_error,
            scheduler_active=self._scheduler_task is not None and not self._scheduler_task.done(),
        )

    async def run(self) -> RunSummary:
        """Run one batch over all configured feeds.

        Returns immediately with ``started=False`` when a run is already in
        flight. Fatal errors reset the pipeline to idle, are recorded as
        ``last_error`` and re-raised.
        """
        # Check and set happen with no await in between.
        if self._is_running:
            logger.info("⚠️ Pipeline run requested while another run is active; ignoring")
            return RunSummary(started=False)
        self._is_running = True

        summary = RunSummary(started=True)
        logger.info(f"🔍 Pipeline run started over {len(self._config.feeds)} feeds")
        try:
            new_claims = await self._process_feeds(summary)

            if new_claims:
                items = {claim.item_id for claim in new_claims}
                titles: Dict[str, str] = {}
                for item_id in items:
                    item = await self._storage.get_item(item_id)
                    if item is not None:
                        titles[item_id] = item.title
                stories = await self._grouper.group_and_persist(candidates_from_claims(new_claims, titles))
                summary.stories_touched = len(stories)

            if self._config.auto_resolve and self._resolution_engine is not None:
                resolutions = await self._resolution_engine.resolve_due_claims()
                summary.resolutions_created = len(resolutions)
                if resolutions and self._scorer is not None:
                    await self._scorer.recompute_all()

            finished_at = _utcnow()
            await self._storage.set_last_run_at(finished_at)
            self._last_run_at = finished_at
            self._last_error = None
            logger.info(
                f"✅ Pipeline run complete: {summary.articles_processed} articles, "
                f"{summary.claims_extracted} claims, {summary.sources_failed} failed sources"
            )
            return summary
        except Exception as e:
            self._last_error = str(e) or type(e).__name__
            logger.error(f"❌ Pipeline run aborted: {self._last_error}", exc_info=True)
            raise
        finally:
            self._is_running = False

    async def _process_feeds(self, summary: RunSummary) -> List[Claim]:
        semaphore = asyncio.Semaphore(self._config.max_concurrency)
        budget = {"items": self._config.max_items_per_run}

        async def bounded(feed: FeedSource) -> List[Claim]:
            async with semaphore:
                return await self._process_feed(feed, summary, budget)

        results = await asyncio.gather(
            *(bounded(feed) for feed in self._config.feeds), return_exceptions=True
        )

        new_claims: List[Claim] = []
        for result in results:
            if isinstance(result, BaseException):
                raise result
            new_claims.extend(result)
        return new_claims

    async def _process_feed(
        self, feed: FeedSource, summary: RunSummary, budget: Dict[str, int]
    ) -> List[Claim]:
        try:
            raw_items = await self._feed_reader.fetch(feed)
        except TransientExternalError as e:
            logger.warning(f"⚠️ Skipping feed {feed.name}: {e}")
            summary.sources_failed += 1
            return []

        source = await self.ensure_source(feed.name, feed.domain)
        logger.info(f"📥 {feed.name}: {len(raw_items)} entries")

        claims: List[Claim] = []
        for raw in raw_items:
            if budget["items"] <= 0:
                break
            item = await self._ingest(raw, source, feed)
            if item is None:
                continue
            budget["items"] -= 1
            summary.articles_processed += 1
            self._articles_processed += 1

            created = await self._process_item(item, source)
            summary.claims_extracted += len(created)
            self._claims_extracted += len(created)
            claims.extend(created)
        return claims

    async def ensure_source(self, name: str, domain: str) -> Source:
        """Find a source by domain or display name, creating a publisher if absent."""
        source = await self._storage.get_source_by_domain(domain)
        if source is not None:
            return source
        for existing in await self._storage.get_sources():
            if existing.display_name.lower() == name.lower():
                return existing
        source = await self._storage.create_source(Source(
            type=SourceType.PUBLISHER,
            handle_or_domain=domain,
            display_name=name,
            logo_url=f"https://www.google.com/s2/favicons?domain={domain}&sz=128",
            metadata={"rss_source": True},
        ))
        logger.info(f"✅ Created source {name} ({domain})")
        return source

    async def _ingest(self, raw: RawItem, source: Source, feed: FeedSource) -> Optional[Item]:
        content = normalize(raw)
        if content is None:
            logger.debug(f"⚠️ Empty entry skipped from {feed.name}")
            return None
        if await self._storage.get_item_by_fingerprint(content.fingerprint) is not None:
            return None
        try:
            return await self._storage.create_item(Item(
                source_id=source.id,
                url=content.url,
                title=content.title,
                raw_text=content.text,
                content_hash=content.fingerprint,
                item_type=content.kind,
                published_at=raw.published_at,
                metadata={"feed": feed.name},
            ))
        except DuplicateContentError:
            return None

    async def _process_item(self, item: Item, source: Source) -> List[Claim]:
        try:
            candidates = await self._extractor.extract(item)
        except TransientExternalError as e:
            logger.warning(f"⚠️ Extraction failed for item {item.id[:8]}: {e}")
            return []

        existing = {c.claim_text.lower() for c in await self._storage.get_claims_by_item(item.id)}
        created: List[Claim] = []
        for candidate in candidates:
            if candidate.claim_text.lower() in existing:
                continue
            existing.add(candidate.claim_text.lower())
            claim = await self._create_claim(candidate, item, source)
            if claim is None:
                continue
            created.append(claim)
            await self._verify_claim(claim, item, source)
        return created

    async def _create_claim(self, candidate: CandidateClaim, item: Item, source: Source) -> Optional[Claim]:
        try:
            claim = Claim(
                source_id=source.id,
                item_id=item.id,
                asserted_at=item.published_at or item.ingested_at,
                **candidate.model_dump(),
            )
        except ValueError as e:
            logger.warning(f"⚠️ Dropped invalid claim for item {item.id[:8]}: {e}")
            return None
        return await self._storage.create_claim(claim)

    async def _verify_claim(self, claim: Claim, item: Item, source: Source) -> None:
        await self._storage.update_claim_status(claim.id, ClaimStatus.NEEDS_EVIDENCE)
        try:
            gathered = await self._gatherer.gather(claim, article=item, publisher=source.display_name)
            stored = [
                await self._storage.create_evidence(EvidenceItem.from_gathered(claim.id, evidence))
                for evidence in gathered
            ]
            await record_verdict(self._storage, self._synthesizer, claim, stored)
        except (TransientExternalError, ValidationFailure) as e:
            logger.warning(f"⚠️ Verification skipped for claim {claim.id[:8]}: {e}")
            return
        await self._storage.update_claim_status(claim.id, ClaimStatus.REVIEWED)

    def start_scheduler(self, interval_hours: Optional[float] = None) -> bool:
        """Run a batch now and then every interval. Returns False if already scheduled."""
        if self._scheduler_task is not None and not self._scheduler_task.done():
            return False
        interval = interval_hours if interval_hours is not None else self._config.pipeline_interval_hours
        self._scheduler_task = asyncio.create_task(self._schedule_loop(interval * 3600))
        logger.info(f"⏰ Pipeline scheduler started (every {interval}h)")
        return True

    async def stop_scheduler(self) -> bool:
        """Cancel the scheduler. Returns False if it was not running."""
        task, self._scheduler_task = self._scheduler_task, None
        if task is None or task.done():
            return False
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("⏰ Pipeline scheduler stopped")
        return True

    async def _schedule_loop(self, interval_seconds: float) -> None:
        while True:
            try:
                await self.run()
            except FatalPipelineError as e:
                logger.error(f"❌ Scheduled run failed: {e}")
            await asyncio.sleep(interval_seconds)


