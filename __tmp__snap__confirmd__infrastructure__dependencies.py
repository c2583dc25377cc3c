"""Dependency injection configuration for hexagonal architecture."""

import asyncio
import logging
from functools import lru_cache
from typing import Any, Dict, Optional

from fastapi import Depends

from ..config import PipelineConfig, load_config
from ..domain.errors import ConfirmdError
from ..domain.ports.content_fetcher import ContentFetcher
from ..domain.ports.feed_reader import FeedReader
from ..domain.ports.language_model import LanguageModelProvider
from ..domain.ports.search_provider import SearchProvider
from ..domain.ports.storage import StorageProvider
from ..domain.services.claim_extractor import LanguageModelClaimExtractor, PatternClaimExtractor
from ..domain.services.deep_verifier import DEEP_PROMPT_VERSION, DEEP_VERDICT_SYSTEM_PROMPT, DeepVerifier
from ..domain.services.evidence_gatherer import EvidenceGatherer
from ..domain.services.pipeline_orchestrator import VerificationPipeline
from ..domain.services.resolution_engine import ResolutionEngine
from ..domain.services.source_scoring import SourceScorer
from ..domain.services.story_grouper import StoryGrouper
from ..domain.services.verdict_synthesizer import (
    DeterministicVerdictSynthesizer,
    LanguageModelVerdictSynthesizer,
)
from .ai.factory import LanguageModelFactory
from .feeds.rss_reader import RSSFeedReader, RSSReaderConfig
from .http.content_fetcher import HttpxContentFetcher
from .search.factory import SearchProviderFactory
from .storage.memory_storage import InMemoryStorage
from .storage.seed import seed_initial_data

logger = logging.getLogger(__name__)


class ServiceContainer:
    """Service container for dependency injection.

    Adapters are built eagerly; anything that needs the event loop (search
    and model providers, fixture seeding) is set up by ``initialize``.
    Extraction and synthesis strategies are chosen once, here, from the
    presence of a language model.
    """

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        storage: Optional[StorageProvider] = None,
        feed_reader: Optional[FeedReader] = None,
        fetcher: Optional[ContentFetcher] = None,
        search: Optional[SearchProvider] = None,
        language_model: Optional[LanguageModelProvider] = None,
    ):
        """Initialize service container.

        Any collaborator passed in is used as-is instead of the default adapter.
        """
        self.config = config or load_config()
        self._storage = storage or InMemoryStorage(self.config.credibility_bands)
        self._feed_reader = feed_reader or RSSFeedReader(RSSReaderConfig(timeout=self.config.feed_timeout))
        self._fetcher = fetcher or HttpxContentFetcher(timeout=self.config.fetch_timeout)
        self._search = search
        self._language_model = language_model
        self._search_factory = SearchProviderFactory()
        self._model_factory = LanguageModelFactory()
        self._services: Dict[str, Any] = {}
        self._initialized = False
        self._lock = asyncio.Lock()

    async def initialize(self) -> None:
        """Set up providers, seed data and wire domain services. Idempotent."""
        async with self._lock:
            if self._initialized:
                return
            logger.info("🔧 Setting up service container...")

            if self.config.seed_data:
                stats = await self._storage.get_pipeline_stats()
                if stats.total_sources == 0:
                    await seed_initial_data(self._storage)

            if self._search is None:
                self._search = await self._setup_search_provider()
            if self._language_model is None:
                self._language_model = await self._setup_language_model()

            self._services = self._build_services()
            self._initialized = True
            logger.info("✅ Service container setup completed")

    async def _setup_search_provider(self) -> Optional[SearchProvider]:
        name = self.config.search_provider
        if not self.config.web_search_enabled or name == "none":
            logger.info("🔍 Web search disabled; evidence comes from source articles only")
            return None
        try:
            return await self._search_factory.create_provider(name)
        except (ConfirmdError, ConnectionError, ValueError) as e:
            logger.warning(f"⚠️ Failed to set up search provider {name}: {e}")
            return None

    async def _setup_language_model(self) -> Optional[LanguageModelProvider]:
        if self.config.simulation_mode:
            logger.info("🎭 No OPENAI_API_KEY configured; running in simulation mode")
            return None
        try:
            return await self._model_factory.create_provider(
                "openai", api_key=self.config.openai_api_key, model=self.config.model
            )
        except ConfirmdError as e:
            logger.warning(f"⚠️ Failed to set up language model, using simulation mode: {e}")
            return None

    def _build_services(self) -> Dict[str, Any]:
        config = self.config
        deterministic = DeterministicVerdictSynthesizer(config.verdict_bands)
        pattern = PatternClaimExtractor()

        if self._language_model is not None:
            extractor = LanguageModelClaimExtractor(self._language_model, fallback=pattern)
            synthesizer = LanguageModelVerdictSynthesizer(self._language_model, fallback=deterministic)
            deep_synthesizer = synthesizer.with_prompt(DEEP_VERDICT_SYSTEM_PROMPT, DEEP_PROMPT_VERSION)
        else:
            extractor = pattern
            synthesizer = deterministic
            deep_synthesizer = deterministic

        gatherer = EvidenceGatherer(
            self._search,
            self._fetcher,
            synthesizer,
            max_results=config.web_search_max_results,
            web_search_enabled=config.web_search_enabled,
            verify_reachability=config.verify_evidence_reachability,
        )
        grouper = StoryGrouper(self._storage)
        resolution_engine = ResolutionEngine(self._storage)
        scorer = SourceScorer(self._storage)
        deep_verifier = DeepVerifier(self._storage, gatherer, deep_synthesizer, config.deep_verify)
        pipeline = VerificationPipeline(
            self._storage,
            self._feed_reader,
            extractor,
            gatherer,
            synthesizer,
            grouper,
            config=config,
            resolution_engine=resolution_engine,
            scorer=scorer,
        )
        return {
            'storage': self._storage,
            'evidence_gatherer': gatherer,
            'verdict_synthesizer': synthesizer,
            'story_grouper': grouper,
            'resolution_engine': resolution_engine,
            'source_scorer': scorer,
            'deep_verifier': deep_verifier,
            'pipeline': pipeline,
        }

    async def shutdown(self) -> None:
        """Stop the scheduler and release network clients."""
        pipeline = self._services.get('pipeline')
        if pipeline is not None:
            await pipeline.stop_scheduler()
        await self._search_factory.shutdown_all()
        await self._model_factory.shutdown()
        await self._feed_reader.close()
        await self._fetcher.close()
        logger.info("👋 Service container shut down")

    def get(self, service_name: str) -> Any:
        """Get a service by name.

        Raises:
            KeyError: If service not found (or the container is not initialized)
        """
        if service_name not in self._services:
            raise KeyError(f"Service '{service_name}' not found")
        return self._services[service_name]

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def search_provider_name(self) -> Optional[str]:
        return self._search.provider_name if self._search is not None else None

    @property
    def language_model_name(self) -> Optional[str]:
        return self._language_model.model_name if self._language_model is not None else None

    def get_storage(self) -> StorageProvider:
        return self.get('storage')

    def get_pipeline(self) -> VerificationPipeline:
        return self.get('pipeline')

    def get_deep_verifier(self) -> DeepVerifier:
        return self.get('deep_verifier')

    def get_resolution_engine(self) -> ResolutionEngine:
        return self.get('resolution_engine')

    def get_source_scorer(self) -> SourceScorer:
        return self.get('source_scorer')

    def get_evidence_gatherer(self) -> EvidenceGatherer:
        return self.get('evidence_gatherer')

    def get_verdict_synthesizer(self):
        return self.get('verdict_synthesizer')


# Global service container instance
@lru_cache()
def get_service_container() -> ServiceContainer:
    """Get global service container instance."""
    return ServiceContainer()


# Convenience functions for FastAPI dependency injection
async def get_container() -> ServiceContainer:
    """FastAPI dependency for the initialized service container."""
    container = get_service_container()
    await container.initialize()
    return container


def get_storage(container: ServiceContainer = Depends(get_container)) -> StorageProvider:
    """FastAPI dependency for the storage provider."""
    return container.get_storage()


def get_pipeline(container: ServiceContainer = Depends(get_container)) -> VerificationPipeline:
    """FastAPI dependency for the verification pipeline."""
    return container.get_pipeline()


def get_deep_verifier(container: ServiceContainer = Depends(get_container)) -> DeepVerifier:
    """FastAPI dependency for the deep verifier."""
    return container.get_deep_verifier()


