"""Factory for creating and managing search providers."""

import logging
from typing import Dict, Optional, Type

from ...domain.ports.search_provider import SearchProvider
from .duckduckgo_adapter import DuckDuckGoSearchAdapter
from .wikipedia_adapter import WikipediaSearchAdapter

logger = logging.getLogger(__name__)


class SearchProviderFactory:
    """Factory for creating and managing search providers.

    Maintains a registry of provider classes and the lifecycle of the
    active instances.
    """

    def __init__(self):
        """Initialize the factory."""
        self._provider_registry: Dict[str, Type[SearchProvider]] = {}
        self._active_providers: Dict[str, SearchProvider] = {}

        # Register default providers
        self.register_provider("duckduckgo", DuckDuckGoSearchAdapter)
        self.register_provider("wikipedia", WikipediaSearchAdapter)

    def register_provider(self, name: str, provider_class: Type[SearchProvider]) -> None:
        """Register a new provider class.

        Raises:
            ValueError: If the name is already registered
        """
        if name in self._provider_registry:
            raise ValueError(f"Provider {name} already registered")
        self._provider_registry[name] = provider_class

    async def create_provider(self, name: str, **config) -> SearchProvider:
        """Create and initialize a provider, reusing an active instance.

        Raises:
            ValueError: If provider not registered
        """
        if name in self._active_providers:
            return self._active_providers[name]
        if name not in self._provider_registry:
            raise ValueError(f"Provider {name} not registered")

        provider = self._provider_registry[name](**config)
        await provider.initialize()
        self._active_providers[name] = provider
        logger.info(f"✅ Search provider ready: {provider.provider_name}")
        return provider

    def get_provider(self, name: str) -> Optional[SearchProvider]:
        return self._active_providers.get(name)

    @property
    def available_providers(self) -> Dict[str, bool]:
        """Registered providers and whether an instance is active."""
        return {name: name in self._active_providers for name in self._provider_registry}

    async def shutdown_all(self) -> None:
        """Shutdown all active providers."""
        for provider in self._active_providers.values():
            await provider.shutdown()
        self._active_providers.clear()
