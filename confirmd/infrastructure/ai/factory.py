"""Factory for creating and managing language model providers."""

import os
from typing import Dict, Optional, Type

from ...domain.ports.language_model import LanguageModelProvider
from .openai_adapter import OpenAIAdapter, OpenAIConfig


class LanguageModelFactory:
    """Factory for creating and managing language model providers."""

    def __init__(self):
        """Initialize the factory."""
        self._providers: Dict[str, Type[LanguageModelProvider]] = {}
        self._instances: Dict[str, LanguageModelProvider] = {}

        # Register default providers
        self.register_provider("openai", OpenAIAdapter)

    def register_provider(self, name: str, provider_class: Type[LanguageModelProvider]) -> None:
        """Register a new provider class.

        Args:
            name: Provider name
            provider_class: Provider class
        """
        self._providers[name] = provider_class

    async def create_provider(self, name: str, **kwargs) -> LanguageModelProvider:
        """Create and initialize a provider instance.

        Args:
            name: Provider name
            **kwargs: Provider-specific configuration

        Returns:
            Initialized provider instance

        Raises:
            ValueError: If provider not found
            ConfigurationError: If the provider lacks required credentials
        """
        if name not in self._providers:
            raise ValueError(f"Provider '{name}' not found")

        if name not in self._instances:
            if name == "openai":
                config = OpenAIConfig(
                    api_key=kwargs.pop("api_key", None) or os.getenv("OPENAI_API_KEY", ""),
                    **kwargs,
                )
                provider = self._providers[name](config=config)
            else:
                provider = self._providers[name](**kwargs)

            await provider.initialize()
            self._instances[name] = provider

        return self._instances[name]

    def get_provider(self, name: str) -> Optional[LanguageModelProvider]:
        """Get an existing provider instance, or None."""
        return self._instances.get(name)

    @property
    def available_providers(self) -> Dict[str, bool]:
        """Registered providers and whether an instance is active."""
        return {name: name in self._instances for name in self._providers}

    async def shutdown(self) -> None:
        """Shutdown all provider instances."""
        for provider in self._instances.values():
            await provider.shutdown()
        self._instances.clear()


# Global factory instance
_factory: Optional[LanguageModelFactory] = None


def get_factory() -> LanguageModelFactory:
    """Get the global factory instance."""
    global _factory
    if _factory is None:
        _factory = LanguageModelFactory()
    return _factory
