"""Protocol for language-model collaborators."""

from typing import Any, Dict, Protocol


class LanguageModelProvider(Protocol):
    """Single request/response capability returning structured data.

    Implementations raise ModelProviderError when the provider is
    unavailable or the response is not valid JSON.
    """

    async def initialize(self) -> None:
        """Initialize the provider and verify access."""
        ...

    async def shutdown(self) -> None:
        """Clean up resources."""
        ...

    async def generate_structured(
        self,
        system_prompt: str,
        user_prompt: str,
        schema_name: str,
    ) -> Dict[str, Any]:
        """Send a prompt and return the decoded JSON object."""
        ...

    @property
    def provider_name(self) -> str:
        """Get the provider name."""
        ...

    @property
    def model_name(self) -> str:
        """Model identity recorded on verdicts."""
        ...

    @property
    def is_available(self) -> bool:
        """Check if the provider is available and ready."""
        ...


