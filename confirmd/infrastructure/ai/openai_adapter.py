"""OpenAI implementation of the language model provider interface."""

import json
import logging
from typing import Any, Dict, Optional

from openai import AsyncOpenAI, OpenAIError
from pydantic import BaseModel, Field

from ...domain.errors import ConfigurationError, ModelProviderError
from ...domain.services.verdict_synthesizer import clean_json_response

logger = logging.getLogger(__name__)


class OpenAIConfig(BaseModel):
    """Configuration for the OpenAI adapter."""

    api_key: str = Field(..., description="OpenAI API key")
    model: str = Field(default="gpt-4o-mini", description="Chat model to use")
    temperature: float = Field(default=0.2, description="Sampling temperature")
    max_tokens: int = Field(default=2000, description="Maximum tokens per response")
    timeout: float = Field(default=30.0, description="API timeout in seconds")


class OpenAIAdapter:
    """Chat completions in JSON mode, decoded into a dict."""

    def __init__(self, config: OpenAIConfig, client: Optional[AsyncOpenAI] = None):
        self._config = config
        self._client = client
        self._initialized = False

    async def initialize(self) -> None:
        """Create the API client.

        Raises:
            ConfigurationError: If no API key is configured
        """
        if not self._config.api_key:
            raise ConfigurationError("OPENAI_API_KEY is required for the language model provider")
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self._config.api_key, timeout=self._config.timeout)
        self._initialized = True
        logger.info(f"✅ OpenAI provider ready ({self._config.model})")

    async def shutdown(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None
        self._initialized = False

    async def generate_structured(
        self,
        system_prompt: str,
        user_prompt: str,
        schema_name: str,
    ) -> Dict[str, Any]:
        """Send a prompt and return the decoded JSON object.

        Raises:
            ModelProviderError: Provider unavailable or output not a JSON object
        """
        if self._client is None:
            raise ModelProviderError("Provider not initialized")

        try:
            response = await self._client.chat.completions.create(
                model=self._config.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                temperature=self._config.temperature,
                max_tokens=self._config.max_tokens,
                response_format={"type": "json_object"},
            )
        except OpenAIError as e:
            raise ModelProviderError(f"{schema_name} request failed: {e}") from e

        if not response.choices:
            raise ModelProviderError(f"{schema_name} response had no choices")
        content = response.choices[0].message.content or ""
        try:
            payload = json.loads(clean_json_response(content))
        except json.JSONDecodeError as e:
            raise ModelProviderError(f"{schema_name} response was not valid JSON: {e}") from e
        if not isinstance(payload, dict):
            raise ModelProviderError(f"{schema_name} response was not a JSON object")
        return payload

    @property
    def provider_name(self) -> str:
        return "OpenAI"

    @property
    def model_name(self) -> str:
        return self._config.model

    @property
    def is_available(self) -> bool:
        return self._initialized and self._client is not None
