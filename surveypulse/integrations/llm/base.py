"""Base LLM provider interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum


class LLMProviderType(str, Enum):
    """Supported LLM providers."""

    GEMINI = "gemini"
    OPENAI = "openai"
    ANTHROPIC = "anthropic"


class LLMProviderError(Exception):
    """Raised when a provider call fails."""


@dataclass
class LLMResponse:
    """Response from LLM provider."""

    text: str
    provider: LLMProviderType
    model: str
    input_tokens: int = 0
    output_tokens: int = 0


class LLMProvider(ABC):
    """Abstract base class for LLM providers."""

    provider_type: LLMProviderType

    @abstractmethod
    async def complete(
        self,
        prompt: str,
        max_tokens: int | None = None,
        system_prompt: str | None = None,
    ) -> LLMResponse:
        """
        Complete a prompt.

        Args:
            prompt: User prompt
            max_tokens: Output token cap, provider default when None
            system_prompt: Optional system instructions

        Returns:
            LLMResponse with the generated text

        Raises:
            LLMProviderError: If the provider call fails
        """
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Check if the provider is available."""
        pass
