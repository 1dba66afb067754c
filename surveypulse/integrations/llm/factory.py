"""LLM provider factory."""

from surveypulse.core.config import settings
from surveypulse.integrations.llm.base import LLMProvider, LLMProviderType


def get_llm_provider(
    provider_type: LLMProviderType | str | None = None,
) -> LLMProvider:
    """
    Get LLM provider instance based on configuration.

    Args:
        provider_type: Provider type to use. If None, uses config settings.

    Returns:
        LLMProvider instance

    Raises:
        ValueError: If provider is not configured or invalid
    """
    if provider_type is None:
        provider_type = settings.llm_provider

    if isinstance(provider_type, str):
        provider_type = LLMProviderType(provider_type.lower())

    if provider_type == LLMProviderType.GEMINI:
        from surveypulse.integrations.llm.gemini_provider import GeminiProvider

        if not settings.gemini_api_key:
            raise ValueError("GEMINI_API_KEY environment variable not set")
        return GeminiProvider(
            api_key=settings.gemini_api_key,
            model=settings.gemini_model,
            max_tokens=settings.llm_max_tokens,
        )

    if provider_type == LLMProviderType.OPENAI:
        from surveypulse.integrations.llm.openai_provider import OpenAIProvider

        if not settings.openai_api_key:
            raise ValueError("OPENAI_API_KEY environment variable not set")
        return OpenAIProvider(
            api_key=settings.openai_api_key,
            model=settings.openai_model,
            max_tokens=settings.llm_max_tokens,
        )

    if provider_type == LLMProviderType.ANTHROPIC:
        from surveypulse.integrations.llm.anthropic_provider import AnthropicProvider

        if not settings.anthropic_api_key:
            raise ValueError("ANTHROPIC_API_KEY environment variable not set")
        return AnthropicProvider(
            api_key=settings.anthropic_api_key,
            model=settings.anthropic_model,
            max_tokens=settings.llm_max_tokens,
        )

    raise ValueError(f"Unknown LLM provider: {provider_type}")


def get_available_providers() -> list[LLMProviderType]:
    """Get list of available (configured) LLM providers."""
    available = []

    if settings.gemini_api_key:
        available.append(LLMProviderType.GEMINI)
    if settings.openai_api_key:
        available.append(LLMProviderType.OPENAI)
    if settings.anthropic_api_key:
        available.append(LLMProviderType.ANTHROPIC)

    return available
