"""LLM Integration module.

Supports Gemini, OpenAI and Anthropic (Claude) for response analysis.
"""

from surveypulse.integrations.llm.base import (
    LLMProvider,
    LLMProviderError,
    LLMProviderType,
    LLMResponse,
)
from surveypulse.integrations.llm.factory import get_llm_provider

__all__ = [
    "LLMProvider",
    "LLMProviderError",
    "LLMProviderType",
    "LLMResponse",
    "get_llm_provider",
]
