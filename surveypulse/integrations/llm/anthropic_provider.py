"""Anthropic (Claude) LLM provider implementation."""

import logging

from anthropic import AsyncAnthropic

from surveypulse.integrations.llm.base import (
    LLMProvider,
    LLMProviderError,
    LLMProviderType,
    LLMResponse,
)

logger = logging.getLogger(__name__)


class AnthropicProvider(LLMProvider):
    """Anthropic Claude API provider."""

    provider_type = LLMProviderType.ANTHROPIC

    def __init__(
        self,
        api_key: str,
        model: str = "claude-3-haiku-20240307",
        max_tokens: int = 400,
    ):
        self._client = AsyncAnthropic(api_key=api_key)
        self._model = model
        self._max_tokens = max_tokens

    async def complete(
        self,
        prompt: str,
        max_tokens: int | None = None,
        system_prompt: str | None = None,
    ) -> LLMResponse:
        """Complete a prompt using Claude."""
        kwargs = {}
        if system_prompt:
            kwargs["system"] = system_prompt

        try:
            response = await self._client.messages.create(
                model=self._model,
                max_tokens=max_tokens or self._max_tokens,
                messages=[{"role": "user", "content": prompt}],
                **kwargs,
            )
        except Exception as e:
            logger.error(f"Anthropic completion error: {e}")
            raise LLMProviderError(str(e)) from e

        content = ""
        if response.content and len(response.content) > 0:
            content = response.content[0].text

        return LLMResponse(
            text=content.strip(),
            provider=self.provider_type,
            model=self._model,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
        )

    async def health_check(self) -> bool:
        """Check Anthropic API availability."""
        try:
            response = await self._client.messages.create(
                model=self._model,
                max_tokens=10,
                messages=[{"role": "user", "content": "ping"}],
            )
            return bool(response.content)
        except Exception as e:
            logger.error(f"Anthropic health check failed: {e}")
            return False
