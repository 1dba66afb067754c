"""OpenAI LLM provider implementation."""

import logging

from openai import AsyncOpenAI

from surveypulse.integrations.llm.base import (
    LLMProvider,
    LLMProviderError,
    LLMProviderType,
    LLMResponse,
)

logger = logging.getLogger(__name__)


class OpenAIProvider(LLMProvider):
    """OpenAI API provider."""

    provider_type = LLMProviderType.OPENAI

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        max_tokens: int = 400,
    ):
        self._client = AsyncOpenAI(api_key=api_key)
        self._model = model
        self._max_tokens = max_tokens

    async def complete(
        self,
        prompt: str,
        max_tokens: int | None = None,
        system_prompt: str | None = None,
    ) -> LLMResponse:
        """Complete a prompt using OpenAI."""
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=messages,
                max_tokens=max_tokens or self._max_tokens,
                temperature=0.2,
            )
        except Exception as e:
            logger.error(f"OpenAI completion error: {e}")
            raise LLMProviderError(str(e)) from e

        content = response.choices[0].message.content or ""
        usage = response.usage

        return LLMResponse(
            text=content.strip(),
            provider=self.provider_type,
            model=self._model,
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
        )

    async def health_check(self) -> bool:
        """Check OpenAI API availability."""
        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=[{"role": "user", "content": "ping"}],
                max_tokens=5,
            )
            return bool(response.choices)
        except Exception as e:
            logger.error(f"OpenAI health check failed: {e}")
            return False
