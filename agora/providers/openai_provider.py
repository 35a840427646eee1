"""OpenAI provider using openai SDK with native async.

Also serves the OpenAI-compatible endpoints (xAI, DeepSeek, local Ollama)
through a custom base_url.
"""

import logging
import os
import time
from collections.abc import AsyncIterator
from typing import Any

from openai import AsyncOpenAI

from agora.providers.base import AIProvider, ChatMessage, ChatOptions, ProviderError
from agora.providers.retry import with_retry

logger = logging.getLogger(__name__)


class OpenAIProvider(AIProvider):
    """OpenAI (or OpenAI-compatible) provider via openai SDK."""

    def __init__(
        self,
        model: str,
        api_key_env: str | None = "OPENAI_API_KEY",
        base_url: str | None = None,
        provider_name: str = "openai",
    ) -> None:
        self._model = model
        self._provider_name = provider_name
        if api_key_env is None:
            # Local servers (Ollama) accept any key
            api_key = provider_name
        else:
            api_key = os.environ.get(api_key_env, "").strip()
            if not api_key:
                raise ProviderError(provider_name, f"Missing API key: {api_key_env}. Add it to .env or export it.")
        self._client = AsyncOpenAI(api_key=api_key, base_url=base_url)

    def name(self) -> str:
        return self._provider_name

    def model_string(self) -> str:
        return self._model

    def _request(self, messages: list[ChatMessage], options: ChatOptions | None) -> dict[str, Any]:
        options = options or ChatOptions()
        # OpenAI caches long prefixes automatically; the cache hint is not sent
        return {
            "model": self._model,
            "messages": [{"role": m.role, "content": m.content} for m in messages],
            "temperature": options.temperature,
            "max_tokens": options.max_tokens,
        }

    async def chat(self, messages: list[ChatMessage], options: ChatOptions | None = None) -> str:
        request = self._request(messages, options)
        start = time.monotonic()
        try:
            response = await with_retry(lambda: self._client.chat.completions.create(**request))
        except Exception as exc:
            raise ProviderError(self._provider_name, f"API call failed: {exc}") from exc

        choice = response.choices[0] if response.choices else None
        if not choice or not choice.message.content:
            raise ProviderError(self._provider_name, "Empty response content")

        logger.info(
            "%s %s: %.2fs, %s tokens",
            self._provider_name,
            self._model,
            time.monotonic() - start,
            response.usage.total_tokens if response.usage else None,
        )
        return choice.message.content

    async def stream(self, messages: list[ChatMessage], options: ChatOptions | None = None) -> AsyncIterator[str]:
        request = self._request(messages, options)
        try:
            chunks = await with_retry(lambda: self._client.chat.completions.create(**request, stream=True))
            async for chunk in chunks:
                delta = chunk.choices[0].delta.content if chunk.choices else None
                if delta:
                    yield delta
        except ProviderError:
            raise
        except Exception as exc:
            raise ProviderError(self._provider_name, f"Stream failed: {exc}") from exc
