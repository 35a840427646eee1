"""Gemini provider using google-genai SDK with native async."""

import logging
import os
import time
from collections.abc import AsyncIterator

from google import genai
from google.genai import types as genai_types

from agora.providers.base import AIProvider, ChatMessage, ChatOptions, ProviderError
from agora.providers.retry import with_retry

logger = logging.getLogger(__name__)


def _to_gemini(messages: list[ChatMessage]) -> tuple[str | None, list[genai_types.Content]]:
    """Return (system_instruction, contents). Assistant turns map to the 'model' role."""
    system = next((m.content for m in messages if m.role == "system"), None)
    contents = [
        genai_types.Content(
            role="model" if m.role == "assistant" else "user",
            parts=[genai_types.Part(text=m.content)],
        )
        for m in messages
        if m.role != "system"
    ]
    return system, contents


class GeminiProvider(AIProvider):
    """Google Gemini provider via google-genai SDK."""

    def __init__(self, model: str, api_key_env: str = "GOOGLE_API_KEY") -> None:
        self._model = model
        api_key = os.environ.get(api_key_env, "").strip()
        if not api_key:
            raise ProviderError(self.name(), f"Missing API key: {api_key_env}. Add it to .env or export it.")
        self._client = genai.Client(api_key=api_key)

    def name(self) -> str:
        return "gemini"

    def model_string(self) -> str:
        return self._model

    def _config(self, system: str | None, options: ChatOptions | None) -> genai_types.GenerateContentConfig:
        options = options or ChatOptions()
        return genai_types.GenerateContentConfig(
            system_instruction=system,
            temperature=options.temperature,
            max_output_tokens=options.max_tokens,
        )

    async def chat(self, messages: list[ChatMessage], options: ChatOptions | None = None) -> str:
        system, contents = _to_gemini(messages)
        start = time.monotonic()
        try:
            response = await with_retry(
                lambda: self._client.aio.models.generate_content(
                    model=self._model,
                    contents=contents,
                    config=self._config(system, options),
                )
            )
        except Exception as exc:
            raise ProviderError(self.name(), f"API call failed: {exc}") from exc

        if not response.text:
            raise ProviderError(self.name(), "Empty response text")

        logger.info(
            "Gemini %s: %.2fs, %s tokens",
            self._model,
            time.monotonic() - start,
            response.usage_metadata.total_token_count if response.usage_metadata else None,
        )
        return response.text

    async def stream(self, messages: list[ChatMessage], options: ChatOptions | None = None) -> AsyncIterator[str]:
        system, contents = _to_gemini(messages)
        try:
            chunks = await with_retry(
                lambda: self._client.aio.models.generate_content_stream(
                    model=self._model,
                    contents=contents,
                    config=self._config(system, options),
                )
            )
            async for chunk in chunks:
                if chunk.text:
                    yield chunk.text
        except ProviderError:
            raise
        except Exception as exc:
            raise ProviderError(self.name(), f"Stream failed: {exc}") from exc
