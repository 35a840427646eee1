"""Anthropic Claude provider using anthropic SDK with native async."""

import logging
import os
import time
from collections.abc import AsyncIterator
from typing import Any

import anthropic as anthropic_sdk

from agora.providers.base import AIProvider, ChatMessage, ChatOptions, ProviderError
from agora.providers.retry import with_retry

logger = logging.getLogger(__name__)

_EPHEMERAL = {"type": "ephemeral"}


def _to_anthropic(messages: list[ChatMessage]) -> tuple[list[dict[str, Any]], list[dict[str, Any]]]:
    """Split messages into system blocks and turn messages, carrying cache_control hints."""
    system_blocks: list[dict[str, Any]] = []
    turns: list[dict[str, Any]] = []
    for msg in messages:
        block: dict[str, Any] = {"type": "text", "text": msg.content}
        if msg.cache:
            block["cache_control"] = _EPHEMERAL
        if msg.role == "system":
            system_blocks.append(block)
        elif msg.cache:
            turns.append({"role": msg.role, "content": [block]})
        else:
            turns.append({"role": msg.role, "content": msg.content})
    return system_blocks, turns


class AnthropicProvider(AIProvider):
    """Anthropic Claude provider via anthropic SDK."""

    def __init__(self, model: str, api_key_env: str = "ANTHROPIC_API_KEY") -> None:
        self._model = model
        api_key = os.environ.get(api_key_env, "").strip()
        if not api_key:
            raise ProviderError(self.name(), f"Missing API key: {api_key_env}. Add it to .env or export it.")
        self._client = anthropic_sdk.AsyncAnthropic(api_key=api_key)

    def name(self) -> str:
        return "anthropic"

    def model_string(self) -> str:
        return self._model

    def _request(self, messages: list[ChatMessage], options: ChatOptions | None) -> dict[str, Any]:
        options = options or ChatOptions()
        system_blocks, turns = _to_anthropic(messages)
        request: dict[str, Any] = {
            "model": self._model,
            "messages": turns,
            "max_tokens": options.max_tokens,
            "temperature": options.temperature,
        }
        if system_blocks:
            request["system"] = system_blocks
        return request

    async def chat(self, messages: list[ChatMessage], options: ChatOptions | None = None) -> str:
        request = self._request(messages, options)
        start = time.monotonic()
        try:
            response = await with_retry(lambda: self._client.messages.create(**request))
        except Exception as exc:
            raise ProviderError(self.name(), f"API call failed: {exc}") from exc

        text_blocks = [b.text for b in response.content if b.type == "text"]
        if not text_blocks:
            raise ProviderError(self.name(), "No text blocks in response")

        usage = response.usage
        logger.info(
            "Anthropic %s: %.2fs, %s in / %s out tokens, %s cache-read",
            self._model,
            time.monotonic() - start,
            usage.input_tokens if usage else None,
            usage.output_tokens if usage else None,
            getattr(usage, "cache_read_input_tokens", None),
        )
        return "\n".join(text_blocks)

    async def stream(self, messages: list[ChatMessage], options: ChatOptions | None = None) -> AsyncIterator[str]:
        request = self._request(messages, options)
        try:
            events = await with_retry(lambda: self._client.messages.create(**request, stream=True))
            async for event in events:
                if event.type == "content_block_delta" and event.delta.type == "text_delta":
                    yield event.delta.text
        except ProviderError:
            raise
        except Exception as exc:
            raise ProviderError(self.name(), f"Stream failed: {exc}") from exc
