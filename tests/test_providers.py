"""Tests for the SDK-backed providers (SDK clients mocked)."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from agora.providers import retry
from agora.providers.anthropic import AnthropicProvider, _to_anthropic
from agora.providers.base import ChatMessage, ChatOptions, ProviderError
from agora.providers.gemini import _to_gemini
from agora.providers.openai_provider import OpenAIProvider


@pytest.fixture(autouse=True)
def no_backoff(monkeypatch):
    async def _no_sleep(_delay: float) -> None:
        return None

    monkeypatch.setattr(retry.asyncio, "sleep", _no_sleep)


async def _aiter(items):
    for item in items:
        yield item


MESSAGES = [
    ChatMessage(role="system", content="Be brief.", cache=True),
    ChatMessage(role="user", content="Shared context", cache=True),
    ChatMessage(role="user", content="Your turn"),
]


def test_to_anthropic_carries_cache_control():
    system, turns = _to_anthropic(MESSAGES)

    assert system == [{"type": "text", "text": "Be brief.", "cache_control": {"type": "ephemeral"}}]
    assert turns[0] == {
        "role": "user",
        "content": [{"type": "text", "text": "Shared context", "cache_control": {"type": "ephemeral"}}],
    }
    assert turns[1] == {"role": "user", "content": "Your turn"}


def test_to_anthropic_without_cache_hints():
    system, turns = _to_anthropic([ChatMessage("system", "s"), ChatMessage("user", "u")])
    assert system == [{"type": "text", "text": "s"}]
    assert turns == [{"role": "user", "content": "u"}]


def test_to_gemini_splits_system_instruction():
    system, contents = _to_gemini(MESSAGES + [ChatMessage("assistant", "earlier")])
    assert system == "Be brief."
    assert [c.role for c in contents] == ["user", "user", "model"]
    assert contents[0].parts[0].text == "Shared context"


@pytest.fixture
def anthropic_provider(monkeypatch) -> AnthropicProvider:
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-test")
    provider = AnthropicProvider("claude-test")
    provider._client = MagicMock()
    return provider


async def test_anthropic_chat(anthropic_provider):
    anthropic_provider._client.messages.create = AsyncMock(
        return_value=SimpleNamespace(
            content=[SimpleNamespace(type="text", text="Hello")],
            usage=SimpleNamespace(input_tokens=3, output_tokens=1, cache_read_input_tokens=0),
        )
    )
    result = await anthropic_provider.chat(MESSAGES, ChatOptions(temperature=0.2, max_tokens=64))

    assert result == "Hello"
    kwargs = anthropic_provider._client.messages.create.call_args.kwargs
    assert kwargs["model"] == "claude-test"
    assert kwargs["max_tokens"] == 64
    assert kwargs["temperature"] == 0.2
    assert kwargs["system"][0]["cache_control"] == {"type": "ephemeral"}


async def test_anthropic_stream_yields_text_deltas(anthropic_provider):
    events = [
        SimpleNamespace(type="message_start"),
        SimpleNamespace(type="content_block_delta", delta=SimpleNamespace(type="text_delta", text="Hel")),
        SimpleNamespace(type="content_block_delta", delta=SimpleNamespace(type="text_delta", text="lo")),
        SimpleNamespace(type="message_stop"),
    ]
    anthropic_provider._client.messages.create = AsyncMock(return_value=_aiter(events))

    chunks = [c async for c in anthropic_provider.stream(MESSAGES)]

    assert chunks == ["Hel", "lo"]
    assert anthropic_provider._client.messages.create.call_args.kwargs["stream"] is True


async def test_anthropic_chat_failure_wrapped(anthropic_provider):
    anthropic_provider._client.messages.create = AsyncMock(side_effect=RuntimeError("down"))
    with pytest.raises(ProviderError, match=r"\[anthropic\] API call failed: down"):
        await anthropic_provider.chat(MESSAGES)
    # one attempt plus three retries
    assert anthropic_provider._client.messages.create.await_count == 4


@pytest.fixture
def openai_provider(monkeypatch) -> OpenAIProvider:
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    provider = OpenAIProvider("gpt-test")
    provider._client = MagicMock()
    return provider


async def test_openai_chat(openai_provider):
    openai_provider._client.chat.completions.create = AsyncMock(
        return_value=SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content="Hi there"))],
            usage=SimpleNamespace(total_tokens=7),
        )
    )
    assert await openai_provider.chat(MESSAGES) == "Hi there"
    sent = openai_provider._client.chat.completions.create.call_args.kwargs["messages"]
    assert sent[0] == {"role": "system", "content": "Be brief."}


async def test_openai_empty_response(openai_provider):
    openai_provider._client.chat.completions.create = AsyncMock(
        return_value=SimpleNamespace(choices=[], usage=None)
    )
    with pytest.raises(ProviderError, match="Empty response"):
        await openai_provider.chat(MESSAGES)


async def test_openai_stream(openai_provider):
    chunks = [
        SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content="a"))]),
        SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=None))]),
        SimpleNamespace(choices=[]),
        SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content="b"))]),
    ]
    openai_provider._client.chat.completions.create = AsyncMock(return_value=_aiter(chunks))

    assert [c async for c in openai_provider.stream(MESSAGES)] == ["a", "b"]


async def test_openai_stream_failure_wrapped(openai_provider):
    openai_provider._client.chat.completions.create = AsyncMock(side_effect=RuntimeError("boom"))
    with pytest.raises(ProviderError, match="Stream failed: boom"):
        [c async for c in openai_provider.stream(MESSAGES)]


def test_openai_missing_key(monkeypatch):
    monkeypatch.delenv("DEEPSEEK_API_KEY", raising=False)
    with pytest.raises(ProviderError, match=r"\[deepseek\] Missing API key: DEEPSEEK_API_KEY"):
        OpenAIProvider("deepseek-chat", "DEEPSEEK_API_KEY", "https://api.deepseek.com", "deepseek")
