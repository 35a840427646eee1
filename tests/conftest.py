"""Shared pytest fixtures."""

import asyncio
from collections.abc import AsyncIterator
from pathlib import Path

import pytest

from agora.history import HistoryStore
from agora.providers.base import AIProvider, ChatMessage, ChatOptions
from config.config_loader import AppConfig, DefaultsConfig
from config.schema import AgentDefinition, RoundtableConfig

HANG = object()  # script entry: never finish (until cancelled)


class FakeProvider(AIProvider):
    """Scripted test double AIProvider.

    Each call consumes the next script entry (the last one repeats):
    a tuple/list of chunks to stream, an exception to raise, or HANG.
    """

    def __init__(self, model: str = "fake-model", *scripts, delay: float = 0.0) -> None:
        self._model = model
        self._scripts = list(scripts) or [("Fake ", "response")]
        self._delay = delay
        self.calls: list[list[ChatMessage]] = []
        self.options: list[ChatOptions | None] = []

    def name(self) -> str:
        return "fake"

    def model_string(self) -> str:
        return self._model

    def _next(self, messages: list[ChatMessage], options: ChatOptions | None):
        script = self._scripts[min(len(self.calls), len(self._scripts) - 1)]
        self.calls.append(list(messages))
        self.options.append(options)
        return script

    async def chat(self, messages: list[ChatMessage], options: ChatOptions | None = None) -> str:
        script = self._next(messages, options)
        if isinstance(script, BaseException):
            raise script
        return "".join(script)

    async def stream(self, messages: list[ChatMessage], options: ChatOptions | None = None) -> AsyncIterator[str]:
        script = self._next(messages, options)
        if self._delay:
            await asyncio.sleep(self._delay)
        if script is HANG:
            await asyncio.Event().wait()
        if isinstance(script, BaseException):
            raise script
        for chunk in script:
            yield chunk


def make_agent(agent_id: str, model: str, role: str = "panelist", **overrides) -> AgentDefinition:
    fields = {
        "id": agent_id,
        "name": f"Agent {agent_id.upper()}",
        "role": role,
        "model": model,
        "system_prompt": f"You are {agent_id}. Topic: {{{{topic}}}}",
    }
    fields.update(overrides)
    return AgentDefinition(**fields)


def resolver_for(*providers: FakeProvider):
    """Resolver that maps each provider's model string to the provider."""
    by_model = {p.model_string(): p for p in providers}
    return by_model.__getitem__


@pytest.fixture
def providers() -> dict[str, FakeProvider]:
    return {
        "a": FakeProvider("gpt-a", ("A says ", "one"), ("A says ", "two")),
        "b": FakeProvider("gpt-b", ("B says ", "one"), ("B says ", "two")),
        "s": FakeProvider("gpt-s", ("Final ", "answer")),
    }


@pytest.fixture
def resolver(providers):
    return resolver_for(*providers.values())


@pytest.fixture
def roundtable_config() -> RoundtableConfig:
    return RoundtableConfig(
        name="Test Roundtable",
        description="Two panelists and a synthesizer",
        max_rounds=2,
        agents=[
            make_agent("a", "gpt-a"),
            make_agent("b", "gpt-b"),
            make_agent("s", "gpt-s", role="synthesizer"),
        ],
    )


@pytest.fixture
def sample_app_config(tmp_path: Path) -> AppConfig:
    return AppConfig(
        defaults=DefaultsConfig(
            model="gpt-a",
            preset="default",
            agent_timeout_sec=5,
            history_db=tmp_path / "agora.db",
            user_presets_dir=tmp_path / "presets",
        ),
    )


@pytest.fixture
def history_store() -> HistoryStore:
    return HistoryStore(":memory:")
