"""Bounded invocation: one agent's streaming call under a hard time limit."""

import asyncio
import logging
from collections.abc import AsyncIterator, Callable

from agora.errors import AgentTimeoutError
from agora.providers.base import ChatMessage, ChatOptions
from agora.providers.router import ProviderResolver, get_provider
from config.schema import AgentDefinition

logger = logging.getLogger(__name__)

DEFAULT_AGENT_TIMEOUT_SEC = 120.0

# Fallbacks when an agent definition leaves temperature/max_tokens unset
PANELIST_DEFAULTS = ChatOptions(temperature=0.7, max_tokens=1024)
SYNTHESIZER_DEFAULTS = ChatOptions(temperature=0.3, max_tokens=2048)


def options_for(agent: AgentDefinition, defaults: ChatOptions) -> ChatOptions:
    return ChatOptions(
        temperature=agent.temperature if agent.temperature is not None else defaults.temperature,
        max_tokens=agent.max_tokens if agent.max_tokens is not None else defaults.max_tokens,
    )


async def stream_agent(
    agent: AgentDefinition,
    messages: list[ChatMessage],
    on_chunk: Callable[[str], None],
    timeout_sec: float = DEFAULT_AGENT_TIMEOUT_SEC,
    *,
    defaults: ChatOptions = PANELIST_DEFAULTS,
    resolver: ProviderResolver = get_provider,
) -> str:
    """Stream one agent call, firing on_chunk per fragment, and return the full text.

    Raises:
        AgentTimeoutError: If the stream does not finish within timeout_sec.
            Fragments already passed to on_chunk are not retracted. The
            provider stream is cancelled by asyncio.wait_for and closed
            locally; no separate cancel request is sent to the provider.
        Exception: Any provider failure, unchanged.
    """
    label = f"{agent.name} ({agent.model})"

    async def _collect() -> str:
        provider = resolver(agent.model)
        parts: list[str] = []
        async for chunk in provider.stream(messages, options_for(agent, defaults)):
            parts.append(chunk)
            on_chunk(chunk)
        return "".join(parts)

    try:
        return await asyncio.wait_for(_collect(), timeout=timeout_sec)
    except TimeoutError as exc:
        logger.warning("%s timed out after %gs", label, timeout_sec)
        raise AgentTimeoutError(label, timeout_sec) from exc


class StreamingTurn:
    """A bounded invocation running as its own task, with fragments read back live.

    The engine iterates ``chunks()`` to surface fragments as they arrive, then
    reads ``result()`` for the full text (or the failure).
    """

    def __init__(
        self,
        agent: AgentDefinition,
        messages: list[ChatMessage],
        timeout_sec: float = DEFAULT_AGENT_TIMEOUT_SEC,
        *,
        defaults: ChatOptions = PANELIST_DEFAULTS,
        resolver: ProviderResolver = get_provider,
    ) -> None:
        self._queue: asyncio.Queue[str | None] = asyncio.Queue()
        self._task = asyncio.create_task(
            stream_agent(agent, messages, self._queue.put_nowait, timeout_sec, defaults=defaults, resolver=resolver)
        )
        self._task.add_done_callback(lambda _task: self._queue.put_nowait(None))

    async def chunks(self) -> AsyncIterator[str]:
        """Yield fragments until the call settles (success or failure)."""
        while True:
            chunk = await self._queue.get()
            if chunk is None:
                return
            yield chunk

    def result(self) -> str:
        """Full response text. Re-raises the call's failure. Valid once chunks() is exhausted."""
        return self._task.result()
