"""Roundtable engine: drives the rounds, then the synthesizer, yielding typed events.

Round 1 fans out to every panelist at once and reports results only after all
of them settle, in panelist order. Later rounds take turns one panelist at a
time, streaming chunks as they arrive. One panelist failing never stops the
round; a synthesizer failure ends the run without ``roundtable_done``.
"""

import asyncio
import logging
import math
import time
from collections.abc import AsyncIterator

from agora.context import build_panelist_messages, build_synthesizer_messages
from agora.errors import AgentTurnError, ConfigurationError, SynthesisError
from agora.events import (
    AgentChunk,
    AgentDone,
    AgentStart,
    ErrorEvent,
    RoundEnd,
    RoundStart,
    RoundtableDone,
    RoundtableEvent,
    RoundtableStart,
    SynthesisChunk,
    SynthesisDone,
    SynthesisStart,
)
from agora.invocation import (
    DEFAULT_AGENT_TIMEOUT_SEC,
    PANELIST_DEFAULTS,
    SYNTHESIZER_DEFAULTS,
    StreamingTurn,
    stream_agent,
)
from agora.models import DiscussionStats, TranscriptEntry
from agora.protocol import get_moderator, get_panelists, get_synthesizer, is_concurrent_round
from agora.providers.router import ProviderResolver, get_provider
from config.schema import AgentDefinition, RoundtableConfig

logger = logging.getLogger(__name__)

_CHARS_PER_TOKEN = 3.5


def estimate_tokens(text: str) -> int:
    """Rough token count (~3.5 chars per token). A cost indicator, not a billing count."""
    return math.ceil(len(text) / _CHARS_PER_TOKEN)


class RoundtableRun:
    """One discussion. The transcript belongs to the run and is never shared.

    ``events()`` may be iterated once.
    """

    def __init__(
        self,
        config: RoundtableConfig,
        topic: str,
        *,
        resolver: ProviderResolver = get_provider,
    ) -> None:
        self._config = config
        self._topic = topic
        self._resolver = resolver
        self._timeout_sec = config.agent_timeout or DEFAULT_AGENT_TIMEOUT_SEC
        self._transcript: list[TranscriptEntry] = []

    @property
    def transcript(self) -> tuple[TranscriptEntry, ...]:
        return tuple(self._transcript)

    async def events(self) -> AsyncIterator[RoundtableEvent]:
        start = time.monotonic()
        topic = self._topic
        agents = self._config.agents
        panelists = get_panelists(agents)
        synthesizer = get_synthesizer(agents)

        if not panelists:
            err = ConfigurationError("No panelist agents defined in config")
            logger.error("%s", err)
            yield ErrorEvent(error=str(err))
            return
        if synthesizer is None:
            err = ConfigurationError("No synthesizer agent defined in config")
            logger.error("%s", err)
            yield ErrorEvent(error=str(err))
            return

        moderator = get_moderator(agents)
        if moderator is not None:
            logger.info("Moderator %s is configured but takes no turns", moderator.name)

        yield RoundtableStart(
            topic=topic,
            agents=[a.name for a in panelists] + [synthesizer.name],
            max_rounds=self._config.max_rounds,
        )

        for round_number in range(1, self._config.max_rounds + 1):
            concurrent = is_concurrent_round(round_number)
            yield RoundStart(round=round_number, mode="concurrent" if concurrent else "sequential")
            logger.info(
                "Starting round %d (%s) with %d panelists",
                round_number,
                "concurrent" if concurrent else "sequential",
                len(panelists),
            )

            turns = (
                self._concurrent_round(topic, panelists, round_number)
                if concurrent
                else self._sequential_round(topic, panelists, round_number)
            )
            async for event in turns:
                yield event

            succeeded = sum(1 for e in self._transcript if e.round == round_number)
            logger.info("Round %d complete: %d/%d panelists succeeded", round_number, succeeded, len(panelists))
            yield RoundEnd(round=round_number)

        async for event in self._synthesis(topic, synthesizer, panelists, start):
            yield event

    async def _concurrent_round(
        self,
        topic: str,
        panelists: list[AgentDefinition],
        round_number: int,
    ) -> AsyncIterator[RoundtableEvent]:
        """Fan out to every panelist, join on all of them, then report in panelist order."""

        async def _buffered(agent: AgentDefinition, messages) -> tuple[str, list[str]]:
            chunks: list[str] = []
            response = await stream_agent(
                agent, messages, chunks.append, self._timeout_sec, defaults=PANELIST_DEFAULTS, resolver=self._resolver
            )
            return response, chunks

        # Every panelist sees the transcript as it stood before the round
        prompts = [build_panelist_messages(a, topic, self._transcript, round_number) for a in panelists]
        results = await asyncio.gather(
            *(_buffered(agent, messages) for agent, messages in zip(panelists, prompts)),
            return_exceptions=True,
        )

        for agent, result in zip(panelists, results):
            if isinstance(result, BaseException):
                yield self._turn_error(agent, round_number, result)
                continue

            response, chunks = result
            yield AgentStart(agent_id=agent.id, agent_name=agent.name, round=round_number)
            for chunk in chunks:
                yield AgentChunk(agent_id=agent.id, text=chunk)
            yield self._record(agent, round_number, response)

    async def _sequential_round(
        self,
        topic: str,
        panelists: list[AgentDefinition],
        round_number: int,
    ) -> AsyncIterator[RoundtableEvent]:
        """One panelist at a time; each sees everyone who already spoke this round."""
        for agent in panelists:
            yield AgentStart(agent_id=agent.id, agent_name=agent.name, round=round_number)

            messages = build_panelist_messages(agent, topic, self._transcript, round_number)
            turn = StreamingTurn(
                agent, messages, self._timeout_sec, defaults=PANELIST_DEFAULTS, resolver=self._resolver
            )
            async for chunk in turn.chunks():
                yield AgentChunk(agent_id=agent.id, text=chunk)

            try:
                response = turn.result()
            except Exception as exc:
                # Later panelists in this round proceed without this turn
                yield self._turn_error(agent, round_number, exc)
                continue

            yield self._record(agent, round_number, response)

    async def _synthesis(
        self,
        topic: str,
        synthesizer: AgentDefinition,
        panelists: list[AgentDefinition],
        start: float,
    ) -> AsyncIterator[RoundtableEvent]:
        yield SynthesisStart(agent_name=synthesizer.name, model=synthesizer.model)
        logger.info("Running synthesis via %s (%s)", synthesizer.name, synthesizer.model)

        messages = build_synthesizer_messages(synthesizer, topic, self._transcript)
        turn = StreamingTurn(
            synthesizer, messages, self._timeout_sec, defaults=SYNTHESIZER_DEFAULTS, resolver=self._resolver
        )
        async for chunk in turn.chunks():
            yield SynthesisChunk(text=chunk)

        try:
            answer = turn.result()
        except Exception as exc:
            err = SynthesisError(exc)
            logger.error("%s", err)
            yield ErrorEvent(error=str(err))
            return

        yield SynthesisDone(answer=answer)

        total_tokens = sum(estimate_tokens(e.response) for e in self._transcript) + estimate_tokens(answer)
        stats = DiscussionStats(
            total_rounds=self._config.max_rounds,
            total_agents=len(panelists) + 1,
            total_tokens_estimate=total_tokens,
            duration_ms=int((time.monotonic() - start) * 1000),
        )
        logger.info(
            "Roundtable done: %d rounds, ~%d tokens, %.1fs",
            stats.total_rounds,
            stats.total_tokens_estimate,
            stats.duration_ms / 1000,
        )
        yield RoundtableDone(answer=answer, stats=stats)

    def _record(self, agent: AgentDefinition, round_number: int, response: str) -> AgentDone:
        """Append the transcript entry, then build the agent_done event that reports it."""
        self._transcript.append(
            TranscriptEntry(
                agent_id=agent.id,
                agent_name=agent.name,
                round=round_number,
                response=response,
                model=agent.model,
            )
        )
        return AgentDone(
            agent_id=agent.id,
            agent_name=agent.name,
            full_response=response,
            round=round_number,
            model=agent.model,
        )

    def _turn_error(self, agent: AgentDefinition, round_number: int, exc: BaseException) -> ErrorEvent:
        err = AgentTurnError(agent.id, agent.name, exc)
        logger.warning("Round %d: %s", round_number, err)
        return ErrorEvent(error=str(err), agent_id=agent.id)


class RoundtableEngine:
    """Runs discussions for one config. Each ``run()`` gets its own RoundtableRun."""

    def __init__(self, config: RoundtableConfig, *, resolver: ProviderResolver = get_provider) -> None:
        self._config = config
        self._resolver = resolver

    def start(self, topic: str) -> RoundtableRun:
        return RoundtableRun(self._config, topic, resolver=self._resolver)

    def run(self, topic: str) -> AsyncIterator[RoundtableEvent]:
        return self.start(topic).events()


def run_roundtable(
    topic: str,
    config: RoundtableConfig,
    *,
    resolver: ProviderResolver = get_provider,
) -> AsyncIterator[RoundtableEvent]:
    """Run a discussion and yield its events. See RoundtableEngine."""
    return RoundtableEngine(config, resolver=resolver).run(topic)
