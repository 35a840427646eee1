"""Build the message list each agent receives, with prompt-caching hints.

Caching layout for models that support prefix caching (Claude):
  - system prompt: cached (same for every call this agent makes)
  - topic + prior rounds: cached as its own message; byte-identical for every
    panelist in a round, so sequential turns reuse the prefix
  - current round entries + turn prompt: never cached (differs per turn)
"""

import re
from collections.abc import Sequence

from agora.models import TranscriptEntry
from agora.providers.base import ChatMessage
from config.schema import AgentDefinition

_VAR_PATTERN = re.compile(r"\{\{(\w+)\}\}")
_CACHE_ELIGIBLE_PREFIX = "claude-"


def interpolate(template: str, variables: dict[str, str]) -> str:
    """Replace {{key}} placeholders. Unknown keys are left as literal text."""
    return _VAR_PATTERN.sub(lambda m: variables.get(m.group(1), m.group(0)), template)


def is_cache_eligible(model: str) -> bool:
    return model.startswith(_CACHE_ELIGIBLE_PREFIX)


def format_transcript(entries: Sequence[TranscriptEntry]) -> str:
    """Group entries by round (ascending) into '### Round N' sections."""
    if not entries:
        return ""

    by_round: dict[int, list[TranscriptEntry]] = {}
    for entry in entries:
        by_round.setdefault(entry.round, []).append(entry)

    parts: list[str] = []
    for round_number in sorted(by_round):
        parts.append(f"### Round {round_number}")
        for entry in by_round[round_number]:
            parts.append(f"**{entry.agent_name}**: {entry.response}")
    return "\n\n".join(parts)


def _system_message(agent: AgentDefinition, topic: str) -> ChatMessage:
    return ChatMessage(
        role="system",
        content=interpolate(agent.system_prompt, {"topic": topic}),
        cache=is_cache_eligible(agent.model),
    )


def build_panelist_messages(
    agent: AgentDefinition,
    topic: str,
    transcript: Sequence[TranscriptEntry],
    current_round: int,
) -> list[ChatMessage]:
    """Messages for one panelist turn.

    ``transcript`` must already contain the entries of panelists who spoke
    earlier in ``current_round``.
    """
    system_msg = _system_message(agent, topic)

    prior = [e for e in transcript if e.round < current_round]
    current = [e for e in transcript if e.round == current_round]

    if not prior and not current:
        return [
            system_msg,
            ChatMessage(role="user", content=f"## Topic\n\n{topic}\n\nShare your perspective on this topic."),
        ]

    accumulated = [f"## Topic\n\n{topic}"]
    if prior:
        accumulated.append(f"## Previous Discussion\n\n{format_transcript(prior)}")

    turn: list[str] = []
    if current:
        turn.append(f"## Current Round {current_round}\n\n{format_transcript(current)}")
    turn.append(
        f"It's your turn in Round {current_round}. Respond to the topic, considering what others "
        "have said. Be concise and insightful."
    )

    return [
        system_msg,
        ChatMessage(role="user", content="\n\n".join(accumulated), cache=is_cache_eligible(agent.model)),
        ChatMessage(role="user", content="\n\n".join(turn)),
    ]


def build_synthesizer_messages(
    agent: AgentDefinition,
    topic: str,
    transcript: Sequence[TranscriptEntry],
) -> list[ChatMessage]:
    """System prompt plus one cacheable message holding the whole discussion."""
    content = (
        f"## Topic\n\n{topic}\n\n"
        f"## Full Discussion\n\n{format_transcript(transcript)}\n\n"
        "---\n\n"
        "Synthesize the above discussion into a clear, balanced, actionable final answer. "
        "Incorporate the best insights from all participants."
    )
    return [
        _system_message(agent, topic),
        ChatMessage(role="user", content=content, cache=is_cache_eligible(agent.model)),
    ]
