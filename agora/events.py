"""Typed events yielded by the roundtable engine.

Every consumer (terminal renderer, history recorder, protocol server) reads the
same union. Events are frozen; ``type`` is the wire name used by event_to_dict.
"""

from dataclasses import asdict, dataclass
from typing import Any, ClassVar, Literal

from agora.models import DiscussionStats

RoundMode = Literal["concurrent", "sequential"]


@dataclass(frozen=True)
class RoundtableStart:
    type: ClassVar[str] = "roundtable_start"
    topic: str
    agents: list[str]
    max_rounds: int


@dataclass(frozen=True)
class RoundStart:
    type: ClassVar[str] = "round_start"
    round: int
    mode: RoundMode


@dataclass(frozen=True)
class AgentStart:
    type: ClassVar[str] = "agent_start"
    agent_id: str
    agent_name: str
    round: int


@dataclass(frozen=True)
class AgentChunk:
    type: ClassVar[str] = "agent_chunk"
    agent_id: str
    text: str


@dataclass(frozen=True)
class AgentDone:
    type: ClassVar[str] = "agent_done"
    agent_id: str
    agent_name: str
    full_response: str
    round: int
    model: str


@dataclass(frozen=True)
class RoundEnd:
    type: ClassVar[str] = "round_end"
    round: int


@dataclass(frozen=True)
class SynthesisStart:
    type: ClassVar[str] = "synthesis_start"
    agent_name: str
    model: str


@dataclass(frozen=True)
class SynthesisChunk:
    type: ClassVar[str] = "synthesis_chunk"
    text: str


@dataclass(frozen=True)
class SynthesisDone:
    type: ClassVar[str] = "synthesis_done"
    answer: str


@dataclass(frozen=True)
class RoundtableDone:
    type: ClassVar[str] = "roundtable_done"
    answer: str
    stats: DiscussionStats


@dataclass(frozen=True)
class ErrorEvent:
    type: ClassVar[str] = "error"
    error: str
    agent_id: str | None = None  # None for run-level errors


RoundtableEvent = (
    RoundtableStart
    | RoundStart
    | AgentStart
    | AgentChunk
    | AgentDone
    | RoundEnd
    | SynthesisStart
    | SynthesisChunk
    | SynthesisDone
    | RoundtableDone
    | ErrorEvent
)


def event_to_dict(event: RoundtableEvent) -> dict[str, Any]:
    """Render an event as a JSON-ready dict tagged with its type."""
    return {"type": event.type, **asdict(event)}
