"""Pure dataclasses for the roundtable pipeline. No logic, no deps."""

from dataclasses import dataclass


@dataclass(frozen=True)
class TranscriptEntry:
    agent_id: str
    agent_name: str
    round: int
    response: str
    model: str            # model string the agent ran on


@dataclass(frozen=True)
class DiscussionStats:
    total_rounds: int
    total_agents: int              # panelists + synthesizer
    total_tokens_estimate: int     # ceil(chars / 3.5), not a billing count
    duration_ms: int
