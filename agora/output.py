"""Rich console rendering of roundtable events and saved discussions."""

import logging
from collections.abc import AsyncIterator

from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.rule import Rule
from rich.text import Text

from agora.events import (
    AgentChunk,
    AgentDone,
    AgentStart,
    ErrorEvent,
    RoundStart,
    RoundtableDone,
    RoundtableEvent,
    RoundtableStart,
    SynthesisChunk,
    SynthesisDone,
    SynthesisStart,
)
from agora.history import DiscussionMessage, DiscussionSummary

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)

_AGENT_COLORS = ["cyan", "yellow", "magenta", "green", "blue", "bright_red"]


class _ColorPicker:
    """Stable colour per agent id, assigned in order of first appearance."""

    def __init__(self) -> None:
        self._assigned: dict[str, str] = {}

    def __call__(self, agent_id: str) -> str:
        if agent_id not in self._assigned:
            self._assigned[agent_id] = _AGENT_COLORS[len(self._assigned) % len(_AGENT_COLORS)]
        return self._assigned[agent_id]


async def render_to_terminal(
    events: AsyncIterator[RoundtableEvent],
    out: Console | None = None,
) -> RoundtableDone | None:
    """Print events as they arrive. Returns the final roundtable_done event, if any."""
    out = out or console
    color_for = _ColorPicker()
    streaming_agent: str | None = None
    buffered = False  # concurrent round: chunks interleave, print each response whole
    done: RoundtableDone | None = None

    async for event in events:
        if isinstance(event, RoundtableStart):
            out.print(Rule(f"[bold]Roundtable: {event.topic}[/bold]"))
            out.print(Text(f"Agents: {', '.join(event.agents)}", style="dim"))
            out.print(Text(f"Max rounds: {event.max_rounds}", style="dim"))
            out.print()

        elif isinstance(event, RoundStart):
            out.print(Rule(f"[bold cyan]Round {event.round}[/bold cyan] [dim]({event.mode})[/dim]"))
            buffered = event.mode == "concurrent"

        elif isinstance(event, AgentStart):
            if buffered:
                continue
            out.print(Text(f"[{event.agent_name}]", style=f"bold {color_for(event.agent_id)}"))
            streaming_agent = event.agent_id

        elif isinstance(event, AgentChunk):
            if event.agent_id == streaming_agent:
                out.print(event.text, end="", markup=False, highlight=False)

        elif isinstance(event, AgentDone):
            if event.agent_id == streaming_agent:
                out.print("\n")
            else:
                out.print(
                    Panel(
                        event.full_response,
                        title=f"[bold]{event.agent_name}[/bold] ({event.model})",
                        border_style=color_for(event.agent_id),
                    )
                )
            streaming_agent = None

        elif isinstance(event, SynthesisStart):
            out.print(Rule("[bold green]Synthesis[/bold green]"))
            out.print(Text(f"[{event.agent_name}] ({event.model})", style=f"bold {color_for('__synthesizer__')}"))

        elif isinstance(event, SynthesisChunk):
            out.print(event.text, end="", markup=False, highlight=False)

        elif isinstance(event, SynthesisDone):
            out.print("\n")

        elif isinstance(event, RoundtableDone):
            s = event.stats
            out.print(
                Text(
                    f"--- Done ({s.total_rounds} rounds, {s.total_agents} agents, "
                    f"~{s.total_tokens_estimate} tokens, {s.duration_ms / 1000:.1f}s) ---",
                    style="dim",
                )
            )
            done = event

        elif isinstance(event, ErrorEvent):
            prefix = f"[{event.agent_id}] " if event.agent_id else ""
            out.print(Text(f"{prefix}Error: {event.error}", style="bold red"))
            streaming_agent = None

    return done


def print_history_list(discussions: list[DiscussionSummary], out: Console | None = None) -> None:
    out = out or console
    if not discussions:
        out.print('No discussions yet. Run: agora discuss "your topic"')
        return
    out.print("\n[bold]Recent discussions:[/bold]\n")
    for d in discussions:
        duration = f"{d.duration_ms / 1000:.0f}s" if d.duration_ms else "?"
        tokens = f"~{d.total_tokens}t" if d.total_tokens else ""
        out.print(Text(f"  {d.id}  {d.topic}", style="bold"))
        out.print(
            Text(
                f"    {d.created_at:%Y-%m-%d %H:%M:%S} | {d.preset or 'default'} | {duration} {tokens}".rstrip(),
                style="dim",
            )
        )
    out.print("\nView details: agora history --id <id>\n")


def print_discussion(
    discussion: DiscussionSummary,
    messages: list[DiscussionMessage],
    out: Console | None = None,
) -> None:
    """Print a saved discussion, grouped by round, then its synthesis."""
    out = out or console
    out.print(Text(f"\nTopic: {discussion.topic}", style="bold"))
    out.print(
        Text(
            f"ID: {discussion.id} | Preset: {discussion.preset or 'default'} | {discussion.created_at:%Y-%m-%d %H:%M:%S}",
            style="dim",
        )
    )
    if discussion.duration_ms:
        out.print(
            Text(f"Duration: {discussion.duration_ms / 1000:.1f}s | Tokens: ~{discussion.total_tokens}", style="dim")
        )
    out.print()

    current_round = 0
    for msg in messages:
        if msg.round != current_round:
            current_round = msg.round
            out.print(Rule(f"[bold]Round {current_round}[/bold]"))
        out.print(Panel(msg.content, title=f"[bold]{msg.agent_name}[/bold] ({msg.model})", border_style="dim"))

    if discussion.synthesis:
        out.print(Rule("[bold green]Synthesis[/bold green]"))
        out.print(Markdown(discussion.synthesis))
