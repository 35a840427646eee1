"""Click CLI: config loading, preset resolution, discussion, history and MCP entry points."""

import asyncio
import json
import logging
import sys
from collections.abc import AsyncIterator

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from agora.engine import run_roundtable
from agora.errors import ConfigurationError
from agora.events import RoundtableDone, RoundtableEvent, event_to_dict
from agora.history import DiscussionRecorder, HistoryStore, record_events
from agora.mcp_server import MCPServer, serve
from agora.output import console, print_discussion, print_history_list, render_to_terminal
from agora.providers.base import ChatMessage, ChatOptions, ProviderError
from agora.providers.router import configure_routes, get_provider, list_providers
from config.config_loader import AppConfig, DEFAULT_PRESET, interpolate_config, list_presets, load_config, load_preset
from config.schema import RoundtableConfig

logger = logging.getLogger(__name__)

err_console = Console(stderr=True, legacy_windows=False)


def _setup_logging(verbose: bool) -> None:
    # stderr only: stdout carries rendered output (and the MCP protocol)
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, rich_tracebacks=True, show_path=False)],
    )


def _resolve_roundtable(app_config: AppConfig, preset_name: str | None, topic: str) -> RoundtableConfig:
    """Load the named (or default) preset, falling back to the built-in default."""
    name = preset_name or app_config.defaults.preset
    try:
        roundtable = load_preset(name, app_config.preset_dirs)
    except ConfigurationError as exc:
        if preset_name:
            err_console.print(
                f'[yellow]Warning:[/yellow] preset "{preset_name}" unusable ({escape(str(exc))}), '
                "using built-in default."
            )
        else:
            logger.info("Default preset unavailable (%s), using built-in default", exc)
        roundtable = DEFAULT_PRESET
    return interpolate_config(roundtable, topic)


async def _ask(question: str, model: str) -> None:
    provider = get_provider(model)
    console.print(f"[dim]\\[{model}][/dim]\n")
    async for chunk in provider.stream(
        [ChatMessage(role="user", content=question)],
        ChatOptions(temperature=0.7, max_tokens=2048),
    ):
        console.print(chunk, end="", markup=False, highlight=False)
    console.print("\n")


async def _emit_json(events: AsyncIterator[RoundtableEvent]) -> bool:
    """Write one JSON object per event to stdout. Returns True when the run completed."""
    completed = False
    async for event in events:
        click.echo(json.dumps(event_to_dict(event)))
        completed = isinstance(event, RoundtableDone)
    return completed


async def _discuss(
    topic: str,
    roundtable: RoundtableConfig,
    recorder: DiscussionRecorder | None,
    as_json: bool = False,
) -> bool:
    """Run and render a discussion. Returns True when it reached roundtable_done."""
    events = run_roundtable(topic, roundtable)
    if recorder is not None:
        events = record_events(events, recorder)
    if as_json:
        return await _emit_json(events)
    done = await render_to_terminal(events)
    return done is not None


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.option("--verbose", is_flag=True, help="Enable DEBUG-level logging")
@click.pass_context
def main(ctx: click.Context, verbose: bool) -> None:
    """Agora -- multi-agent roundtable discussion tool.

    \b
    Examples:
      agora ask "What is a monad?" --model claude-sonnet-4-5
      agora discuss "Should we adopt a monorepo?" --preset debate --rounds 3
      agora presets
      agora history --id 3f2a9c1b7d4e
      agora mcp
    """
    # Model responses routinely contain non-ASCII; avoid cp1252 crashes on Windows consoles
    if sys.platform == "win32":
        if hasattr(sys.stdout, "reconfigure"):
            sys.stdout.reconfigure(encoding="utf-8", errors="replace")
        if hasattr(sys.stderr, "reconfigure"):
            sys.stderr.reconfigure(encoding="utf-8", errors="replace")

    load_dotenv()
    _setup_logging(verbose)

    try:
        app_config = load_config()
    except FileNotFoundError as exc:
        err_console.print(f"[bold red]Config error:[/bold red] {exc}")
        sys.exit(1)

    configure_routes(app_config.providers)
    ctx.obj = app_config


@main.command()
@click.argument("question", nargs=-1, required=True)
@click.option("--model", default=None, help="Model to use (default: from config)")
@click.pass_obj
def ask(app_config: AppConfig, question: tuple[str, ...], model: str | None) -> None:
    """Quick single-model query."""
    try:
        asyncio.run(_ask(" ".join(question), model or app_config.defaults.model))
    except ProviderError as exc:
        err_console.print(f"[bold red]Error:[/bold red] {exc}")
        sys.exit(1)


@main.command()
@click.argument("topic", nargs=-1, required=True)
@click.option("--preset", default=None, help="Preset name (default: from config)")
@click.option("--rounds", default=None, type=click.IntRange(1, 10), help="Maximum discussion rounds")
@click.option("--timeout", "timeout_sec", default=None, type=click.FloatRange(min=0, min_open=True),
              help="Per-agent timeout in seconds")
@click.option("--no-history", is_flag=True, default=False, help="Do not save this discussion")
@click.option("--json", "as_json", is_flag=True, default=False, help="Print events as JSON lines instead of rendering")
@click.pass_obj
def discuss(
    app_config: AppConfig,
    topic: tuple[str, ...],
    preset: str | None,
    rounds: int | None,
    timeout_sec: float | None,
    no_history: bool,
    as_json: bool,
) -> None:
    """Run a roundtable discussion on TOPIC."""
    topic_text = " ".join(topic)
    roundtable = _resolve_roundtable(app_config, preset, topic_text)

    overrides: dict[str, object] = {}
    if rounds is not None:
        overrides["max_rounds"] = rounds
    if timeout_sec is not None:
        overrides["agent_timeout"] = timeout_sec
    elif roundtable.agent_timeout is None:
        overrides["agent_timeout"] = app_config.defaults.agent_timeout_sec
    if overrides:
        roundtable = roundtable.model_copy(update=overrides)

    recorder = None
    if not no_history:
        recorder = DiscussionRecorder(HistoryStore(app_config.defaults.history_db), topic_text, preset)

    completed = asyncio.run(_discuss(topic_text, roundtable, recorder, as_json))

    if recorder is not None:
        # stdout carries the event stream in --json mode
        (err_console if as_json else console).print(f"[dim]Discussion saved: {recorder.discussion_id}[/dim]")
    if not completed:
        sys.exit(1)


@main.command()
@click.pass_obj
def presets(app_config: AppConfig) -> None:
    """List available presets."""
    found = list_presets(app_config.preset_dirs)
    if not found:
        console.print("No presets found.")
        return
    console.print("\n[bold]Available presets:[/bold]\n")
    for p in found:
        badge = "[yellow]\\[user][/yellow]" if p.source == "user" else "[dim]\\[builtin][/dim]"
        console.print(f"  [bold]{p.name}[/bold] {badge}")
        console.print(f"    {p.description}")
    console.print('\nUsage: agora discuss "topic" --preset <name>\n')


@main.command()
@click.option("--id", "discussion_id", default=None, help="Show one discussion in full")
@click.option("--limit", default=20, type=click.IntRange(min=1), help="How many recent discussions to list")
@click.pass_obj
def history(app_config: AppConfig, discussion_id: str | None, limit: int) -> None:
    """View discussion history."""
    store = HistoryStore(app_config.defaults.history_db)
    if discussion_id is None:
        print_history_list(store.list_discussions(limit))
        return

    found = store.get_discussion(discussion_id)
    if found is None:
        err_console.print(f'[bold red]Error:[/bold red] Discussion "{discussion_id}" not found.')
        sys.exit(1)
    discussion, messages = found
    print_discussion(discussion, messages)


@main.command()
@click.pass_obj
def mcp(app_config: AppConfig) -> None:
    """Start the MCP server on stdio."""
    server = MCPServer(app_config, HistoryStore(app_config.defaults.history_db))
    asyncio.run(serve(server))


@main.command()
def models() -> None:
    """List supported model prefixes."""
    console.print("\n[bold]Supported models:[/bold]\n")
    for line in list_providers():
        console.print(f"  {line}")
    console.print()


if __name__ == "__main__":
    main()
