"""MCP server over stdio: line-delimited JSON-RPC 2.0.

Exposes roundtable discussions and single-model questions as tools, and presets
and history as resources. Logs go to stderr; stdout carries the protocol.

Register with an MCP client:
{
  "mcpServers": {
    "agora": {"command": "agora", "args": ["mcp"]}
  }
}
"""

import asyncio
import json
import logging
import sys
from dataclasses import dataclass
from typing import Any

from agora.engine import run_roundtable
from agora.errors import ConfigurationError
from agora.events import AgentDone, ErrorEvent, SynthesisDone
from agora.history import DiscussionRecorder, HistoryStore, record_events
from agora.providers.base import ChatMessage, ChatOptions
from agora.providers.router import ProviderResolver, get_provider
from config.config_loader import AppConfig, DEFAULT_PRESET, interpolate_config, list_presets, load_preset

logger = logging.getLogger(__name__)

PROTOCOL_VERSION = "2024-11-05"
SERVER_INFO = {"name": "agora", "version": "0.1.0"}

METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
TOOL_ERROR = -32000

_DISCUSSION_PREFIX = "agora://discussions/"


@dataclass
class MCPTool:
    """Definition of an MCP tool."""
    name: str
    description: str
    input_schema: dict[str, Any]


TOOLS = [
    MCPTool(
        name="agora_discuss",
        description=(
            "Run a multi-agent roundtable discussion. Multiple AI agents discuss a topic from "
            "different perspectives, then a synthesizer produces a final answer."
        ),
        input_schema={
            "type": "object",
            "properties": {
                "topic": {"type": "string", "description": "The topic or question to discuss"},
                "preset": {"type": "string", "description": "Preset name: default, research, debate or quick"},
                "max_rounds": {"type": "integer", "description": "Maximum discussion rounds (1-10)"},
            },
            "required": ["topic"],
        },
    ),
    MCPTool(
        name="agora_ask",
        description="Quick single-model query without roundtable discussion. Useful for simple questions.",
        input_schema={
            "type": "object",
            "properties": {
                "question": {"type": "string", "description": "The question to ask"},
                "model": {
                    "type": "string",
                    "description": "Model to use, e.g. gpt-4.1-mini, claude-sonnet-4-5, gemini-2.5-flash",
                },
            },
            "required": ["question"],
        },
    ),
]

RESOURCES = [
    {"uri": "agora://presets", "name": "presets", "description": "Available discussion presets", "mimeType": "text/markdown"},
    {"uri": "agora://history", "name": "history", "description": "Recent discussions", "mimeType": "text/markdown"},
]

RESOURCE_TEMPLATES = [
    {
        "uriTemplate": "agora://discussions/{id}",
        "name": "discussion",
        "description": "A saved discussion with its transcript and synthesis",
        "mimeType": "text/markdown",
    },
]


class MCPServer:
    """Tool and resource handlers, independent of the transport."""

    def __init__(self, config: AppConfig, store: HistoryStore, resolver: ProviderResolver = get_provider) -> None:
        self._config = config
        self._store = store
        self._resolver = resolver

    def get_tools_schema(self) -> list[dict[str, Any]]:
        return [
            {"name": tool.name, "description": tool.description, "inputSchema": tool.input_schema}
            for tool in TOOLS
        ]

    async def execute_tool(self, name: str, arguments: dict[str, Any]) -> str:
        if name == "agora_discuss":
            return await self._discuss(arguments)
        if name == "agora_ask":
            return await self._ask(arguments)
        raise ValueError(f"Unknown tool: {name}")

    async def _discuss(self, arguments: dict[str, Any]) -> str:
        topic = arguments.get("topic")
        if not topic:
            raise ValueError("topic is required")
        preset = arguments.get("preset")
        max_rounds = arguments.get("max_rounds")

        warning = ""
        try:
            roundtable = load_preset(preset or self._config.defaults.preset, self._config.preset_dirs)
        except ConfigurationError as exc:
            logger.warning("%s; using built-in default", exc)
            warning = f'Warning: preset "{preset or self._config.defaults.preset}" unavailable, using built-in default.\n\n'
            roundtable = DEFAULT_PRESET
        roundtable = interpolate_config(roundtable, topic)
        if max_rounds:
            roundtable = roundtable.model_copy(update={"max_rounds": max(1, min(10, int(max_rounds)))})

        recorder = DiscussionRecorder(self._store, topic, preset)
        transcript: list[str] = []
        errors: list[str] = []
        answer = ""

        events = record_events(run_roundtable(topic, roundtable, resolver=self._resolver), recorder)
        async for event in events:
            if isinstance(event, AgentDone):
                transcript.append(
                    f"**{event.agent_name}** ({event.model}, Round {event.round}):\n{event.full_response}"
                )
            elif isinstance(event, SynthesisDone):
                answer = event.answer
            elif isinstance(event, ErrorEvent):
                errors.append(event.error)

        discussion_id = recorder.discussion_id
        parts = [
            f'{warning}## Roundtable Discussion: "{topic}"\n\n### Transcript\n\n' + "\n\n---\n\n".join(transcript)
        ]
        if errors:
            parts.append("### Errors\n\n" + "\n".join(f"- {e}" for e in errors))
        parts.append(f"### Synthesis\n\n{answer or '_No synthesis produced._'}")
        parts.append(f"_Discussion ID: {discussion_id} | View details: agora history --id {discussion_id}_")
        return "\n\n---\n\n".join(parts)

    async def _ask(self, arguments: dict[str, Any]) -> str:
        question = arguments.get("question")
        if not question:
            raise ValueError("question is required")
        provider = self._resolver(arguments.get("model") or self._config.defaults.model)
        return await provider.chat(
            [ChatMessage(role="user", content=question)],
            ChatOptions(temperature=0.7, max_tokens=2048),
        )

    def read_resource(self, uri: str) -> str:
        if uri == "agora://presets":
            presets = list_presets(self._config.preset_dirs)
            if not presets:
                return "No presets available."
            return "\n\n".join(f"### {p.name} ({p.source})\n{p.description}" for p in presets)

        if uri == "agora://history":
            discussions = self._store.list_discussions(20)
            if not discussions:
                return "No discussions yet."
            lines = []
            for d in discussions:
                duration = f"{d.duration_ms / 1000:.0f}s" if d.duration_ms else "?"
                lines.append(f"- **{d.id}**: {d.topic} ({d.preset or 'default'}, {duration}, {d.created_at:%Y-%m-%d %H:%M})")
            return "\n".join(lines)

        if uri.startswith(_DISCUSSION_PREFIX):
            discussion_id = uri[len(_DISCUSSION_PREFIX):]
            found = self._store.get_discussion(discussion_id)
            if found is None:
                return f'Discussion "{discussion_id}" not found.'
            discussion, messages = found
            parts = [
                f"# Discussion: {discussion.topic}",
                f"ID: {discussion.id} | Preset: {discussion.preset or 'default'} | {discussion.created_at:%Y-%m-%d %H:%M}",
                "",
            ]
            current_round = 0
            for msg in messages:
                if msg.round != current_round:
                    current_round = msg.round
                    parts.append(f"## Round {current_round}\n")
                parts.append(f"### {msg.agent_name} ({msg.model})\n{msg.content}\n")
            if discussion.synthesis:
                parts.append(f"## Synthesis\n\n{discussion.synthesis}")
            return "\n".join(parts)

        raise KeyError(uri)


def _result(req_id: Any, result: dict[str, Any]) -> dict[str, Any]:
    return {"jsonrpc": "2.0", "id": req_id, "result": result}


def _error(req_id: Any, code: int, message: str) -> dict[str, Any]:
    return {"jsonrpc": "2.0", "id": req_id, "error": {"code": code, "message": message}}


async def handle_request(server: MCPServer, request: dict[str, Any]) -> dict[str, Any] | None:
    """Handle one JSON-RPC message. Returns None for notifications."""
    method = request.get("method")
    params = request.get("params") or {}
    req_id = request.get("id")

    logger.info("Handling request: %s", method)

    if method == "initialize":
        return _result(
            req_id,
            {
                "protocolVersion": PROTOCOL_VERSION,
                "capabilities": {"tools": {}, "resources": {}},
                "serverInfo": SERVER_INFO,
            },
        )

    if method in ("initialized", "notifications/initialized"):
        return None

    if method == "ping":
        return _result(req_id, {})

    if method == "tools/list":
        return _result(req_id, {"tools": server.get_tools_schema()})

    if method == "tools/call":
        try:
            text = await server.execute_tool(params.get("name"), params.get("arguments") or {})
        except Exception as exc:
            logger.error("Tool execution error: %s", exc)
            return _error(req_id, TOOL_ERROR, str(exc))
        return _result(req_id, {"content": [{"type": "text", "text": text}]})

    if method == "resources/list":
        return _result(req_id, {"resources": RESOURCES})

    if method == "resources/templates/list":
        return _result(req_id, {"resourceTemplates": RESOURCE_TEMPLATES})

    if method == "resources/read":
        uri = params.get("uri", "")
        try:
            text = server.read_resource(uri)
        except KeyError:
            return _error(req_id, INVALID_PARAMS, f"Unknown resource: {uri}")
        return _result(req_id, {"contents": [{"uri": uri, "mimeType": "text/markdown", "text": text}]})

    logger.warning("Unknown method: %s", method)
    if req_id is None:
        return None
    return _error(req_id, METHOD_NOT_FOUND, f"Method not found: {method}")


def write_message(message: dict[str, Any]) -> None:
    sys.stdout.write(json.dumps(message) + "\n")
    sys.stdout.flush()


async def serve(server: MCPServer) -> None:
    """Read requests from stdin until EOF, answering each on stdout."""
    logger.info("Starting agora MCP server")
    loop = asyncio.get_running_loop()
    while True:
        line = await loop.run_in_executor(None, sys.stdin.readline)
        if not line:
            logger.info("No more input, shutting down")
            break
        line = line.strip()
        if not line:
            continue
        try:
            request = json.loads(line)
        except json.JSONDecodeError as exc:
            logger.error("Failed to parse message: %s", exc)
            continue

        response = await handle_request(server, request)
        if response is not None:
            write_message(response)
