"""Tests for agora/models.py and agora/events.py."""

import dataclasses
import json

import pytest

from agora.events import (
    AgentChunk,
    AgentDone,
    ErrorEvent,
    RoundStart,
    RoundtableDone,
    RoundtableStart,
    event_to_dict,
)
from agora.models import DiscussionStats, TranscriptEntry


def test_transcript_entry_is_frozen():
    entry = TranscriptEntry("a", "Agent A", 1, "hello", "gpt-a")
    with pytest.raises(dataclasses.FrozenInstanceError):
        entry.response = "changed"  # type: ignore[misc]


def test_event_type_names():
    assert RoundtableStart.type == "roundtable_start"
    assert RoundStart.type == "round_start"
    assert AgentChunk.type == "agent_chunk"
    assert AgentDone.type == "agent_done"
    assert RoundtableDone.type == "roundtable_done"
    assert ErrorEvent.type == "error"


def test_event_to_dict_flat():
    event = AgentDone(agent_id="a", agent_name="Agent A", full_response="hi", round=2, model="gpt-a")
    assert event_to_dict(event) == {
        "type": "agent_done",
        "agent_id": "a",
        "agent_name": "Agent A",
        "full_response": "hi",
        "round": 2,
        "model": "gpt-a",
    }


def test_event_to_dict_nested_stats_is_json_ready():
    event = RoundtableDone(answer="ok", stats=DiscussionStats(2, 3, 40, 1500))
    payload = event_to_dict(event)
    assert payload["stats"] == {
        "total_rounds": 2,
        "total_agents": 3,
        "total_tokens_estimate": 40,
        "duration_ms": 1500,
    }
    json.dumps(payload)


def test_error_event_defaults_to_run_level():
    assert event_to_dict(ErrorEvent(error="bad")) == {"type": "error", "error": "bad", "agent_id": None}
