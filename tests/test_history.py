"""Tests for agora/history.py."""

from datetime import datetime
from pathlib import Path

from agora.engine import run_roundtable
from agora.history import Discussion, DiscussionRecorder, HistoryStore, record_events
from tests.conftest import FakeProvider, resolver_for


def test_create_and_get_empty_discussion(history_store):
    discussion_id = history_store.create_discussion("Tabs?", "debate")
    assert len(discussion_id) == 12

    summary, messages = history_store.get_discussion(discussion_id)
    assert summary.topic == "Tabs?"
    assert summary.preset == "debate"
    assert summary.synthesis is None
    assert messages == []


def test_get_unknown_discussion(history_store):
    assert history_store.get_discussion("nope") is None


def test_messages_keep_insertion_order(history_store):
    discussion_id = history_store.create_discussion("t")
    for round_number, agent in [(1, "a"), (1, "b"), (2, "a")]:
        history_store.add_message(
            discussion_id,
            agent_id=agent,
            agent_name=agent.upper(),
            round_number=round_number,
            content=f"{agent}{round_number}",
            model="gpt-x",
        )

    _, messages = history_store.get_discussion(discussion_id)
    assert [m.content for m in messages] == ["a1", "b1", "a2"]
    assert all(m.role == "panelist" for m in messages)


def test_list_discussions_most_recent_first(history_store):
    older = history_store.create_discussion("older")
    newer = history_store.create_discussion("newer")
    with history_store._session.begin() as session:
        session.get(Discussion, older).created_at = datetime(2024, 1, 1)
        session.get(Discussion, newer).created_at = datetime(2024, 6, 1)

    assert [d.id for d in history_store.list_discussions()] == [newer, older]


def test_list_discussions_limit(history_store):
    for i in range(5):
        history_store.create_discussion(f"t{i}")
    assert len(history_store.list_discussions(limit=3)) == 3


def test_file_store_creates_parent_dir(tmp_path: Path):
    db = tmp_path / "nested" / "dir" / "agora.db"
    store = HistoryStore(db)
    discussion_id = store.create_discussion("persisted")
    assert db.exists()

    reopened = HistoryStore(db)
    assert reopened.get_discussion(discussion_id)[0].topic == "persisted"


async def test_recorder_captures_full_run(history_store, roundtable_config, resolver):
    recorder = DiscussionRecorder(history_store, "Tabs?", "default")
    events = [e async for e in record_events(run_roundtable("Tabs?", roundtable_config, resolver=resolver), recorder)]

    summary, messages = history_store.get_discussion(recorder.discussion_id)
    assert summary.synthesis == "Final answer"
    assert summary.total_tokens == events[-1].stats.total_tokens_estimate
    assert summary.duration_ms == events[-1].stats.duration_ms
    assert [(m.agent_id, m.round) for m in messages] == [("a", 1), ("b", 1), ("a", 2), ("b", 2)]
    assert messages[0].content == "A says one"
    assert messages[0].model == "gpt-a"


async def test_recorder_on_failed_synthesis(history_store, roundtable_config, providers):
    synth = FakeProvider("gpt-s", RuntimeError("down"))
    resolver = resolver_for(providers["a"], providers["b"], synth)
    recorder = DiscussionRecorder(history_store, "t")

    events = [e async for e in record_events(run_roundtable("t", roundtable_config, resolver=resolver), recorder)]

    assert events[-1].type == "error"
    summary, messages = history_store.get_discussion(recorder.discussion_id)
    assert summary.synthesis is None
    assert summary.duration_ms is None
    assert len(messages) == 4
