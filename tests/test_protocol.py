"""Tests for agora/protocol.py."""

from agora.protocol import get_moderator, get_panelists, get_synthesizer, is_concurrent_round
from tests.conftest import make_agent


def test_panelists_keep_config_order():
    agents = [
        make_agent("z", "gpt-z"),
        make_agent("s", "gpt-s", role="synthesizer"),
        make_agent("a", "gpt-a"),
        make_agent("m", "gpt-m", role="moderator"),
    ]
    assert [a.id for a in get_panelists(agents)] == ["z", "a"]


def test_first_synthesizer_wins():
    agents = [
        make_agent("a", "gpt-a"),
        make_agent("s1", "gpt-s", role="synthesizer"),
        make_agent("s2", "gpt-s", role="synthesizer"),
    ]
    assert get_synthesizer(agents).id == "s1"


def test_missing_roles_return_none():
    agents = [make_agent("a", "gpt-a"), make_agent("b", "gpt-b")]
    assert get_synthesizer(agents) is None
    assert get_moderator(agents) is None


def test_get_moderator():
    agents = [make_agent("a", "gpt-a"), make_agent("m", "gpt-m", role="moderator")]
    assert get_moderator(agents).id == "m"


def test_only_first_round_is_concurrent():
    assert is_concurrent_round(1)
    assert not is_concurrent_round(2)
    assert not is_concurrent_round(10)
