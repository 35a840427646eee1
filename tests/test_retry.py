"""Tests for agora/providers/retry.py."""

import logging
from unittest.mock import AsyncMock

import pytest

from agora.providers import retry
from agora.providers.retry import with_retry


class RateLimited(Exception):
    status_code = 429


@pytest.fixture
def sleeps(monkeypatch) -> list[float]:
    recorded: list[float] = []

    async def _fake_sleep(delay: float) -> None:
        recorded.append(delay)

    monkeypatch.setattr(retry.asyncio, "sleep", _fake_sleep)
    return recorded


async def test_success_first_try(sleeps):
    fn = AsyncMock(return_value="ok")
    assert await with_retry(fn) == "ok"
    assert fn.await_count == 1
    assert sleeps == []


async def test_retries_then_succeeds(sleeps):
    fn = AsyncMock(side_effect=[ValueError("a"), ValueError("b"), "ok"])
    assert await with_retry(fn) == "ok"
    assert fn.await_count == 3
    assert sleeps == [0.5, 1.0]


async def test_exhausted_reraises_last_error(sleeps):
    fn = AsyncMock(side_effect=[ValueError("1"), ValueError("2"), ValueError("3"), ValueError("4")])
    with pytest.raises(ValueError, match="4"):
        await with_retry(fn)
    assert fn.await_count == 4
    assert sleeps == [0.5, 1.0, 2.0]


async def test_zero_retries(sleeps):
    fn = AsyncMock(side_effect=ValueError("once"))
    with pytest.raises(ValueError):
        await with_retry(fn, max_retries=0)
    assert sleeps == []


async def test_backoff_caps_at_last_step(sleeps):
    fn = AsyncMock(side_effect=[ValueError()] * 6 + ["ok"])
    assert await with_retry(fn, max_retries=6) == "ok"
    assert sleeps == [0.5, 1.0, 2.0, 4.0, 4.0, 4.0]


async def test_rate_limit_logs_warning(sleeps, caplog):
    fn = AsyncMock(side_effect=[RateLimited("slow down"), "ok"])
    with caplog.at_level(logging.WARNING, logger="agora.providers.retry"):
        assert await with_retry(fn) == "ok"
    assert "Rate limited" in caplog.text
