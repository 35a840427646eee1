"""Exponential backoff for provider requests."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

BACKOFF_SEC = (0.5, 1.0, 2.0, 4.0)
DEFAULT_MAX_RETRIES = 3


def _is_rate_limit(exc: BaseException) -> bool:
    # anthropic and openai SDK errors expose status_code; google-genai exposes code
    status = getattr(exc, "status_code", None) or getattr(exc, "code", None)
    return status == 429


async def with_retry(fn: Callable[[], Awaitable[T]], max_retries: int = DEFAULT_MAX_RETRIES) -> T:
    """Await fn(), retrying up to max_retries times with backoff.

    The last exception is re-raised once retries are exhausted.
    """
    attempt = 0
    while True:
        try:
            return await fn()
        except Exception as exc:
            if attempt >= max_retries:
                raise
            delay = BACKOFF_SEC[min(attempt, len(BACKOFF_SEC) - 1)]
            if _is_rate_limit(exc):
                logger.warning("Rate limited, waiting %.1fs (attempt %d/%d)", delay, attempt + 1, max_retries)
            else:
                logger.debug("Request failed (%s), retrying in %.1fs", exc, delay)
            attempt += 1
            await asyncio.sleep(delay)
