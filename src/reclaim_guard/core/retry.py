"""Exponential backoff for TransientError."""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Awaitable, Callable, TypeVar

from reclaim_guard.errors import TransientError

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]


def backoff_delay(attempt: int, base: float) -> float:
    """Delay before retry number ``attempt`` (1-based), with up to 20% jitter."""
    delay = base * (2 ** (attempt - 1))
    return delay + random.uniform(0, delay * 0.2)


class RetriesExhausted(TransientError):
    def __init__(self, what: str, attempts: int, last: TransientError):
        self.attempts = attempts
        self.last = last
        super().__init__(f"{what}: gave up after {attempts} attempt(s): {last}")


async def call_with_backoff(
    fn: Callable[[], T],
    what: str,
    max_attempts: int,
    base_seconds: float,
    sleep: Sleep = asyncio.sleep,
    on_attempt: Callable[[int], None] | None = None,
) -> T:
    """Run blocking ``fn`` in a worker thread, retrying TransientError.

    Other exceptions propagate immediately. After ``max_attempts`` transient
    failures RetriesExhausted is raised.
    """
    for attempt in range(1, max_attempts + 1):
        if on_attempt:
            on_attempt(attempt)
        try:
            return await asyncio.to_thread(fn)
        except TransientError as e:
            if attempt == max_attempts:
                raise RetriesExhausted(what, attempt, e) from e
            wait = backoff_delay(attempt, base_seconds)
            logger.warning(
                "%s failed (attempt %d/%d), retrying in %.2fs: %s",
                what, attempt, max_attempts, wait, e,
            )
            await sleep(wait)
    raise AssertionError("unreachable")
