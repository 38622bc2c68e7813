from __future__ import annotations

import asyncio
import random

from ..contracts import BackoffSpec


def compute_backoff(attempt: int, base: float = 1.5, jitter: float = 0.5) -> float:
    """Compute exponential backoff with jitter."""
    delay = base ** attempt
    return delay + random.uniform(0, jitter)


def backoff_delay(backoff: BackoffSpec, attempt: int) -> float:
    """Seconds to wait before re-delivering a job that failed ``attempt``."""
    seconds = backoff.delay_ms / 1000
    if backoff.strategy == "fixed":
        return seconds
    return seconds * compute_backoff(attempt - 1, base=2, jitter=0)


async def schedule_retry(backoff: BackoffSpec, attempt: int) -> None:
    """Sleep for computed backoff delay before retrying."""
    await asyncio.sleep(backoff_delay(backoff, attempt))
