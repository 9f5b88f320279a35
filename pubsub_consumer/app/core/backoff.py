"""Exponential backoff for broker connection attempts.

`exponential_backoff` yields the delay that preceded the current attempt
(the first yield is the initial delay) and sleeps before each following
attempt. The caller breaks out of the loop on success.
"""
from __future__ import annotations

import asyncio
from typing import AsyncIterator


async def exponential_backoff(
    initial_delay: float,
    max_delay: float,
    multiplier: float,
    max_attempts: int,
) -> AsyncIterator[float]:
    delay = max(0.0, initial_delay)
    for attempt in range(1, max_attempts + 1):
        yield delay
        if attempt >= max_attempts:
            return
        await asyncio.sleep(delay)
        delay = min(delay * multiplier, max_delay)
