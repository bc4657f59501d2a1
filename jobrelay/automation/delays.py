"""Bounded, jittered pauses between UI actions."""

import asyncio
import random
from collections.abc import Awaitable, Callable

Sleep = Callable[[float], Awaitable[None]]


async def human_pause(
    min_seconds: float, max_seconds: float | None = None, *, sleep: Sleep = asyncio.sleep
) -> None:
    """Sleep for a random duration in ``[min_seconds, max_seconds]``."""
    upper = min_seconds if max_seconds is None else max(min_seconds, max_seconds)
    await sleep(random.uniform(min_seconds, upper))
