"""
Poll-with-timeout primitive shared by execution monitoring paths.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

from loguru import logger

T = TypeVar("T")


@dataclass
class PollOutcome(Generic[T]):
    value: Optional[T]
    elapsed: float
    attempts: int
    timed_out: bool


async def poll_until(
    fetch: Callable[[], Awaitable[T]],
    is_done: Callable[[T], bool],
    *,
    interval: float,
    timeout: float,
    label: str = "poll",
) -> PollOutcome[T]:
    """
    Call ``fetch`` until ``is_done`` accepts its result or ``timeout`` elapses.

    Errors raised by ``fetch`` propagate. On timeout the last fetched value
    is returned with ``timed_out`` set; the caller decides whether that is an error.
    """
    start = time.monotonic()
    deadline = start + max(timeout, 0.0)
    attempts = 0
    value: Optional[Any] = None

    while True:
        value = await fetch()
        attempts += 1
        if is_done(value):
            return PollOutcome(value=value, elapsed=time.monotonic() - start, attempts=attempts, timed_out=False)

        remaining = deadline - time.monotonic()
        if remaining <= 0:
            elapsed = time.monotonic() - start
            logger.warning(f"{label} timed out after {elapsed:.2f}s ({attempts} attempts)")
            return PollOutcome(value=value, elapsed=elapsed, attempts=attempts, timed_out=True)

        await asyncio.sleep(min(interval, remaining))
