"""Backoff retry for blob store reads.

Reads are free and side-effect-free, so a failed ``getData`` or
``isAvailable`` can simply be issued again. Writes go through the
signing agent and are never retried here: a write that timed out may
still confirm later.
"""

from __future__ import annotations

import asyncio
import random
from typing import TYPE_CHECKING, TypeVar

import structlog

from labledger.metrics import retry_attempts_total

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = structlog.get_logger()

T = TypeVar("T")


class RetryExhaustedError(Exception):
    """Every attempt failed. The last failure is chained as ``__cause__``."""


def backoff_delay(attempt: int, base_delay: float, max_delay: float, jitter: bool) -> float:
    """Delay before retry number *attempt* (0-based): doubling, capped, optionally jittered."""
    delay = min(base_delay * (2**attempt), max_delay)
    if jitter:
        delay *= 0.5 + random.random()
    return delay


async def async_with_retry(
    fn: Callable[[], Awaitable[T]],
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    jitter: bool = True,
    retryable: tuple[type[Exception], ...] = (Exception,),
    fn_name: str = "",
) -> T:
    """Await *fn*, retrying up to *max_retries* times on *retryable* errors.

    Anything not in *retryable* propagates from the first failure.
    Raises RetryExhaustedError once all ``max_retries + 1`` attempts fail.
    """
    label = fn_name or getattr(fn, "__name__", "fn")
    attempts = max_retries + 1
    last_exc: Exception | None = None
    for attempt in range(attempts):
        try:
            return await fn()
        except retryable as exc:
            last_exc = exc
            if attempt + 1 == attempts:
                break
            retry_attempts_total.labels(fn_name=label).inc()
            delay = backoff_delay(attempt, base_delay, max_delay, jitter)
            logger.warning(
                "Store read failed, retrying",
                method=label,
                attempt=attempt + 1,
                of=attempts,
                delay_s=round(delay, 2),
                error=str(exc),
            )
            await asyncio.sleep(delay)
    raise RetryExhaustedError(f"{label}: failed after {attempts} attempts") from last_exc
