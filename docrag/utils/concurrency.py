"""Shared concurrency primitives for the ingestion and retrieval services.

Two patterns are exposed:

1. **with_timeout** -- runs an awaitable under ``asyncio.wait_for`` and
   converts a breach into a typed :class:`~docrag.utils.errors.DocRagError`
   so callers never see a bare ``TimeoutError``.

2. **retry_transient** -- re-invokes a coroutine factory on errors whose
   ``retryable`` flag is set, sleeping with bounded exponential backoff
   between attempts.  Non-retryable errors propagate immediately.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, TypeVar

import structlog

from docrag.utils.errors import DocRagError
from docrag.utils.logging import get_logger

_T = TypeVar("_T")

# Upper bound for a single backoff sleep regardless of attempt number.
_MAX_BACKOFF_SECONDS = 30.0

_logger: structlog.BoundLogger = get_logger(__name__)


async def with_timeout(
    awaitable: Awaitable[_T],
    timeout: float | None,
    on_timeout: Callable[[], DocRagError],
) -> _T:
    """Await *awaitable* for at most *timeout* seconds.

    ``None`` or a non-positive timeout disables the limit.  On breach the
    error built by *on_timeout* is raised from the ``TimeoutError``.
    """
    if timeout is None or timeout <= 0:
        return await awaitable
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError as exc:
        raise on_timeout() from exc


def backoff_delay(attempt: int, base_delay: float) -> float:
    """Return the sleep before retry number *attempt* (1-based)."""
    return min(base_delay * (2 ** (attempt - 1)), _MAX_BACKOFF_SECONDS)


async def retry_transient(
    operation: Callable[[], Awaitable[_T]],
    *,
    max_attempts: int,
    base_delay: float,
    operation_name: str,
    logger: structlog.BoundLogger | None = None,
) -> _T:
    """Call *operation* until it succeeds or a non-transient error occurs.

    Parameters
    ----------
    operation:
        Zero-argument coroutine factory; called afresh for every attempt.
    max_attempts:
        Total attempts including the first (minimum 1).
    base_delay:
        Backoff base in seconds; attempt *n* sleeps ``base * 2**(n-1)``.
    operation_name:
        Event name prefix used in the retry log lines.

    Raises
    ------
    DocRagError
        The last transient error once attempts are exhausted, or the first
        non-retryable error.
    """
    log = logger or _logger
    attempts = max(1, max_attempts)

    for attempt in range(1, attempts + 1):
        try:
            return await operation()
        except DocRagError as exc:
            if not exc.retryable or attempt >= attempts:
                raise
            delay = backoff_delay(attempt, base_delay)
            log.warning(
                f"{operation_name}_retrying",
                attempt=attempt,
                max_attempts=attempts,
                backoff_s=delay,
                error=str(exc),
            )
            await asyncio.sleep(delay)

    # The loop always returns or raises; this satisfies type checkers.
    raise RuntimeError(f"{operation_name}: retry loop exited unexpectedly")
