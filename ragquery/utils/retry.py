"""
Per-stage timeout and bounded retry for the pipeline's network calls.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, TypeVar

from ragquery.core.errors import PipelineError
from ragquery.utils.logging import get_logger

logger = get_logger("ragquery.retry")

T = TypeVar("T")


async def call_with_timeout(
    fn: Callable[[], Awaitable[T]],
    timeout: float,
    error_cls: type[PipelineError],
) -> T:
    """Await ``fn()``; a timeout becomes a transient ``error_cls``."""
    try:
        return await asyncio.wait_for(fn(), timeout=timeout)
    except asyncio.TimeoutError as e:
        raise error_cls(
            f"{error_cls.stage} timed out after {timeout:.1f}s",
            transient=True,
        ) from e


async def retry_async(
    fn: Callable[[], Awaitable[T]],
    *,
    attempts: int,
    backoff_seconds: float,
    label: str,
) -> T:
    """
    Run ``fn`` up to ``attempts`` times.

    Only ``PipelineError`` instances flagged ``transient`` are retried;
    anything else propagates on the first failure.  The wait before
    retry ``n`` is ``backoff_seconds * n``.
    """
    attempt = 1
    while True:
        try:
            return await fn()
        except PipelineError as e:
            if not e.transient or attempt >= attempts:
                raise
            wait = backoff_seconds * attempt
            logger.warning(
                "%s failed (attempt %d/%d): %s; retrying in %.1fs",
                label, attempt, attempts, e, wait,
            )
            await asyncio.sleep(wait)
            attempt += 1
