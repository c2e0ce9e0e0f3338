"""Shared concurrency primitives for pipeline runs and provider calls.

Two patterns are exposed:

1. **throttled_gather** -- ``asyncio.gather`` with each awaitable wrapped in
   a semaphore acquire/release.  The event adapter uses it to run pipelines
   for many documents in parallel without unbounded fan-out.

2. **call_with_timeout** -- bounds a provider call by a deadline.  The call
   runs as a shielded task: when the deadline passes the caller stops
   waiting and gets a capability error, but the provider call itself is not
   cancelled and finishes (or fails) on its own.  Detached tasks are held in
   a module-level set until they complete so they are not garbage-collected
   mid-flight, and their late results are logged and dropped.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, TypeVar

import structlog

from docrag.utils.errors import DocRagError
from docrag.utils.logging import get_logger

_T = TypeVar("_T")

_logger: structlog.BoundLogger = get_logger(__name__)

# Provider calls that outlived their deadline.
_DETACHED: set[asyncio.Future] = set()


async def throttled_gather(
    coros: list[Awaitable[_T]],
    semaphore: asyncio.Semaphore,
    return_exceptions: bool = True,
) -> list[_T | BaseException]:
    """Run awaitables concurrently, at most ``semaphore`` slots at a time.

    Parameters
    ----------
    coros:
        Awaitable objects to execute concurrently.
    semaphore:
        Semaphore bounding how many run simultaneously.
    return_exceptions:
        If ``True``, exceptions are returned in the results list rather
        than being raised.  Mirrors ``asyncio.gather`` semantics.

    Returns
    -------
    list[_T | BaseException]
        Results in the same order as the input coroutines.
    """

    async def _wrapped(coro: Awaitable[_T]) -> _T:
        async with semaphore:
            return await coro

    tasks = [_wrapped(c) for c in coros]
    return await asyncio.gather(*tasks, return_exceptions=return_exceptions)


async def call_with_timeout(
    awaitable: Awaitable[_T],
    timeout: float | None,
    error_factory: Callable[[str], DocRagError],
    operation: str = "provider_call",
    on_detach: Callable[[asyncio.Future], None] | None = None,
) -> _T:
    """Await *awaitable* for at most *timeout* seconds.

    Parameters
    ----------
    awaitable:
        The provider call to bound.
    timeout:
        Deadline in seconds.  ``None`` or a non-positive value waits
        indefinitely.
    error_factory:
        Builds the capability error raised on timeout, e.g.
        ``lambda msg: ExtractionError(message=msg)``.
    operation:
        Short label used in the timeout message and logs.
    on_detach:
        Called with the still-running task when the deadline elapses.
        Callers whose call has side effects use it to undo a late result.

    Raises
    ------
    DocRagError
        Whatever *error_factory* returns, when the deadline elapses.
    """
    if timeout is None or timeout <= 0:
        return await awaitable

    task = asyncio.ensure_future(awaitable)
    try:
        return await asyncio.wait_for(asyncio.shield(task), timeout)
    except asyncio.TimeoutError as exc:
        _detach(task, operation)
        if on_detach is not None:
            on_detach(task)
        _logger.warning("provider_call_timed_out", operation=operation, timeout=timeout)
        raise error_factory(f"{operation} timed out after {timeout:g}s") from exc


def _detach(task: asyncio.Future, operation: str) -> None:
    _DETACHED.add(task)

    def _reap(done: asyncio.Future) -> None:
        _DETACHED.discard(done)
        if done.cancelled():
            return
        exc = done.exception()
        if exc is not None:
            _logger.info("detached_call_failed", operation=operation, error=str(exc))
        else:
            _logger.info("detached_call_finished", operation=operation)

    task.add_done_callback(_reap)


def detached_count() -> int:
    """Return how many timed-out provider calls are still running."""
    return len(_DETACHED)
