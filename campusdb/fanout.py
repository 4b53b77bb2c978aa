"""Bounded-concurrency fan-out / fan-in.

``gather_bounded`` runs one worker per item inside an ``asyncio.TaskGroup``
and returns once every worker has finished. Results keep input order no
matter which worker completes first. An optional limit caps how many
workers run at the same time (the same semaphore pattern the backend
client uses to cap requests).

Example:
    >>> async def load(n: int) -> int:
    ...     return n * 2
    >>> await gather_bounded([1, 2, 3], load, limit=2)
    [2, 4, 6]
"""

import asyncio
from collections.abc import Awaitable, Callable, Iterable
from typing import TypeVar

T = TypeVar("T")
R = TypeVar("R")


async def gather_bounded(
    items: Iterable[T],
    worker: Callable[[T], Awaitable[R]],
    limit: int | None = None,
) -> list[R]:
    """Run ``worker`` over ``items`` concurrently and join all results.

    Args:
        items: Inputs, one worker each
        worker: Coroutine function applied to every item
        limit: Maximum workers in flight; ``None`` runs all at once

    Returns:
        Worker results in the order of ``items``

    Raises:
        ValueError: If ``limit`` is less than 1
        ExceptionGroup: If any worker raised (remaining workers are cancelled)
    """
    if limit is not None and limit < 1:
        raise ValueError("limit must be at least 1")

    pending = list(items)
    if not pending:
        return []

    semaphore = asyncio.Semaphore(limit or len(pending))

    async def _run(item: T) -> R:
        async with semaphore:
            return await worker(item)

    async with asyncio.TaskGroup() as group:
        tasks = [group.create_task(_run(item)) for item in pending]

    return [task.result() for task in tasks]
