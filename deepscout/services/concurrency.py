from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable
from typing import TypeVar

T = TypeVar("T")
R = TypeVar("R")


async def run_with_concurrency(
    items: Iterable[T],
    limit: int,
    worker: Callable[[T, int], Awaitable[R]],
) -> list[R]:
    """Run ``worker(item, index)`` over items with at most ``limit`` in flight.

    Results come back in input order regardless of completion order. Workers
    pull from a shared cursor until it is exhausted. A worker exception fails
    the whole call; callers that want per-item degradation catch inside the
    worker. Cancelling the caller cancels every in-flight worker.
    """
    pending = list(items)
    if not pending:
        return []

    results: list[R | None] = [None] * len(pending)
    cursor = 0

    async def pump() -> None:
        nonlocal cursor
        while cursor < len(pending):
            index = cursor
            cursor += 1
            results[index] = await worker(pending[index], index)

    pool_size = max(1, min(int(limit), len(pending)))
    await asyncio.gather(*(pump() for _ in range(pool_size)))
    return results  # type: ignore[return-value]
