# workscore/utils/concurrency.py
import asyncio
from typing import Awaitable, Callable, Iterable, List, TypeVar

T = TypeVar("T")
R = TypeVar("R")


async def gather_bounded(
    items: Iterable[T],
    worker: Callable[[T], Awaitable[R]],
    limit: int,
) -> List[R]:
    """Run `worker` over `items` with at most `limit` in flight; results keep input order.

    Exceptions raised by `worker` propagate; callers that need per-item
    isolation catch inside the worker.
    """
    sem = asyncio.Semaphore(max(1, limit))

    async def _limited(item: T) -> R:
        async with sem:
            return await worker(item)

    return list(await asyncio.gather(*(_limited(item) for item in items)))
