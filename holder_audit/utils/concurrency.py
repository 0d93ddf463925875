import asyncio
from collections.abc import Awaitable, Callable, Iterable
from typing import Any, TypeVar

T = TypeVar("T")
R = TypeVar("R")


async def bounded_gather(
    items: Iterable[T],
    worker: Callable[[T], Awaitable[R]],
    *,
    limit: int,
    return_exceptions: bool = False,
) -> list[R | BaseException] | list[R]:
    """Run worker(item) for every item with at most `limit` in flight.

    Results keep input order. Excess items queue on the semaphore until a
    slot frees.
    """
    semaphore = asyncio.Semaphore(max(limit, 1))

    async def _run(item: T) -> R:
        async with semaphore:
            return await worker(item)

    tasks: list[Any] = [_run(item) for item in items]
    return await asyncio.gather(*tasks, return_exceptions=return_exceptions)
