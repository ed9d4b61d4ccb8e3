from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Generic, Iterable, List, Optional, TypeVar

from project_service.errors import AggregateError

logger = logging.getLogger("project_service.services.fanout")

T = TypeVar("T")
R = TypeVar("R")

DEFAULT_LIMIT = 20


class BoundedFanOut(Generic[T, R]):
    """
    Runs one task per item with at most `limit` workers in flight.

    Every task runs to completion; results and errors are collected under a
    lock. If any task failed the whole batch fails with an AggregateError
    holding every cause, otherwise all non-None results are returned in
    completion order.
    """

    def __init__(self, limit: int = DEFAULT_LIMIT, *, name: str = "fan-out"):
        if limit < 1:
            raise ValueError("limit must be >= 1")
        self.limit = limit
        self.name = name

    async def run(self, items: Iterable[T], worker: Callable[[T], Awaitable[Optional[R]]]) -> List[R]:
        sem = asyncio.Semaphore(self.limit)
        lock = asyncio.Lock()
        results: List[R] = []
        errors: List[BaseException] = []

        async def _one(item: T) -> None:
            async with sem:
                try:
                    res = await worker(item)
                except Exception as e:
                    logger.error("%s: item %r failed: %s", self.name, item, e)
                    async with lock:
                        errors.append(e)
                    return
            if res is not None:
                async with lock:
                    results.append(res)

        tasks = [asyncio.create_task(_one(item)) for item in items]
        if tasks:
            await asyncio.gather(*tasks)

        if errors:
            raise AggregateError(errors)
        return results
