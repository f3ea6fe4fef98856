"""Async concurrency primitives used by the check scheduler."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Generic, TypeVar

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Iterable

T = TypeVar("T")
K = TypeVar("K")


class BoundedSemaphore:
    """Small wrapper over ``asyncio.Semaphore`` with usage diagnostics."""

    def __init__(self, limit: int) -> None:
        if limit <= 0:
            raise ValueError("limit must be > 0")
        self._limit = limit
        self._semaphore = asyncio.Semaphore(limit)
        self._in_use = 0

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def in_use(self) -> int:
        return self._in_use

    async def acquire(self) -> None:
        await self._semaphore.acquire()
        self._in_use += 1

    def release(self) -> None:
        if self._in_use <= 0:
            raise RuntimeError("release called more times than acquire")
        self._in_use -= 1
        self._semaphore.release()

    @asynccontextmanager
    async def permit(self) -> AsyncIterator[None]:
        await self.acquire()
        try:
            yield
        finally:
            self.release()


@dataclass(frozen=True, slots=True)
class Settled(Generic[K, T]):
    """Outcome of one fanned-out job: exactly one of ``value``/``error`` is meaningful."""

    key: K
    value: T | None = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(slots=True)
class WorkerPool(Generic[K, T]):
    """Run keyed coroutines with bounded concurrency and yield outcomes as they settle.

    A failing job never cancels its siblings; its exception is reported as a
    ``Settled`` entry carrying ``error``. Cancellation of the consumer cancels every
    in-flight job.
    """

    max_concurrency: int
    _semaphore: BoundedSemaphore = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if self.max_concurrency <= 0:
            raise ValueError("max_concurrency must be > 0")
        self._semaphore = BoundedSemaphore(self.max_concurrency)

    async def run_settled(
        self, jobs: Iterable[tuple[K, Awaitable[T]]]
    ) -> AsyncIterator[Settled[K, T]]:
        tasks: dict[asyncio.Task[T], K] = {}
        for key, coroutine in jobs:
            tasks[asyncio.create_task(self._run_one(coroutine))] = key

        pending: set[asyncio.Task[T]] = set(tasks)
        try:
            while pending:
                done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
                for task in done:
                    key = tasks[task]
                    if task.cancelled():
                        yield Settled(key=key, error=asyncio.CancelledError("job cancelled"))
                        continue
                    exc = task.exception()
                    if exc is not None:
                        yield Settled(key=key, error=exc)
                    else:
                        yield Settled(key=key, value=task.result())
        finally:
            if pending:
                await self._cancel_all(pending)

    async def _run_one(self, coroutine: Awaitable[T]) -> T:
        async with self._semaphore.permit():
            return await coroutine

    async def _cancel_all(self, tasks: set[asyncio.Task[T]]) -> None:
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)


__all__ = [
    "BoundedSemaphore",
    "Settled",
    "WorkerPool",
]
