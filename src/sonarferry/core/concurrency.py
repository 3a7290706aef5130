"""Bounded-concurrency helpers for I/O fan-out.

All network work runs on one event loop; a semaphore caps how many
coroutines are in flight at once. Completion order is not preserved by
callers that only aggregate counts, but results are always returned in
input order.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Generic, TypeVar

import structlog

log = structlog.get_logger(__name__)

T = TypeVar("T")
R = TypeVar("R")

ProgressCallback = Callable[[int, int], None]


@dataclass(frozen=True, slots=True)
class Outcome(Generic[R]):
    """Settled result of one item: either a value or the raised error."""

    value: R | None = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


async def map_concurrent(
    items: Sequence[T],
    fn: Callable[[T], Awaitable[R]],
    *,
    concurrency: int = 8,
    on_progress: ProgressCallback | None = None,
) -> list[Outcome[R]]:
    """Run ``fn`` over ``items`` with at most ``concurrency`` in flight.

    Never raises for item failures: each item settles into an ``Outcome``.
    Cancellation of the caller still propagates.
    """
    if not items:
        return []

    sem = asyncio.Semaphore(max(1, concurrency))
    total = len(items)
    completed = 0

    async def run(item: T) -> Outcome[R]:
        nonlocal completed
        async with sem:
            try:
                result = Outcome(value=await fn(item))
            except Exception as e:
                result = Outcome(error=e)
        completed += 1
        if on_progress is not None:
            on_progress(completed, total)
        return result

    return list(await asyncio.gather(*(run(item) for item in items)))


def progress_logger(label: str, total: int) -> ProgressCallback:
    """Log progress roughly every 10% (at least every 10 items)."""
    interval = max(10, total // 10)

    def report(completed: int, _total: int) -> None:
        if completed % interval == 0 or completed == total:
            log.info(
                "progress",
                label=label,
                completed=completed,
                total=total,
                percent=round(completed / total * 100) if total else 100,
            )

    return report
