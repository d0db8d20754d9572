"""Bounded concurrency for async tasks.

A fixed pool of worker coroutines drains a FIFO queue of zero-argument
coroutine functions. At most `limit` tasks run at once, tasks start in input
order, and each outcome is recorded on its own: a failing task never cancels
its siblings.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import (
    Any,
    Awaitable,
    Callable,
    Coroutine,
    Generic,
    List,
    Optional,
    Sequence,
    Tuple,
    TypeVar,
)

from reading_plan.core.errors import ValidationError

T = TypeVar("T")

TaskFn = Callable[[], Awaitable[T]]


@dataclass(frozen=True)
class Outcome(Generic[T]):
    index: int
    value: Optional[T] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def run_bounded(
    tasks: Sequence[TaskFn[T]], limit: int
) -> Coroutine[Any, Any, List[Outcome[T]]]:
    """Return a coroutine running `tasks` with at most `limit` in flight.

    The limit is checked here, synchronously, so a bad value is rejected
    before anything is scheduled. Outcomes come back in input order.
    """
    if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
        raise ValidationError(f"concurrency limit must be an integer >= 1, got {limit!r}")
    return _run(list(tasks), limit)


async def _run(tasks: List[TaskFn[T]], limit: int) -> List[Outcome[T]]:
    if not tasks:
        return []

    queue: asyncio.Queue[Tuple[int, TaskFn[T]]] = asyncio.Queue()
    for item in enumerate(tasks):
        queue.put_nowait(item)

    outcomes: List[Optional[Outcome[T]]] = [None] * len(tasks)

    async def worker() -> None:
        while True:
            try:
                index, fn = queue.get_nowait()
            except asyncio.QueueEmpty:
                return
            try:
                outcomes[index] = Outcome(index=index, value=await fn())
            except Exception as exc:
                outcomes[index] = Outcome(index=index, error=exc)
            finally:
                queue.task_done()

    workers = [asyncio.create_task(worker()) for _ in range(min(limit, len(tasks)))]
    await asyncio.gather(*workers)
    return [o for o in outcomes if o is not None]
