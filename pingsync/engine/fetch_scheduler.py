"""PINGSYNC - Bounded Fetch Scheduler.

Runs a worker over a list of items with a fixed ceiling on concurrently
in-flight calls. A failing item never cancels or blocks its siblings: every
exception is captured in that item's outcome. Retrying is the HTTP clients'
job, not this one's.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, List, Optional, Sequence, TypeVar

from pingsync.core.logging import get_logger
from pingsync.models.sync_models import ProgressCallback

logger = get_logger("engine.scheduler")

DEFAULT_CONCURRENCY = 5

T = TypeVar("T")
R = TypeVar("R")


@dataclass
class TaskOutcome(Generic[T, R]):
    """Result of one worker call: a value or the exception it raised."""

    item: T
    value: Optional[R] = None
    error: Optional[Exception] = None
    duration_ms: float = 0.0

    @property
    def ok(self) -> bool:
        return self.error is None


async def run_all(
    items: Sequence[T],
    worker: Callable[[T], Awaitable[R]],
    concurrency_limit: int = DEFAULT_CONCURRENCY,
    on_progress: Optional[ProgressCallback] = None,
) -> List[TaskOutcome[T, R]]:
    """Run ``worker`` on every item, at most ``concurrency_limit`` at a time.

    Returns one outcome per item, in input order. Cancellation of the caller
    still propagates; only ``Exception`` subclasses are captured.
    """
    if concurrency_limit < 1:
        raise ValueError(f"concurrency_limit must be >= 1, got {concurrency_limit}")

    total = len(items)
    sem = asyncio.Semaphore(concurrency_limit)
    done = 0

    async def _run_one(item: T) -> TaskOutcome[T, R]:
        nonlocal done
        async with sem:
            started = time.perf_counter()
            try:
                value = await worker(item)
                outcome: TaskOutcome[T, R] = TaskOutcome(item=item, value=value)
            except Exception as exc:
                outcome = TaskOutcome(item=item, error=exc)
            outcome.duration_ms = round((time.perf_counter() - started) * 1000, 1)
            logger.debug(
                f"Work item {'ok' if outcome.ok else 'failed'} in {outcome.duration_ms}ms",
                extra={"duration_ms": outcome.duration_ms},
            )

        done += 1
        if on_progress is not None:
            on_progress(done, total)
        return outcome

    outcomes = await asyncio.gather(*(_run_one(item) for item in items))
    failed = sum(1 for o in outcomes if not o.ok)
    if failed:
        logger.warning(f"{failed}/{total} work items failed")
    return list(outcomes)
