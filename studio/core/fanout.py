"""
Bounded-concurrency fan-out for independent generation tasks.

All items are launched together under a worker budget (a semaphore sized by
``settings.fanout_max_concurrent``; 0 means unbounded). Every task catches
its own exception and reports a tagged ``ItemResult``, so one failure never
cancels its siblings. The caller waits for the whole set and gets results
back in sequence order, not completion order.

Workers must not touch the Project. They return payloads; handlers turn
each ``ItemResult`` into a mutation.
"""

from __future__ import annotations

import asyncio
import logging
import time
from contextlib import AsyncExitStack
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Generic, Optional, Sequence, TypeVar

from studio.config import settings
from studio.core.tracing import TraceContext, get_trace_context, log_batch_execution, trace_span

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


@dataclass
class ItemResult(Generic[R]):
    """Outcome of one fan-out item."""
    id: str
    sequence: int
    success: bool
    payload: Optional[R] = None
    error: Optional[str] = None


@dataclass
class BatchResult(Generic[R]):
    """Aggregate of a fan-out run. ``len(results) == attempted`` always."""
    attempted: int = 0
    results: list[ItemResult[R]] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failed(self) -> int:
        return self.attempted - self.succeeded

    @property
    def successes(self) -> list[ItemResult[R]]:
        return [r for r in self.results if r.success]

    @property
    def failures(self) -> list[ItemResult[R]]:
        return [r for r in self.results if not r.success]

    def summary(self) -> dict[str, Any]:
        return {"attempted": self.attempted, "succeeded": self.succeeded, "failed": self.failed}


async def run_batch(
    items: Sequence[T],
    worker: Callable[[T], Awaitable[R]],
    *,
    key: Callable[[T], str],
    sequence: Optional[Callable[[T], int]] = None,
    max_concurrency: Optional[int] = None,
    label: str = "batch",
    trace: Optional[TraceContext] = None,
) -> BatchResult[R]:
    """Run ``worker`` over every item concurrently and wait for all of them.

    Args:
        items: Work items; may be empty.
        worker: Coroutine function producing the item's payload. Exceptions
            are caught per item and reported as failures.
        key: Item id used in the result (scene id, location id, ...).
        sequence: Sort key for the results. Defaults to position in ``items``.
        max_concurrency: Worker budget; defaults to ``settings.fanout_max_concurrent``.
            0 or less means no bound.
        label: Name for logs and the trace span.
        trace: Trace context; defaults to the current one.
    """
    if not items:
        return BatchResult(attempted=0, results=[])

    trace = trace or get_trace_context()
    budget = settings.fanout_max_concurrent if max_concurrency is None else max_concurrency
    semaphore = asyncio.Semaphore(budget) if budget > 0 else None
    started = time.perf_counter()

    async def _run_one(position: int, item: T) -> ItemResult[R]:
        item_id = key(item)
        seq = sequence(item) if sequence is not None else position
        async with AsyncExitStack() as stack:
            if semaphore is not None:
                await stack.enter_async_context(semaphore)
            try:
                payload = await worker(item)
            except Exception as e:
                logger.warning(
                    f"[{trace.short_id}] ⚠️ {label} item {item_id[:8]} failed: {type(e).__name__}: {e}"
                )
                return ItemResult(id=item_id, sequence=seq, success=False, error=str(e) or type(e).__name__)
        return ItemResult(id=item_id, sequence=seq, success=True, payload=payload)

    with trace_span(trace, f"fanout:{label}", {"items": len(items), "budget": budget}) as span:
        logger.info(
            f"[{trace.short_id}] 🚀 Fan-out {label}: {len(items)} items, "
            f"max {budget if budget > 0 else 'unbounded'} concurrent"
        )
        results = await asyncio.gather(*[_run_one(i, item) for i, item in enumerate(items)])
        batch: BatchResult[R] = BatchResult(
            attempted=len(items),
            results=sorted(results, key=lambda r: r.sequence),
        )
        span.set_attribute("succeeded", batch.succeeded)

    log_batch_execution(
        trace.trace_id,
        label,
        attempted=batch.attempted,
        succeeded=batch.succeeded,
        duration_ms=(time.perf_counter() - started) * 1000,
    )
    return batch
