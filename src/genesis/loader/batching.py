"""Bounded-concurrency task runner for per-record store work.

Wraps asyncio.Semaphore to limit how many items are in flight at once.
A stop check is consulted when an item acquires its slot, never while it
runs, so an item that has started always finishes.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, TypeVar

from genesis.observability.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Sequence

log = get_logger(__name__)

T = TypeVar("T")
Item = TypeVar("Item")


async def run_bounded(
    items: Sequence[Item],
    call_fn: Callable[[Item], Awaitable[T]],
    max_concurrency: int = 4,
    *,
    should_stop: Callable[[], bool] | None = None,
) -> tuple[list[T | None], list[int], list[tuple[int, Exception]]]:
    """Run *call_fn* over *items* with at most *max_concurrency* in flight.

    Args:
        items: Input items to process.
        call_fn: Async function taking one item.
        max_concurrency: Maximum concurrent calls; values below 1 mean 1.
        should_stop: Optional predicate checked as each item acquires its
            slot. Once it returns True, items that have not started are
            skipped; items already running are left to complete.

    Returns:
        Tuple of:
            - results: List in input order (None for failed or skipped items).
            - skipped: Indexes of items that never started.
            - errors: List of (index, exception) for failed items.
    """
    if not items:
        return [], [], []

    semaphore = asyncio.Semaphore(max(1, max_concurrency))
    results: list[T | None] = [None] * len(items)
    skipped: list[int] = []
    errors: list[tuple[int, Exception]] = []

    async def _run_one(idx: int, item: Item) -> None:
        async with semaphore:
            if should_stop is not None and should_stop():
                skipped.append(idx)
                return
            try:
                results[idx] = await call_fn(item)
            except Exception as e:
                errors.append((idx, e))
                log.warning("batch_item_failed", index=idx, error=str(e))

    tasks = [asyncio.create_task(_run_one(i, item)) for i, item in enumerate(items)]
    await asyncio.gather(*tasks)

    skipped.sort()
    errors.sort(key=lambda pair: pair[0])
    return results, skipped, errors
