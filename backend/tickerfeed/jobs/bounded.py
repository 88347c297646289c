from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Sequence, TypeVar

from tickerfeed.common.logging import log, setup_logger

T = TypeVar("T")

logger = setup_logger("jobs")


async def map_bounded(
    items: Sequence[T],
    limit: int,
    task: Callable[[T], Awaitable[Any]],
    default: Any = 0,
) -> list[Any]:
    """Run ``task`` over ``items`` with at most ``limit`` calls in flight.

    Results keep the input order. A failing item yields ``default`` and never
    stops the other items.
    """

    results: list[Any] = [default] * len(items)
    next_index = 0

    async def _worker() -> None:
        nonlocal next_index
        while next_index < len(items):
            current = next_index
            next_index += 1
            try:
                results[current] = await task(items[current])
            except Exception as exc:  # noqa: BLE001 - one symbol never aborts the batch
                log(
                    logger,
                    logging.WARNING,
                    "bounded_task_failed",
                    item=str(items[current]),
                    error=str(exc),
                    error_type=exc.__class__.__name__,
                )
                results[current] = default

    worker_count = min(max(1, limit), len(items))
    await asyncio.gather(*(_worker() for _ in range(worker_count)))
    return results
