# src/app/services/bulk_scan.py
"""
Bounded-concurrency processing of a batch of photo scans.

A fixed number of workers drain a shared queue, so at most
`concurrency_limit` files are in flight at any time. A per-file failure is
tallied and never stops the batch. Cancelling stops new files from
starting; files already in flight finish.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Generic, Optional, Sequence, TypeVar

from src.app.constants import BULK_SCAN_CONCURRENCY
from src.app.domain.models import BatchState, BulkScanResult

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Returns the new recipe id, or None when the file was skipped after cancellation
PerFileFn = Callable[[T], Awaitable[Optional[str]]]


class BulkScanCoordinator(Generic[T]):
    def __init__(self, concurrency_limit: int = BULK_SCAN_CONCURRENCY):
        if concurrency_limit < 1:
            raise ValueError("concurrency_limit must be at least 1")
        self.concurrency_limit = concurrency_limit
        self.state = BatchState.IDLE
        self._cancel_event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def cancel(self) -> bool:
        """Request cancellation. Returns False if the batch already finished."""
        if self.state == BatchState.DONE:
            return False
        self._cancel_event.set()
        self.state = BatchState.CANCELLING
        logger.info("Bulk scan cancellation requested")
        return True

    async def run(self, files: Sequence[T], per_file: PerFileFn) -> BulkScanResult:
        if self.state != BatchState.IDLE:
            raise RuntimeError(f"Batch already {self.state.value}")

        result = BulkScanResult()
        queue: asyncio.Queue[tuple[int, T]] = asyncio.Queue()
        for index, item in enumerate(files):
            queue.put_nowait((index, item))

        if not self.cancelled:
            self.state = BatchState.RUNNING

        async def worker() -> None:
            while True:
                if self.cancelled:
                    return
                try:
                    index, item = queue.get_nowait()
                except asyncio.QueueEmpty:
                    if self.state == BatchState.RUNNING:
                        self.state = BatchState.DRAINING
                    return

                try:
                    recipe_id = await per_file(item)
                except Exception as err:
                    result.failed_count += 1
                    logger.warning("Bulk scan file failed: index=%d, error=%s", index, err)
                else:
                    if recipe_id is not None:
                        result.succeeded.append(recipe_id)

        worker_count = min(self.concurrency_limit, len(files))
        await asyncio.gather(*(worker() for _ in range(worker_count)))

        result.cancelled = self.cancelled
        self.state = BatchState.DONE

        logger.info(
            "Bulk scan finished: total=%d, succeeded=%d, failed=%d, cancelled=%s",
            len(files),
            len(result.succeeded),
            result.failed_count,
            result.cancelled,
        )
        return result


class BatchRegistry:
    """Running batches by (owner, batch id), so another request can cancel one."""

    def __init__(self) -> None:
        self._batches: dict[tuple[str, str], BulkScanCoordinator] = {}

    def register(self, owner_id: str, batch_id: str, coordinator: BulkScanCoordinator) -> None:
        self._batches[(owner_id, batch_id)] = coordinator

    def discard(self, owner_id: str, batch_id: str) -> None:
        self._batches.pop((owner_id, batch_id), None)

    def cancel(self, owner_id: str, batch_id: str) -> bool:
        coordinator = self._batches.get((owner_id, batch_id))
        if coordinator is None:
            return False
        return coordinator.cancel()
