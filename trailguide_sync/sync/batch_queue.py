"""Keyed, prioritised batch queue for update checks and resync passes."""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

from pydantic import BaseModel

BatchCallback = Callable[[], Awaitable[Any]]


class BatchPriority(str, Enum):
    HIGH = "high"
    LOW = "low"


class BatchConfig(BaseModel):
    batch_size: int
    batch_delay: float


DEFAULT_BATCH_CONFIGS: Dict[BatchPriority, BatchConfig] = {
    BatchPriority.HIGH: BatchConfig(batch_size=3, batch_delay=1.0),
    BatchPriority.LOW: BatchConfig(batch_size=2, batch_delay=5.0),
}


class _BatchItem:
    def __init__(self, key: str, callback: BatchCallback, priority: BatchPriority, future: "asyncio.Future[Any]") -> None:
        self.key = key
        self.callback = callback
        self.priority = priority
        self.future = future
        self.retries = 0


class BatchQueue:
    """Runs submitted jobs in small batches, high priority first.

    Submitting a key that is still pending replaces the pending job; both
    submitters get the replacement's result. A job that raises is queued
    again up to ``max_retries`` times before its error is handed back.
    Batches of the same priority run concurrently, with ``batch_delay``
    seconds between batches while work remains.
    """

    def __init__(self, configs: Optional[Dict[BatchPriority, BatchConfig]] = None, max_retries: int = 2) -> None:
        self.configs = dict(DEFAULT_BATCH_CONFIGS)
        if configs:
            self.configs.update(configs)
        self.max_retries = max_retries
        self._queue: List[_BatchItem] = []
        self._worker: Optional["asyncio.Task[None]"] = None

    @property
    def is_processing(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def submit(
        self,
        key: str,
        callback: BatchCallback,
        priority: BatchPriority = BatchPriority.LOW,
    ) -> "asyncio.Future[Any]":
        """Queues ``callback`` under ``key`` and returns a future for its result."""

        future: Optional["asyncio.Future[Any]"] = None
        for pending in self._queue:
            if pending.key == key:
                future = pending.future
                self._queue.remove(pending)
                logging.debug("Replacing queued job %s", key)
                break
        if future is None:
            future = asyncio.get_running_loop().create_future()

        self._queue.append(_BatchItem(key, callback, priority, future))
        self._queue.sort(key=lambda item: item.priority is not BatchPriority.HIGH)
        if not self.is_processing:
            self._worker = asyncio.ensure_future(self._drain())
        return future

    def status(self) -> Dict[str, Any]:
        high = sum(1 for item in self._queue if item.priority is BatchPriority.HIGH)
        return {
            "total": len(self._queue),
            "high_priority": high,
            "low_priority": len(self._queue) - high,
            "is_processing": self.is_processing,
        }

    def clear(self) -> None:
        """Drops pending jobs and stops the worker. Waiting submitters are cancelled."""

        pending, self._queue = self._queue, []
        for item in pending:
            if not item.future.done():
                item.future.cancel()
        if self._worker is not None and not self._worker.done():
            self._worker.cancel()
        self._worker = None

    async def _drain(self) -> None:
        while self._queue:
            priority = self._queue[0].priority
            config = self.configs[priority]
            batch = [item for item in self._queue[: config.batch_size] if item.priority is priority]
            self._queue = [item for item in self._queue if item not in batch]

            await self._run_batch(batch)

            if self._queue:
                await asyncio.sleep(config.batch_delay)

    async def _run_batch(self, batch: List[_BatchItem]) -> None:
        results = await asyncio.gather(*(item.callback() for item in batch), return_exceptions=True)
        for item, result in zip(batch, results):
            if isinstance(result, asyncio.CancelledError):
                item.future.cancel()
                continue
            if not isinstance(result, Exception):
                if not item.future.done():
                    item.future.set_result(result)
                continue
            if item.retries < self.max_retries:
                item.retries += 1
                logging.warning(
                    "Batch job %s failed (retry %s/%s): %s", item.key, item.retries, self.max_retries, result
                )
                self._queue.append(item)
                continue
            logging.error("Batch job %s failed: %s", item.key, result)
            if not item.future.done():
                item.future.set_exception(result)
