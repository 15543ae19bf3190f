"""
Canopy Backend: Bulk Task Queue
================================

What:  In-process worker pool that runs accepted asynchronous bulk operations.
How:   An asyncio.Queue of BulkJob messages drained by WORKER_COUNT worker
       tasks. The work itself is done by the handler given to `start()` (the
       BulkOperationCoordinator), which persists every outcome on the
       `bulk_operations` row, so callers poll results instead of losing them.
Who:   Started and stopped by the application lifespan; fed by the
       coordinator.

Shutdown:
    `stop()` waits up to WORKER_SHUTDOWN_TIMEOUT seconds for queued jobs to
    finish, logs the ids of jobs that never ran, then cancels the workers.
    Rows of unfinished jobs stay `pending`/`running` in the database.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BulkJob:
    operation_id: uuid.UUID
    member_id: uuid.UUID
    action: str
    target_ids: Tuple[uuid.UUID, ...]
    destination_id: Optional[uuid.UUID] = None
    changes: Optional[Dict[str, Any]] = None


JobHandler = Callable[[BulkJob], Awaitable[None]]


class BulkTaskQueue:
    def __init__(self, worker_count: int = 4, shutdown_timeout: float = 10.0):
        self.worker_count = worker_count
        self.shutdown_timeout = shutdown_timeout
        self._queue: "asyncio.Queue[BulkJob]" = asyncio.Queue()
        self._workers: List[asyncio.Task] = []
        self._handler: Optional[JobHandler] = None

    @property
    def is_running(self) -> bool:
        return any(not w.done() for w in self._workers)

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    async def start(self, handler: JobHandler) -> None:
        if self.is_running:
            return
        self._handler = handler
        self._workers = [
            asyncio.create_task(self._work(n), name=f"bulk-worker-{n}")
            for n in range(self.worker_count)
        ]
        logger.info("Bulk task queue started with %d worker(s)", self.worker_count)

    async def enqueue(self, job: BulkJob) -> None:
        await self._queue.put(job)
        logger.info(
            "Queued %s operation %s (%d target(s)), %d waiting",
            job.action, job.operation_id, len(job.target_ids), self._queue.qsize(),
        )

    async def _work(self, number: int) -> None:
        while True:
            job = await self._queue.get()
            try:
                logger.debug("Worker %d picked operation %s", number, job.operation_id)
                await self._handler(job)
            except asyncio.CancelledError:
                raise
            except Exception:
                # One broken job must not take the worker down with it
                logger.exception("Bulk operation %s crashed", job.operation_id)
            finally:
                self._queue.task_done()

    async def stop(self) -> None:
        if not self._workers:
            return
        try:
            await asyncio.wait_for(self._queue.join(), timeout=self.shutdown_timeout)
        except asyncio.TimeoutError:
            unfinished = []
            while not self._queue.empty():
                unfinished.append(str(self._queue.get_nowait().operation_id))
                self._queue.task_done()
            logger.warning(
                "Shutdown timeout reached; %d queued operation(s) never ran: %s",
                len(unfinished), ", ".join(unfinished) or "-",
            )

        for worker in self._workers:
            worker.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        logger.info("Bulk task queue stopped")
