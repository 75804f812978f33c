"""
Repair Workers

Background workers consuming the repair queue. A failing task is
logged and counted; it never stops the worker or reaches the writer.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional

from opentelemetry import trace

from ...constants import get_current_timestamp
from .tasks import RepairQueue, RepairTask

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

TaskHandler = Callable[[RepairTask], Awaitable[Any]]


class RepairWorker:
    """
    Single queue consumer.

    Handles task execution and failure isolation.
    """

    def __init__(self, worker_id: str, queue: RepairQueue, handler: TaskHandler):
        """
        Initialize repair worker.

        Args:
            worker_id: Unique worker identifier
            queue: Queue to consume
            handler: Coroutine function processing one task
        """
        self.worker_id = worker_id
        self.queue = queue
        self.handler = handler

        self._running = False
        self._current_task: Optional[RepairTask] = None
        self._stats: Dict[str, Any] = {
            "tasks_processed": 0,
            "tasks_failed": 0,
            "tasks_completed": 0,
            "start_time": None,
            "last_activity": None,
        }

    @property
    def busy(self) -> bool:
        return self._current_task is not None

    async def run(self) -> None:
        """Consume tasks until cancelled."""
        self._running = True
        self._stats["start_time"] = get_current_timestamp()
        logger.info(f"Starting repair worker {self.worker_id}")

        try:
            while self._running:
                task = await self.queue.get()
                try:
                    await self._process_task(task)
                finally:
                    self.queue.task_done()
        except asyncio.CancelledError:
            logger.info(f"Repair worker {self.worker_id} cancelled")
            raise
        finally:
            self._running = False

    async def _process_task(self, task: RepairTask) -> None:
        self._current_task = task
        self._stats["last_activity"] = get_current_timestamp()

        with tracer.start_as_current_span("repair_worker.process_task") as span:
            span.set_attribute("worker_id", self.worker_id)
            span.set_attribute("task_id", str(task.task_id))
            span.set_attribute("entity_type", task.entity_type.value)

            try:
                await self.handler(task)
                self._stats["tasks_completed"] += 1
            except Exception as e:
                self._stats["tasks_failed"] += 1
                span.set_status(trace.Status(trace.StatusCode.ERROR, str(e)))
                logger.exception(
                    f"Repair task {task.task_id} failed in worker {self.worker_id}",
                    extra=task.log_context(),
                )
            finally:
                self._current_task = None
                self._stats["tasks_processed"] += 1

    def get_stats(self) -> Dict[str, Any]:
        """Get worker statistics."""
        runtime = None
        start_time: Optional[datetime] = self._stats["start_time"]
        if start_time:
            runtime = (get_current_timestamp() - start_time).total_seconds()

        return {
            "worker_id": self.worker_id,
            "running": self._running,
            "busy": self.busy,
            "stats": self._stats.copy(),
            "runtime_seconds": runtime,
        }


class RepairWorkerPool:
    """
    Pool of repair workers sharing one queue.

    start() spawns the workers; stop() drains the queue within the grace
    period and then cancels the workers.
    """

    def __init__(
        self,
        queue: RepairQueue,
        handler: TaskHandler,
        worker_count: int = 2,
        pool_name: str = "repair",
    ):
        self.queue = queue
        self.handler = handler
        self.worker_count = worker_count
        self.pool_name = pool_name

        self._workers: List[RepairWorker] = []
        self._tasks: List[asyncio.Task] = []
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the worker pool."""
        if self._running:
            return

        self._running = True
        for i in range(self.worker_count):
            worker = RepairWorker(f"{self.pool_name}-{i}", self.queue, self.handler)
            self._workers.append(worker)
            self._tasks.append(
                asyncio.create_task(worker.run(), name=worker.worker_id)
            )

        logger.info(
            f"Worker pool {self.pool_name} started with {len(self._workers)} workers"
        )

    async def stop(self, graceful_timeout: float = 10.0) -> None:
        """
        Stop the worker pool.

        Args:
            graceful_timeout: Seconds to wait for queued tasks to finish
        """
        if not self._running:
            return

        logger.info(f"Stopping worker pool {self.pool_name}")
        self._running = False

        try:
            await asyncio.wait_for(self.queue.join(), timeout=graceful_timeout)
        except asyncio.TimeoutError:
            logger.warning(
                f"Worker pool {self.pool_name} shutdown timeout, "
                f"{self.queue.qsize()} tasks still queued"
            )

        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)

        self._tasks.clear()
        self._workers.clear()
        logger.info(f"Worker pool {self.pool_name} stopped")

    async def drain(self) -> None:
        """Wait until the queue is empty and all tasks are processed."""
        await self.queue.join()

    def get_pool_stats(self) -> Dict[str, Any]:
        """Get worker pool statistics."""
        total_stats: Dict[str, Any] = {
            "pool_name": self.pool_name,
            "running": self._running,
            "total_workers": len(self._workers),
            "total_processed": 0,
            "total_completed": 0,
            "total_failed": 0,
            "queue": self.queue.get_stats(),
            "workers": [],
        }

        for worker in self._workers:
            worker_stats = worker.get_stats()
            total_stats["workers"].append(worker_stats)
            total_stats["total_processed"] += worker_stats["stats"]["tasks_processed"]
            total_stats["total_completed"] += worker_stats["stats"]["tasks_completed"]
            total_stats["total_failed"] += worker_stats["stats"]["tasks_failed"]

        return total_stats
