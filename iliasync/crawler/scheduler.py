"""
Crawl scheduler: a bounded pool of workers consuming a shared task queue.

Handlers submit child tasks back into the queue, so crawl depth never grows
the call stack, and a single job limit is shared by the whole tree.
"""

import asyncio
import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable, Dict, List, Optional

from ..utils.logger import get_crawler_logger
from .objects import ContentNode


@dataclass
class CrawlTask:
    """A node to sync and the path it is synced to."""
    path: Path
    node: ContentNode


@dataclass
class CrawlStats:
    """Statistics for a sync run."""
    start_time: float
    tasks_processed: int = 0
    errors: int = 0
    files_downloaded: int = 0
    videos_downloaded: int = 0
    posts_written: int = 0
    bytes_written: int = 0

    @property
    def elapsed_time(self) -> float:
        return time.time() - self.start_time


class OutstandingWork:
    """
    Counts submitted and running tasks.

    Only touched from the event loop thread and never across an ``await``,
    so no lock is required.
    """

    def __init__(self):
        self.queued = 0
        self.running = 0
        self.peak_running = 0

    def submitted(self):
        self.queued += 1

    @contextmanager
    def dispatched(self):
        """Mark a task as running until the block exits, however it exits."""
        self.running += 1
        self.peak_running = max(self.peak_running, self.running)
        try:
            yield
        finally:
            self.running -= 1
            self.queued -= 1


TaskProcessor = Callable[[CrawlTask], Awaitable[None]]


class CrawlScheduler:
    """
    Runs crawl tasks with at most ``job_limit`` of them in flight.
    """

    def __init__(self, job_limit: int):
        if job_limit < 1:
            raise ValueError("job_limit must be at least 1")
        self.job_limit = job_limit
        self.logger = logging.getLogger(__name__)

        self.queue: "asyncio.Queue[CrawlTask]" = asyncio.Queue()
        self.work = OutstandingWork()
        self.stats = CrawlStats(start_time=time.time())
        self.workers: List[asyncio.Task] = []
        self._process: Optional[TaskProcessor] = None

    def submit(self, task: CrawlTask):
        """Register a task. Callable from handlers and from the driver."""
        self.work.submitted()
        self.queue.put_nowait(task)

    def start(self, process: TaskProcessor):
        """Spawn the worker pool."""
        if self.workers:
            self.logger.warning("Scheduler is already running")
            return
        self._process = process
        self.stats = CrawlStats(start_time=time.time())
        self.workers = [
            asyncio.create_task(self._worker(f"worker-{i}"))
            for i in range(self.job_limit)
        ]
        self.logger.debug(f"Started {self.job_limit} workers")

    async def await_completion(self):
        """Block until every submitted task, including children, has finished."""
        await self.queue.join()

    async def _worker(self, worker_id: str):
        """Worker coroutine that processes tasks from the queue."""
        self.logger.debug(f"Worker {worker_id} started")
        while True:
            task = await self.queue.get()
            try:
                with self.work.dispatched():
                    await self._run(task)
            finally:
                self.queue.task_done()

    async def _run(self, task: CrawlTask):
        """Process one task. Errors stay contained to this task."""
        try:
            await self._process(task)
            self.stats.tasks_processed += 1
        except Exception as e:
            self.stats.errors += 1
            task_logger = get_crawler_logger(__name__, path=str(task.path), kind=task.node.kind.label)
            task_logger.error(f"Error syncing {task.path}: {e}", exc_info=True)

    async def close(self):
        """Cancel and reap the worker tasks."""
        if self.workers:
            for worker in self.workers:
                if not worker.done():
                    worker.cancel()
            await asyncio.gather(*self.workers, return_exceptions=True)
            self.workers.clear()
            self.logger.debug("Workers stopped")

    def get_stats(self) -> Dict:
        """Get current crawl statistics."""
        return {
            'tasks_processed': self.stats.tasks_processed,
            'errors': self.stats.errors,
            'files_downloaded': self.stats.files_downloaded,
            'videos_downloaded': self.stats.videos_downloaded,
            'posts_written': self.stats.posts_written,
            'bytes_written': self.stats.bytes_written,
            'elapsed_time': self.stats.elapsed_time,
            'queued': self.work.queued,
            'running': self.work.running,
            'peak_running': self.work.peak_running,
        }
