from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Awaitable, Callable, Dict, List, Optional, Tuple

from project_service.dal.common import utcnow
from project_service.models import CleanupJob, JobStatus

logger = logging.getLogger("project_service.services.cleanup")

JobFactory = Callable[[], Awaitable[None]]

TERMINAL = (JobStatus.succeeded, JobStatus.failed)


class CleanupQueue:
    """
    In-process queue for follow-up work of a request (e.g. purging a deleted
    project's services). Each submission gets a job id whose status can be
    polled; failures are recorded on the job. At most `retain` finished jobs
    are kept; the oldest are forgotten first.
    """

    def __init__(self, workers: int = 2, *, retain: int = 1000):
        self._workers = workers
        self._retain = retain
        self._queue: "asyncio.Queue[Tuple[str, JobFactory]]" = asyncio.Queue()
        self._jobs: Dict[str, CleanupJob] = {}
        self._tasks: List[asyncio.Task] = []

    async def start(self) -> None:
        if self._tasks:
            return
        self._tasks = [asyncio.create_task(self._worker(i)) for i in range(self._workers)]
        logger.info("Cleanup queue started with %d workers", self._workers)

    async def stop(self) -> None:
        for t in self._tasks:
            t.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        logger.info("Cleanup queue stopped (%d jobs pending)", self._queue.qsize())

    def submit(self, name: str, factory: JobFactory) -> CleanupJob:
        job = CleanupJob(id=uuid.uuid4().hex, name=name)
        self._jobs[job.id] = job
        self._queue.put_nowait((job.id, factory))
        logger.info("Cleanup job %s submitted (%s)", job.id, name)
        return job

    def get(self, job_id: str) -> Optional[CleanupJob]:
        return self._jobs.get(job_id)

    async def join(self) -> None:
        """Wait until every submitted job has finished."""
        await self._queue.join()

    async def _worker(self, idx: int) -> None:
        while True:
            job_id, factory = await self._queue.get()
            job = self._jobs[job_id]
            job.status = JobStatus.running
            try:
                await factory()
            except Exception as e:
                job.status = JobStatus.failed
                job.error = str(e)
                logger.exception("Cleanup job %s (%s) failed on worker %d", job.id, job.name, idx)
            else:
                job.status = JobStatus.succeeded
                logger.info("Cleanup job %s (%s) done", job.id, job.name)
            finally:
                job.finished_at = utcnow()
                self._evict_finished()
                self._queue.task_done()

    def _evict_finished(self) -> None:
        finished = [job_id for job_id, job in self._jobs.items() if job.status in TERMINAL]
        for job_id in finished[: max(0, len(finished) - self._retain)]:
            del self._jobs[job_id]
