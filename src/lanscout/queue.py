# lanscout - Scan Queue
"""
Single-worker job queue with per-target deduplication.

Jobs are keyed by a deterministic id (``<kind>-<target>``). While a job
with a given id is outstanding, further requests attach to it instead of
creating another one, and every attached caller receives the same result
through the job's shared future.
"""

import asyncio
import logging
import time
from collections import defaultdict
from contextlib import asynccontextmanager
from typing import AsyncIterator

from .errors import ProcessError
from .executor import ScanExecutor
from .models import Job, JobState, ScanKind, ScanResult
from .store import JobStore

logger = logging.getLogger("lanscout.queue")


class KeyedLock:
    """Named asyncio locks, created on first use."""

    def __init__(self):
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    @asynccontextmanager
    async def acquire(self, name: str) -> AsyncIterator[None]:
        async with self._locks[name]:
            yield

    def locked(self, name: str) -> bool:
        return name in self._locks and self._locks[name].locked()


class ScanQueue:
    """
    FIFO queue that runs at most one scan at a time.

    Finished jobs, successful or not, are removed from both the job table
    and the store, so a new request for the same target after completion
    always creates a fresh job.
    """

    def __init__(
        self,
        executor: ScanExecutor,
        store: JobStore | None = None,
        name: str = "nmap",
        health_interval: float = 60.0,
    ):
        self.executor = executor
        self.store = store or JobStore()
        self.name = name
        self.health_interval = health_interval

        self._jobs: dict[str, Job] = {}
        self._pending: asyncio.Queue[str] = asyncio.Queue()
        self._worker: asyncio.Task | None = None
        self._health: asyncio.Task | None = None

        self.completed = 0
        self.failed = 0

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    @property
    def outstanding(self) -> int:
        """Jobs created but not yet finished."""
        return len(self._jobs)

    async def start(self) -> None:
        """Discard jobs left behind by a previous process and start the worker."""
        if self.running:
            logger.warning(f"Queue {self.name} already running")
            return

        stale = await self.store.load()
        if stale:
            logger.warning(f"Queue {self.name}: discarding {len(stale)} stale jobs: {[j.id for j in stale]}")
        await self.store.clear()

        self._worker = asyncio.create_task(self._worker_loop(), name=f"{self.name}-worker")
        self._health = asyncio.create_task(self._health_loop(), name=f"{self.name}-health")
        logger.info(f"Queue {self.name} started")

    async def stop(self) -> None:
        """Stop the worker and fail every unfinished job."""
        for task in (self._worker, self._health):
            if task is not None:
                task.cancel()
        for task in (self._worker, self._health):
            if task is not None:
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._worker = None
        self._health = None

        for job in list(self._jobs.values()):
            self._finish(job, error=ProcessError("Scan queue stopped"))
        self._jobs.clear()
        await self.store.clear()
        logger.info(f"Queue {self.name} stopped")

    async def get_job(self, job_id: str) -> Job | None:
        return self._jobs.get(job_id)

    async def create_job(
        self,
        job_id: str,
        kind: ScanKind,
        target: str,
        command: str,
        timeout: float,
        require_mac: bool = True,
    ) -> Job:
        job = Job(
            id=job_id,
            kind=kind,
            target=target,
            command=command,
            timeout=timeout,
            require_mac=require_mac,
            future=asyncio.get_running_loop().create_future(),
        )
        self._jobs[job_id] = job
        try:
            await self.store.save(job)
        except OSError as e:
            logger.error(f"Failed to persist job {job_id}: {e}")
        self._pending.put_nowait(job_id)
        return job

    async def enqueue_or_attach(
        self,
        job_id: str,
        kind: ScanKind,
        target: str,
        command: str,
        timeout: float,
        require_mac: bool = True,
    ) -> Job:
        """
        Return the outstanding job with this id, creating it if needed.

        Not safe against concurrent callers by itself: hold the queue's
        named lock around this call.
        """
        job = await self.get_job(job_id)
        if job is None:
            logger.info(f"Creating job {job_id}")
            job = await self.create_job(job_id, kind, target, command, timeout, require_mac)
        else:
            logger.debug(f"Job {job_id} already scheduled")
        return job

    async def wait(self, job: Job) -> ScanResult:
        """
        Wait for a job's outcome. Cancelling the waiter leaves the job
        running for everybody else.
        """
        return await asyncio.shield(job.future)

    def check_health(self) -> dict[str, int]:
        counts = {state.value: 0 for state in JobState}
        for job in self._jobs.values():
            counts[job.state.value] += 1
        counts["outstanding"] = self.outstanding
        counts["completed"] = self.completed
        counts["failed"] = self.failed
        return counts

    async def _health_loop(self) -> None:
        while True:
            await asyncio.sleep(self.health_interval)
            logger.debug(f"Queue {self.name} status: {self.check_health()}")

    async def _worker_loop(self) -> None:
        while True:
            job_id = await self._pending.get()
            job = self._jobs.get(job_id)
            if job is None or job.state != JobState.CREATED:
                continue
            await self._run_job(job)

    async def _run_job(self, job: Job) -> None:
        job.state = JobState.RUNNING
        job.started_at = time.time()
        try:
            await self.store.save(job)
        except OSError as e:
            logger.error(f"Failed to persist job {job.id}: {e}")

        try:
            result = await asyncio.wait_for(
                self.executor.execute(job.command, job.require_mac),
                timeout=job.timeout,
            )
        except asyncio.TimeoutError:
            self._finish(job, error=ProcessError(f"Scan timed out after {job.timeout}s"))
        except asyncio.CancelledError:
            self._finish(job, error=ProcessError("Scan queue stopped"))
            raise
        except Exception as e:
            self._finish(job, error=e)
        else:
            logger.debug(f"Job {job.id} done: {len(result.hosts)} hosts, {len(result.ports)} ports")
            self._finish(job, result=result)
        finally:
            self._jobs.pop(job.id, None)
            try:
                await self.store.remove(job.id)
            except OSError as e:
                logger.error(f"Failed to remove job {job.id} from store: {e}")

    def _finish(self, job: Job, result: ScanResult | None = None, error: Exception | None = None) -> None:
        if job.done:
            return
        job.finished_at = time.time()
        if error is not None:
            job.state = JobState.FAILED
            job.error = str(error)
            self.failed += 1
            logger.error(f"Job {job.id} ({job.target}) failed: {error}")
            if not job.future.done():
                job.future.set_exception(error)
                # Mark retrieved so a job nobody waits on does not log
                # "exception was never retrieved"
                job.future.exception()
        else:
            job.state = JobState.SUCCEEDED
            self.completed += 1
            if not job.future.done():
                job.future.set_result(result)
