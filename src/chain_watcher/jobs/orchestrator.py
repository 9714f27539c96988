"""StartJobs - validates job definitions and runs one task per job."""

from __future__ import annotations

import asyncio
import logging
from collections import Counter
from datetime import datetime, timezone

from chain_watcher.errors import ConfigurationError
from chain_watcher.interfaces.jobs import JobRepository
from chain_watcher.interfaces.runnable import Handler, Runnable
from chain_watcher.jobs.healthcheck import HEALTHCHECK_JOB_ID
from chain_watcher.models.jobs import JobDefinition, JobExecution, JobState

log = logging.getLogger(__name__)


class StartJobs:
    """Starts every non-paused job, up to ``max_concurrent_jobs``, and the RPC
    healthcheck.

    All jobs are validated and built before any of them starts, so a bad
    definition aborts startup without leaving half the jobs running.
    """

    def __init__(self, repo: JobRepository, max_concurrent_jobs: int = 10) -> None:
        self._repo = repo
        self._max_concurrent_jobs = max_concurrent_jobs
        self._runnables: dict[str, Runnable] = {}
        self._tasks: dict[str, asyncio.Task[None]] = {}
        self._executions: dict[str, JobExecution] = {}

    async def run(self) -> list[JobExecution]:
        """Start jobs that are not running yet and stop jobs that became paused.

        Safe to call repeatedly: a job id never has more than one task.
        """
        jobs = await self._repo.get_job_definitions()
        self._check_ids(jobs)

        for job in jobs:
            if job.paused:
                if self._is_running(job.id):
                    await self._stop_job(job.id)
                log.info("Job %s is paused, skipping", job.id)

        active = [job for job in jobs if not job.paused]
        prepared: list[tuple[JobDefinition, Runnable, list[Handler]]] = []
        for job in active:
            if self._is_running(job.id):
                continue
            if self._running_jobs() + len(prepared) >= self._max_concurrent_jobs:
                log.info(
                    "Max concurrent jobs reached (%d), not starting %s",
                    self._max_concurrent_jobs, job.id,
                )
                break
            handlers = await self._repo.get_handlers(job)
            if not handlers:
                raise ConfigurationError(f"No handlers for job {job.id}")
            prepared.append((job, self._repo.get_source(job), handlers))

        for job, runnable, handlers in prepared:
            self._start(job.id, job.chain, runnable, handlers)

        if not self._is_running(HEALTHCHECK_JOB_ID):
            self._start(HEALTHCHECK_JOB_ID, "all", self._repo.get_healthcheck(jobs), [])
        log.info("Started %d jobs, %d running", len(prepared), self._running_jobs())
        return self.executions()

    async def stop(self) -> None:
        for runnable in self._runnables.values():
            await runnable.stop()
        if self._tasks:
            await asyncio.gather(*self._tasks.values(), return_exceptions=True)

    def executions(self) -> list[JobExecution]:
        return list(self._executions.values())

    async def wait(self) -> None:
        """Block until every job task has ended."""
        if self._tasks:
            await asyncio.gather(*self._tasks.values(), return_exceptions=True)

    # ── Internals ──────────────────────────────────────────

    @staticmethod
    def _check_ids(jobs: list[JobDefinition]) -> None:
        counts = Counter(job.id for job in jobs)
        duplicates = sorted(job_id for job_id, n in counts.items() if n > 1)
        if duplicates:
            raise ConfigurationError(f"Job ids must be unique: {', '.join(duplicates)}")
        if HEALTHCHECK_JOB_ID in counts:
            raise ConfigurationError(f"Job id {HEALTHCHECK_JOB_ID} is reserved")

    def _is_running(self, job_id: str) -> bool:
        task = self._tasks.get(job_id)
        return task is not None and not task.done()

    def _running_jobs(self) -> int:
        return sum(
            1 for job_id in self._tasks
            if job_id != HEALTHCHECK_JOB_ID and self._is_running(job_id)
        )

    async def _stop_job(self, job_id: str) -> None:
        log.info("Stopping job %s", job_id)
        await self._runnables.pop(job_id).stop()
        await asyncio.gather(self._tasks.pop(job_id), return_exceptions=True)
        self._executions.pop(job_id, None)

    def _start(
        self, job_id: str, chain: str, runnable: Runnable, handlers: list[Handler]
    ) -> None:
        execution = JobExecution(
            job_id=job_id,
            chain=chain,
            started_at=datetime.now(timezone.utc).isoformat(),
        )
        task = asyncio.create_task(runnable.run(handlers), name=f"job-{job_id}")
        task.add_done_callback(lambda t: self._on_done(execution, t))
        self._runnables[job_id] = runnable
        self._tasks[job_id] = task
        self._executions[job_id] = execution

    @staticmethod
    def _on_done(execution: JobExecution, task: asyncio.Task[None]) -> None:
        execution.state = JobState.STOPPED
        if task.cancelled():
            log.warning("Job %s was cancelled", execution.job_id)
            return
        exc = task.exception()
        if exc is not None:
            execution.error = str(exc)
            log.error("Job %s failed: %s", execution.job_id, exc, exc_info=exc)
        else:
            log.info("Job %s finished", execution.job_id)
