"""StartJobs - validation, startup and shutdown of job tasks."""

from __future__ import annotations

import asyncio

import pytest

from chain_watcher.errors import ConfigurationError
from chain_watcher.jobs import HEALTHCHECK_JOB_ID, StartJobs
from chain_watcher.models.jobs import JobDefinition, JobState

from tests.factories import make_job
from tests.mocks import MockRunnable, RecordingHandler


class FakeJobRepository:
    """JobRepository serving MockRunnables for fixed definitions."""

    def __init__(self, jobs, handlers_per_job=1, failing=None):
        self.jobs = [JobDefinition.from_dict(job) for job in jobs]
        self.handlers_per_job = handlers_per_job
        self.failing = failing or {}
        self.sources: dict[str, MockRunnable] = {}
        self.built: list[str] = []
        self.healthcheck = MockRunnable()
        self.healthcheck_jobs = None

    async def get_job_definitions(self):
        return self.jobs

    def get_source(self, job):
        runnable = MockRunnable(fail_with=self.failing.get(job.id))
        self.sources[job.id] = runnable
        self.built.append(job.id)
        return runnable

    async def get_handlers(self, job):
        return [RecordingHandler() for _ in range(self.handlers_per_job)]

    def get_healthcheck(self, jobs):
        self.healthcheck_jobs = list(jobs)
        return self.healthcheck


async def _settle():
    for _ in range(3):
        await asyncio.sleep(0)


class TestStartJobs:

    async def test_starts_active_jobs_and_healthcheck(self):
        repo = FakeJobRepository([make_job("a"), make_job("b", paused=True), make_job("c")])
        jobs = StartJobs(repo)

        executions = await jobs.run()
        await _settle()

        assert {e.job_id for e in executions} == {"a", "c", HEALTHCHECK_JOB_ID}
        assert set(repo.sources) == {"a", "c"}
        assert len(repo.sources["a"].handlers) == 1
        assert repo.healthcheck.handlers == []
        assert [j.id for j in repo.healthcheck_jobs] == ["a", "b", "c"]
        assert all(e.state is JobState.RUNNING for e in executions)

        await jobs.stop()

        assert all(r.stopped for r in repo.sources.values())
        assert repo.healthcheck.stopped
        assert all(e.state is JobState.STOPPED for e in jobs.executions())

    async def test_duplicate_ids_rejected_before_start(self):
        repo = FakeJobRepository([make_job("a"), make_job("a")])

        with pytest.raises(ConfigurationError, match="unique: a"):
            await StartJobs(repo).run()

        assert repo.sources == {}

    async def test_reserved_id_rejected(self):
        repo = FakeJobRepository([make_job(HEALTHCHECK_JOB_ID)])

        with pytest.raises(ConfigurationError, match="reserved"):
            await StartJobs(repo).run()

    async def test_job_without_handlers_aborts_startup(self):
        repo = FakeJobRepository([make_job("a"), make_job("b")], handlers_per_job=0)

        with pytest.raises(ConfigurationError, match="No handlers for job a"):
            await StartJobs(repo).run()

        assert repo.sources == {}

    async def test_failed_job_records_error_and_others_keep_running(self):
        repo = FakeJobRepository(
            [make_job("a"), make_job("b")],
            failing={"a": ConfigurationError("bad range")},
        )
        jobs = StartJobs(repo)

        await jobs.run()
        await _settle()

        by_id = {e.job_id: e for e in jobs.executions()}
        assert by_id["a"].state is JobState.STOPPED
        assert by_id["a"].error == "bad range"
        assert by_id["b"].state is JobState.RUNNING

        await jobs.stop()
        await jobs.wait()
        assert by_id["b"].state is JobState.STOPPED
        assert by_id["b"].error is None

    async def test_second_run_keeps_single_task_per_job(self):
        repo = FakeJobRepository([make_job("a")])
        jobs = StartJobs(repo)

        await jobs.run()
        first = repo.sources["a"]
        executions = await jobs.run()
        await _settle()

        assert repo.built == ["a"]
        assert [e.job_id for e in executions] == ["a", HEALTHCHECK_JOB_ID]
        assert not first.stopped

        await jobs.stop()
        assert first.stopped

    async def test_run_stops_job_that_became_paused(self):
        repo = FakeJobRepository([make_job("a"), make_job("b")])
        jobs = StartJobs(repo)
        await jobs.run()
        running = repo.sources["a"]

        repo.jobs[0] = JobDefinition.from_dict(make_job("a", paused=True))
        executions = await jobs.run()

        assert running.stopped
        assert {e.job_id for e in executions} == {"b", HEALTHCHECK_JOB_ID}
        assert repo.built == ["a", "b"]

        await jobs.stop()

    async def test_finished_job_is_restarted_on_next_run(self):
        repo = FakeJobRepository([make_job("a")], failing={"a": ConfigurationError("boom")})
        jobs = StartJobs(repo)
        await jobs.run()
        await _settle()

        repo.failing = {}
        await jobs.run()
        await _settle()

        assert repo.built == ["a", "a"]
        by_id = {e.job_id: e for e in jobs.executions()}
        assert by_id["a"].state is JobState.RUNNING

        await jobs.stop()

    async def test_max_concurrent_jobs_limits_started_jobs(self):
        repo = FakeJobRepository([make_job("a"), make_job("b"), make_job("c")])
        jobs = StartJobs(repo, max_concurrent_jobs=2)

        executions = await jobs.run()

        assert repo.built == ["a", "b"]
        assert {e.job_id for e in executions} == {"a", "b", HEALTHCHECK_JOB_ID}

        await jobs.run()
        assert repo.built == ["a", "b"]

        await jobs.stop()

    async def test_capacity_freed_by_paused_job_is_reused(self):
        repo = FakeJobRepository([make_job("a"), make_job("b")])
        jobs = StartJobs(repo, max_concurrent_jobs=1)
        await jobs.run()
        assert repo.built == ["a"]

        repo.jobs[0] = JobDefinition.from_dict(make_job("a", paused=True))
        executions = await jobs.run()

        assert repo.built == ["a", "b"]
        assert {e.job_id for e in executions} == {"b", HEALTHCHECK_JOB_ID}

        await jobs.stop()
