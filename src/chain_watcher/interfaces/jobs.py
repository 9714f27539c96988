"""JobRepository protocol - resolves job definitions into runnables."""

from __future__ import annotations

from typing import Protocol, Sequence

from chain_watcher.interfaces.runnable import Handler, Runnable
from chain_watcher.models.jobs import JobDefinition


class JobRepository(Protocol):
    """Source of job definitions and the factories that wire them."""

    async def get_job_definitions(self) -> list[JobDefinition]:
        ...

    def get_source(self, job: JobDefinition) -> Runnable:
        """Build the poller selected by ``job.source.action``."""
        ...

    async def get_handlers(self, job: JobDefinition) -> list[Handler]:
        """Build one handler per ``job.handlers`` entry."""
        ...

    def get_healthcheck(self, jobs: Sequence[JobDefinition]) -> Runnable:
        """Build the cross-chain RPC healthcheck for ``jobs``."""
        ...
