"""PollingJob - the tick loop shared by every chain poller."""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Sequence

from chain_watcher.errors import ConfigurationError
from chain_watcher.interfaces.runnable import Handler
from chain_watcher.interfaces.stats import StatsReporter
from chain_watcher.models.jobs import JobState
from chain_watcher.stats import safe_count, safe_measure

log = logging.getLogger(__name__)


class PollingJob(ABC):
    """Runs ``get -> handlers -> persist -> sleep`` until stopped or finished.

    Each tick awaits every step before the next one starts, so a job never
    has two iterations in flight. ``get()`` returns None when there is
    nothing to do this tick; dispatch and checkpoint are then skipped.

    Configuration errors end the job. Any other exception is logged, leaves
    the checkpoint where it was, and the same range is retried next tick.
    """

    def __init__(
        self, job_id: str, chain: str, stats: StatsReporter, interval: float
    ) -> None:
        self._job_id = job_id
        self._chain = chain
        self._stats = stats
        self._interval = interval
        self._state = JobState.IDLE
        self._stop_event = asyncio.Event()

    @property
    def job_id(self) -> str:
        return self._job_id

    @property
    def state(self) -> JobState:
        return self._state

    @property
    def labels(self) -> dict[str, str]:
        return {"job": self._job_id, "chain": self._chain}

    # ── Lifecycle ─────────────────────────────────────────

    async def run(self, handlers: Sequence[Handler]) -> None:
        if self._state is not JobState.IDLE:
            raise RuntimeError(f"Job {self._job_id} cannot run from state {self._state.value}")
        self._state = JobState.RUNNING
        log.info("[%s] Starting %s on %s", self._job_id, type(self).__name__, self._chain)

        try:
            await self.pre_hook()
            while not self._stop_event.is_set():
                if not await self.has_next():
                    log.info("[%s] Reached configured end, finishing", self._job_id)
                    break
                await self.tick(handlers)
                if self._stop_event.is_set():
                    break
                await self._sleep()
        finally:
            self._state = JobState.STOPPED
            log.info("[%s] Stopped", self._job_id)

    async def stop(self) -> None:
        """Request the loop to end at the next tick boundary."""
        self._stop_event.set()
        if self._state is JobState.IDLE:
            self._state = JobState.STOPPED

    async def _sleep(self) -> None:
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=self._interval)
        except asyncio.TimeoutError:
            pass

    async def tick(self, handlers: Sequence[Handler]) -> None:
        """Run one fetch, dispatch and checkpoint cycle."""
        started = time.monotonic()
        try:
            items = await self.get()
            if items is not None:
                await self._dispatch(handlers, items)
                await self.persist()
        except ConfigurationError as exc:
            safe_count(self._stats, "job_failure", self.labels)
            log.error("[%s] Fatal error on %s: %s", self._job_id, self._chain, exc)
            raise
        except Exception as exc:
            safe_count(self._stats, "job_failure", self.labels)
            log.error(
                "[%s] Tick failed on %s, will retry: %s",
                self._job_id, self._chain, exc, exc_info=True,
            )
        finally:
            safe_measure(
                self._stats, "job_tick_duration_seconds",
                time.monotonic() - started, self.labels,
            )
            self.report()

    async def _dispatch(self, handlers: Sequence[Handler], items: Sequence[Any]) -> None:
        # Wait for every handler before failing so none outlives the tick.
        results = await asyncio.gather(
            *(handler(items) for handler in handlers), return_exceptions=True
        )
        for result in results:
            if isinstance(result, BaseException):
                raise result

    # ── Chain-specific steps ──────────────────────────────

    @abstractmethod
    async def pre_hook(self) -> None:
        """Load the persisted checkpoint. Runs once before the first tick."""

    @abstractmethod
    async def has_next(self) -> bool:
        """False once a configured end of range has been processed."""

    @abstractmethod
    async def get(self) -> list[Any] | None:
        """Fetch the next batch, or None to skip this tick."""

    @abstractmethod
    async def persist(self) -> None:
        """Save the checkpoint for the batch returned by the last ``get()``."""

    def report(self) -> None:
        safe_count(self._stats, "job_execution", self.labels)

    def _report_cursor(self, latest: int | None, cursor: int | None, commitment: str) -> None:
        labels = {**self.labels, "commitment": commitment}
        latest = latest or 0
        cursor = cursor or 0
        safe_count(self._stats, "job_execution", labels)
        safe_measure(self._stats, "polling_cursor", latest, {**labels, "type": "max"})
        safe_measure(self._stats, "polling_cursor", cursor, {**labels, "type": "current"})
        safe_measure(self._stats, "polling_cursor", latest - cursor, {**labels, "type": "diff"})
