"""RPCHealthcheck - periodic provider probes for every watched chain."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

from chain_watcher.interfaces.checkpoint import CheckpointStore
from chain_watcher.interfaces.repositories import HealthCheckable, ProviderHealth
from chain_watcher.interfaces.stats import StatsReporter
from chain_watcher.pollers.base import PollingJob
from chain_watcher.stats import safe_measure

log = logging.getLogger(__name__)

HEALTHCHECK_JOB_ID = "rpc-healthcheck"

CURSOR_KEYS = ("lastBlock", "lastFrom", "lastSlot", "lastCursor")


def normalize_cursor(metadata: dict[str, Any] | None) -> int | None:
    """The progress height stored in any poller's checkpoint metadata."""
    if not metadata:
        return None
    for key in CURSOR_KEYS:
        if key in metadata:
            value = metadata[key]
            if isinstance(value, dict):
                value = value.get("checkpoint")
            return int(value) if value is not None else None
    return None


@dataclass
class HealthcheckTarget:
    """One job's chain as seen by the healthcheck."""

    id: str
    chain: str
    commitment: str
    repository: HealthCheckable | None


@dataclass
class HealthcheckReport:
    id: str
    chain: str
    commitment: str
    providers: list[ProviderHealth]


class RPCHealthcheck(PollingJob):
    """Probes every provider of every job's chain each ``interval`` seconds.

    Results are only reported as ``rpc_healthcheck_latency`` and
    ``rpc_healthcheck_height`` gauges; nothing is dispatched or checkpointed.
    """

    def __init__(
        self,
        stats: StatsReporter,
        checkpoints: CheckpointStore,
        targets: list[HealthcheckTarget],
        interval: float = 60.0,
    ) -> None:
        super().__init__(HEALTHCHECK_JOB_ID, "all", stats, interval)
        self._checkpoints = checkpoints
        self._targets = targets
        self._reports: list[HealthcheckReport] = []

    @property
    def reports(self) -> list[HealthcheckReport]:
        return list(self._reports)

    async def pre_hook(self) -> None:
        log.info("[%s] Watching providers of %d jobs", self.job_id, len(self._targets))

    async def has_next(self) -> bool:
        return True

    async def get(self) -> None:
        results = await asyncio.gather(
            *(self._check(target) for target in self._targets), return_exceptions=True
        )
        reports: list[HealthcheckReport] = []
        for target, result in zip(self._targets, results):
            if isinstance(result, BaseException):
                log.error("[%s] Healthcheck for %s failed: %s", self.job_id, target.id, result)
            elif result is not None:
                reports.append(result)
        self._reports = reports
        return None

    async def persist(self) -> None:
        return None

    async def _check(self, target: HealthcheckTarget) -> HealthcheckReport | None:
        if target.repository is None:
            log.error(
                "[%s] Repository not found for chain %s (job %s)",
                self.job_id, target.chain, target.id,
            )
            return None
        cursor = normalize_cursor(await self._checkpoints.get(target.id))
        providers = await target.repository.health_check(
            target.chain, target.commitment, cursor
        )
        return HealthcheckReport(target.id, target.chain, target.commitment, providers)

    def report(self) -> None:
        for report in self._reports:
            for provider in report.providers:
                labels = {
                    "commitment": report.commitment,
                    "chain": report.chain,
                    "job": f"{HEALTHCHECK_JOB_ID}-{report.id}",
                    "rpc": provider.url,
                }
                if provider.latency is not None:
                    safe_measure(self._stats, "rpc_healthcheck_latency", provider.latency, labels)
                if provider.height is not None:
                    safe_measure(self._stats, "rpc_healthcheck_height", provider.height, labels)
                safe_measure(
                    self._stats, "rpc_healthcheck_live", 1 if provider.is_live else 0, labels
                )
