"""StaticJobRepository - resolves job-file names into pollers and handlers."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, Mapping, Sequence

from chain_watcher.config import load_job_definitions
from chain_watcher.errors import ConfigurationError
from chain_watcher.handlers import (
    HandleEvmLogs,
    HandleEvmTransactions,
    HandleSolanaTransactions,
    HandleWormchainLogs,
    RecordHandler,
)
from chain_watcher.interfaces.checkpoint import CheckpointStore
from chain_watcher.interfaces.repositories import (
    EvmBlockRepository,
    SolanaSlotRepository,
    WormchainRepository,
)
from chain_watcher.interfaces.runnable import Handler
from chain_watcher.interfaces.sink import EventSink
from chain_watcher.interfaces.stats import StatsReporter
from chain_watcher.jobs.healthcheck import HealthcheckTarget, RPCHealthcheck
from chain_watcher.mappers import MAPPERS
from chain_watcher.models.config import (
    EvmPollerConfig,
    HandlerConfig,
    SolanaPollerConfig,
    WormchainPollerConfig,
    build_config,
)
from chain_watcher.models.jobs import JobDefinition
from chain_watcher.pollers import PollEvm, PollingJob, PollSolanaTransactions, PollWormchain

log = logging.getLogger(__name__)

DRY_RUN_TARGET = "logging"

HANDLERS: dict[str, type[RecordHandler[Any]]] = {
    "HandleEvmLogs": HandleEvmLogs,
    "HandleEvmTransactions": HandleEvmTransactions,
    "HandleSolanaTransactions": HandleSolanaTransactions,
    "HandleWormchainLogs": HandleWormchainLogs,
}

DEFAULT_COMMITMENTS = {
    "PollEvm": "latest",
    "PollSolanaTransactions": "finalized",
    "PollWormchain": "immediate",
}


class StaticJobRepository:
    """JobRepository backed by a static jobs file.

    ``source.action``, ``handlers[].action``, ``handlers[].mapper`` and
    ``handlers[].target`` are looked up in fixed tables; an unknown name
    raises ConfigurationError. With ``dry_run`` every target resolves to the
    logging sink.
    """

    def __init__(
        self,
        jobs_path: str | Path,
        checkpoints: CheckpointStore,
        stats: StatsReporter,
        sinks: Mapping[str, EventSink],
        *,
        environment: str = "mainnet",
        dry_run: bool = False,
        evm_repo: EvmBlockRepository | None = None,
        solana_repo: SolanaSlotRepository | None = None,
        wormchain_repo: WormchainRepository | None = None,
        chain_ids: Mapping[str, int] | None = None,
        healthcheck_interval: float = 60.0,
    ) -> None:
        self._jobs_path = Path(jobs_path)
        self._checkpoints = checkpoints
        self._stats = stats
        self._sinks = dict(sinks)
        self._environment = environment
        self._dry_run = dry_run
        self._evm_repo = evm_repo
        self._solana_repo = solana_repo
        self._wormchain_repo = wormchain_repo
        self._chain_ids = dict(chain_ids or {})
        self._healthcheck_interval = healthcheck_interval
        self._sources: dict[str, Callable[[JobDefinition], PollingJob]] = {
            "PollEvm": self._poll_evm,
            "PollSolanaTransactions": self._poll_solana,
            "PollWormchain": self._poll_wormchain,
        }

    # ── JobRepository ──────────────────────────────────────

    async def get_job_definitions(self) -> list[JobDefinition]:
        return load_job_definitions(self._jobs_path)

    def get_source(self, job: JobDefinition) -> PollingJob:
        factory = self._sources.get(job.source.action)
        if factory is None:
            raise ConfigurationError(f"Source {job.source.action} not found")
        return factory(job)

    async def get_handlers(self, job: JobDefinition) -> list[Handler]:
        result: list[Handler] = []
        for definition in job.handlers:
            handler_cls = HANDLERS.get(definition.action)
            if handler_cls is None:
                raise ConfigurationError(f"Handler {definition.action} not found")
            mapper = MAPPERS.get(definition.mapper)
            if mapper is None:
                raise ConfigurationError(f"Mapper {definition.mapper} not found")
            cfg = HandlerConfig.from_dict(
                definition.config,
                id=job.id,
                chain=job.chain,
                chain_id=self._chain_ids.get(job.chain),
                environment=self._environment,
            )
            result.append(handler_cls(cfg, mapper, self._target(definition.target), self._stats))
        return result

    def get_healthcheck(self, jobs: Sequence[JobDefinition]) -> RPCHealthcheck:
        targets = [
            HealthcheckTarget(
                id=job.id,
                chain=job.chain,
                commitment=str(
                    job.source.config.get(
                        "commitment", DEFAULT_COMMITMENTS.get(job.source.action, "latest")
                    )
                ),
                repository=self._repository_for(job.source.action),  # type: ignore[arg-type]
            )
            for job in jobs
        ]
        return RPCHealthcheck(
            self._stats, self._checkpoints, targets, self._healthcheck_interval
        )

    # ── Factories ──────────────────────────────────────────

    def _target(self, name: str) -> EventSink:
        sink = self._sinks.get(DRY_RUN_TARGET if self._dry_run else name)
        if sink is None:
            raise ConfigurationError(f"Target {name} not found")
        return sink

    def _repository_for(self, action: str) -> Any:
        return {
            "PollEvm": self._evm_repo,
            "PollSolanaTransactions": self._solana_repo,
            "PollWormchain": self._wormchain_repo,
        }.get(action)

    def _require(self, repo: Any, kind: str, job: JobDefinition) -> Any:
        if repo is None:
            raise ConfigurationError(f"Job {job.id} needs a {kind} RPC repository")
        return repo

    def _poll_evm(self, job: JobDefinition) -> PollEvm:
        cfg = build_config(
            EvmPollerConfig,
            {"chain": job.chain, **job.source.config},
            id=job.id,
            environment=self._environment,
            chain_id=job.source.config.get("chain_id", self._chain_ids.get(job.chain)),
        )
        return PollEvm(
            self._require(self._evm_repo, "EVM", job),
            self._checkpoints,
            self._stats,
            cfg,
            job.source.records,
        )

    def _poll_solana(self, job: JobDefinition) -> PollSolanaTransactions:
        cfg = build_config(
            SolanaPollerConfig,
            {"chain": job.chain, **job.source.config},
            id=job.id,
            chain_id=job.source.config.get("chain_id", self._chain_ids.get(job.chain)),
        )
        return PollSolanaTransactions(
            self._checkpoints,
            self._require(self._solana_repo, "Solana", job),
            self._stats,
            cfg,
        )

    def _poll_wormchain(self, job: JobDefinition) -> PollWormchain:
        cfg = build_config(
            WormchainPollerConfig,
            {"chain": job.chain, **job.source.config},
            id=job.id,
            chain_id=job.source.config.get("chain_id", self._chain_ids.get(job.chain)),
        )
        return PollWormchain(
            self._require(self._wormchain_repo, "Wormchain", job),
            self._checkpoints,
            self._stats,
            cfg,
        )
