"""Main watcher process - wires storage, RPC repositories and jobs together."""

from __future__ import annotations

import asyncio
import logging
import signal

from chain_watcher.jobs import StartJobs, StaticJobRepository
from chain_watcher.models.config import WatcherConfig
from chain_watcher.rpc import (
    EvmJsonRpcRepository,
    JsonRpcClient,
    SolanaJsonRpcRepository,
    WormchainJsonRpcRepository,
)
from chain_watcher.sinks import LoggingSink
from chain_watcher.stats import InMemoryStats
from chain_watcher.storage.sqlite import SQLiteEventSink, SQLiteStore

log = logging.getLogger(__name__)


class ChainWatcher:
    """Multi-chain watcher process.

    Builds one RPC repository per chain kind from ``cfg.chains``, the SQLite
    checkpoint store and event sink, and hands them to StartJobs.
    """

    def __init__(self, cfg: WatcherConfig, stats: InMemoryStats | None = None) -> None:
        self._cfg = cfg
        self._stopped = asyncio.Event()
        self.stats = stats or InMemoryStats()
        self.store = SQLiteStore(cfg.db_path)

        self.evm_repo: EvmJsonRpcRepository | None = None
        self.solana_repo: SolanaJsonRpcRepository | None = None
        self.wormchain_repo: WormchainJsonRpcRepository | None = None
        self._build_repositories()

        self.registry = StaticJobRepository(
            cfg.jobs_path,
            self.store,
            self.stats,
            sinks={
                "sqlite": SQLiteEventSink(self.store),
                "logging": LoggingSink(),
            },
            environment=cfg.environment,
            dry_run=cfg.dry_run,
            evm_repo=self.evm_repo,
            solana_repo=self.solana_repo,
            wormchain_repo=self.wormchain_repo,
            chain_ids={name: c.chain_id for name, c in cfg.chains.items()},
            healthcheck_interval=cfg.healthcheck_interval,
        )
        self.jobs = StartJobs(self.registry, cfg.max_concurrent_jobs)

    def _client(self, urls: list[str], timeout: float | None) -> JsonRpcClient:
        return JsonRpcClient(urls, timeout=timeout or self._cfg.rpc_timeout)

    def _build_repositories(self) -> None:
        evm = self._cfg.chains_of_kind("evm")
        if evm:
            self.evm_repo = EvmJsonRpcRepository(
                {name: self._client(c.urls, c.timeout) for name, c in evm.items()}
            )

        solana = self._cfg.chains_of_kind("solana")
        if solana:
            # A single Solana cluster is watched per process
            name, chain = next(iter(solana.items()))
            self.solana_repo = SolanaJsonRpcRepository(
                self._client(chain.urls, chain.timeout), chain=name
            )

        wormchain = self._cfg.chains_of_kind("wormchain")
        if wormchain:
            self.wormchain_repo = WormchainJsonRpcRepository(
                {c.chain_id: self._client(c.urls, c.timeout) for c in wormchain.values()},
                chain_ids={name: c.chain_id for name, c in wormchain.items()},
            )

    async def start(self) -> None:
        """Initialize storage, start every job and wait for a stop request."""
        log.info("Starting chain watcher")
        log.info("  Environment: %s", self._cfg.environment)
        log.info("  Jobs: %s", self._cfg.jobs_path)
        log.info("  Chains: %s", ", ".join(sorted(self._cfg.chains)) or "-")
        if self._cfg.dry_run:
            log.info("  Dry run: events are logged, not stored")

        await self.store.initialize()
        try:
            executions = await self.jobs.run()
            log.info("Running %d jobs", len(executions))
            await self._stopped.wait()
        finally:
            await self.jobs.stop()
            await self._close_repositories()
            await self.store.close()
            log.info("Watcher shut down cleanly")

    async def stop(self) -> None:
        """Signal the watcher to stop gracefully."""
        log.info("Stop requested")
        self._stopped.set()

    async def _close_repositories(self) -> None:
        for repo in (self.evm_repo, self.solana_repo, self.wormchain_repo):
            if repo is not None:
                await repo.close()


async def run_watcher(cfg: WatcherConfig) -> None:
    """Entry point for running the watcher."""
    watcher = ChainWatcher(cfg)

    loop = asyncio.get_running_loop()

    def _signal_handler() -> None:
        asyncio.ensure_future(watcher.stop())

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _signal_handler)
        except NotImplementedError:
            # Windows doesn't support add_signal_handler
            pass

    await watcher.start()
