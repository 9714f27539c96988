"""Protocol interfaces for all chain_watcher components."""

from chain_watcher.interfaces.checkpoint import CheckpointStore
from chain_watcher.interfaces.jobs import JobRepository
from chain_watcher.interfaces.repositories import (
    EvmBlockRepository,
    HealthCheckable,
    ProviderHealth,
    SolanaSlotRepository,
    WormchainRepository,
)
from chain_watcher.interfaces.runnable import Handler, Runnable
from chain_watcher.interfaces.sink import EventSink
from chain_watcher.interfaces.stats import StatsReporter

__all__ = [
    "CheckpointStore",
    "JobRepository",
    "EvmBlockRepository", "SolanaSlotRepository", "WormchainRepository",
    "HealthCheckable", "ProviderHealth",
    "Handler", "Runnable",
    "EventSink",
    "StatsReporter",
]
