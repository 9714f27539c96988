"""Job wiring: registry, orchestrator and the RPC healthcheck."""

from chain_watcher.jobs.healthcheck import HEALTHCHECK_JOB_ID, HealthcheckTarget, RPCHealthcheck
from chain_watcher.jobs.orchestrator import StartJobs
from chain_watcher.jobs.registry import StaticJobRepository

__all__ = [
    "HEALTHCHECK_JOB_ID", "HealthcheckTarget", "RPCHealthcheck",
    "StartJobs",
    "StaticJobRepository",
]
