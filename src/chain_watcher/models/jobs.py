"""Job definitions and execution records."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from chain_watcher.errors import ConfigurationError


class JobState(str, Enum):
    """Lifecycle of a single poller instance."""

    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"  # terminal


@dataclass(frozen=True)
class SourceDefinition:
    action: str  # e.g. "PollEvm", "PollSolanaTransactions", "PollWormchain"
    config: dict[str, Any] = field(default_factory=dict)
    records: str | None = None  # EVM fetch strategy: "GetEvmLogs" | "GetEvmTransactions"


@dataclass(frozen=True)
class HandlerDefinition:
    action: str  # e.g. "HandleEvmLogs"
    target: str  # sink name, e.g. "sqlite"
    mapper: str  # mapper name, e.g. "evmLogMessagePublishedMapper"
    config: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class JobDefinition:
    """Declarative description of one poller and its handler pipelines."""

    id: str
    name: str
    chain: str
    source: SourceDefinition
    handlers: tuple[HandlerDefinition, ...] = ()
    paused: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "JobDefinition":
        try:
            source = data["source"]
            return cls(
                id=str(data["id"]),
                name=str(data.get("name", data["id"])),
                chain=str(data["chain"]),
                source=SourceDefinition(
                    action=str(source["action"]),
                    config=dict(source.get("config", {})),
                    records=source.get("records"),
                ),
                handlers=tuple(
                    HandlerDefinition(
                        action=str(h["action"]),
                        target=str(h["target"]),
                        mapper=str(h["mapper"]),
                        config=dict(h.get("config", {})),
                    )
                    for h in data.get("handlers", [])
                ),
                paused=bool(data.get("paused", False)),
            )
        except (KeyError, TypeError) as exc:
            raise ConfigurationError(
                f"Invalid job definition {data.get('id', '?')!r}: missing {exc}"
            ) from exc


@dataclass
class JobExecution:
    """A started job as tracked by the orchestrator."""

    job_id: str
    chain: str
    started_at: str
    state: JobState = JobState.RUNNING
    error: str | None = None
