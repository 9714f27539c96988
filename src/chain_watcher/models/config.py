"""Configuration models for the watcher, its pollers and handlers."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any, TypeVar

from chain_watcher.errors import ConfigurationError

C = TypeVar("C")


def build_config(cls: type[C], data: dict[str, Any], **overrides: Any) -> C:
    """Instantiate a config dataclass from a job-file dict.

    Unknown keys are rejected so typos surface at startup instead of being
    silently ignored.
    """
    known = {f.name for f in fields(cls)}  # type: ignore[arg-type]
    unknown = set(data) - known
    if unknown:
        raise ConfigurationError(
            f"Unknown {cls.__name__} keys: {', '.join(sorted(unknown))}"
        )
    values = {**data, **{k: v for k, v in overrides.items() if v is not None}}
    try:
        return cls(**values)
    except TypeError as exc:
        raise ConfigurationError(f"Invalid {cls.__name__}: {exc}") from exc


def _check_range(start: int | None, end: int | None, what: str) -> None:
    if start is not None and end is not None and start > end:
        raise ConfigurationError(f"from_{what} must be less than or equal to to_{what}")


# ── Pollers ────────────────────────────────────────────────


@dataclass
class EvmPollerConfig:
    """PollEvm configuration."""

    chain: str
    chain_id: int
    id: str = "watch-evm-logs"
    environment: str = "mainnet"
    addresses: list[str] = field(default_factory=list)
    topics: list[str] = field(default_factory=list)
    from_block: int | None = None
    to_block: int | None = None
    block_batch_size: int = 100
    blocks_behind: int = 0  # confirmation lag behind the reported head
    commitment: str = "latest"
    interval: float = 5.0  # seconds between ticks

    def __post_init__(self) -> None:
        _check_range(self.from_block, self.to_block, "block")
        if self.block_batch_size < 1:
            raise ConfigurationError("block_batch_size must be >= 1")
        if self.blocks_behind < 0:
            raise ConfigurationError("blocks_behind must be >= 0")
        self.addresses = [a.lower() for a in self.addresses]

    def has_finished(self, cursor: int | None) -> bool:
        return cursor is not None and self.to_block is not None and cursor >= self.to_block


@dataclass
class SolanaPollerConfig:
    """PollSolanaTransactions configuration."""

    id: str
    program_ids: list[str]
    commitment: str = "finalized"
    from_slot: int | None = None
    to_slot: int | None = None
    slot_batch_size: int = 10_000
    signatures_limit: int = 500
    interval: float = 5.0
    chain_id: int = 1
    chain: str = "solana"

    def __post_init__(self) -> None:
        _check_range(self.from_slot, self.to_slot, "slot")
        if not self.program_ids:
            raise ConfigurationError("program_ids must not be empty")
        if self.signatures_limit < 1:
            raise ConfigurationError("signatures_limit must be >= 1")
        if self.slot_batch_size < 0:
            raise ConfigurationError("slot_batch_size must be >= 0")

    def has_finished(self, cursor: int | None) -> bool:
        return cursor is not None and self.to_slot is not None and cursor >= self.to_slot


@dataclass
class WormchainPollerConfig:
    """PollWormchain configuration."""

    chain_id: int
    chain: str = "wormchain"
    id: str = "watch-wormchain-logs"
    addresses: list[str] = field(default_factory=list)
    attribute_types: list[str] = field(default_factory=lambda: ["wasm"])
    from_block: int | None = None
    to_block: int | None = None
    block_batch_size: int = 100
    commitment: str = "immediate"
    interval: float = 5.0

    def __post_init__(self) -> None:
        _check_range(self.from_block, self.to_block, "block")
        if self.block_batch_size < 1:
            raise ConfigurationError("block_batch_size must be >= 1")
        self.addresses = [a.lower() for a in self.addresses]

    def has_finished(self, cursor: int | None) -> bool:
        return cursor is not None and self.to_block is not None and cursor >= self.to_block


# ── Handlers ───────────────────────────────────────────────


@dataclass
class HandlerConfig:
    """Filter and labelling for one mapping-and-dispatch stage.

    Empty ``addresses``/``topics`` mean no constraint. Keys the handler does
    not know are kept in ``extra`` for the mapper.
    """

    id: str
    chain: str
    chain_id: int = 0
    environment: str = "mainnet"
    addresses: list[str] = field(default_factory=list)
    topics: list[str] = field(default_factory=list)
    metric_name: str = "process_source_event"
    extra: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.addresses = [a.lower() for a in self.addresses]

    @classmethod
    def from_dict(cls, data: dict[str, Any], **overrides: Any) -> "HandlerConfig":
        known = {f.name for f in fields(cls)} - {"extra"}
        base = {k: v for k, v in data.items() if k in known}
        extra = {k: v for k, v in data.items() if k not in known}
        base.update({k: v for k, v in overrides.items() if v is not None and k not in base})
        try:
            return cls(**base, extra=extra)
        except TypeError as exc:
            raise ConfigurationError(f"Invalid handler config: {exc}") from exc


# ── Watcher ────────────────────────────────────────────────


@dataclass
class ChainRpcConfig:
    """RPC providers for one chain."""

    name: str
    kind: str = "evm"  # "evm" | "solana" | "wormchain"
    chain_id: int = 0
    urls: list[str] = field(default_factory=list)
    timeout: float | None = None  # falls back to WatcherConfig.rpc_timeout


@dataclass
class WatcherConfig:
    """Complete process configuration, built once by the CLI."""

    # Watcher
    environment: str = "mainnet"
    jobs_path: str = "jobs.json"
    dry_run: bool = False
    log_level: str = "info"
    healthcheck_interval: float = 60.0  # seconds
    max_concurrent_jobs: int = 10

    # Storage
    db_path: str = "~/.chain_watcher/state.db"

    # RPC
    rpc_timeout: float = 10.0
    chains: dict[str, ChainRpcConfig] = field(default_factory=dict)

    def chains_of_kind(self, kind: str) -> dict[str, ChainRpcConfig]:
        return {name: c for name, c in self.chains.items() if c.kind == kind}
