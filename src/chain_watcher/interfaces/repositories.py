"""Chain repository protocols - typed gateways to each chain's RPC."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Protocol

from chain_watcher.errors import SolanaFailure
from chain_watcher.models.evm import EvmBlock, EvmLog, EvmLogFilter, EvmReceipt
from chain_watcher.models.results import Fallible
from chain_watcher.models.solana import (
    ConfirmedSignatureInfo,
    SolanaBlock,
    SolanaTransaction,
)
from chain_watcher.models.wormchain import WormchainBlockLogs


@dataclass
class ProviderHealth:
    """Result of probing one RPC provider."""

    url: str
    is_live: bool
    height: int | None = None
    latency: float | None = None  # seconds


class EvmBlockRepository(Protocol):
    """EVM JSON-RPC gateway."""

    async def get_block_height(self, chain: str, commitment: str) -> int:
        """Current head for ``commitment`` ("latest", "safe", "finalized")."""
        ...

    async def get_blocks(
        self, chain: str, heights: Iterable[int], with_transactions: bool = False
    ) -> dict[int, EvmBlock]:
        """Batched header fetch, keyed by block number."""
        ...

    async def get_filtered_logs(self, chain: str, log_filter: EvmLogFilter) -> list[EvmLog]:
        ...

    async def get_transaction_receipts(
        self, chain: str, hashes: Iterable[str]
    ) -> dict[str, EvmReceipt]:
        """Batched receipt fetch, keyed by transaction hash."""
        ...


class SolanaSlotRepository(Protocol):
    """Solana JSON-RPC gateway."""

    async def get_latest_slot(self, commitment: str) -> int:
        ...

    async def get_block(
        self, slot: int, commitment: str | None = None
    ) -> Fallible[SolanaBlock, SolanaFailure]:
        """Never raises for an absent or skipped slot; returns a failure instead."""
        ...

    async def get_signatures_for_address(
        self,
        address: str,
        before: str | None,
        after: str | None,
        limit: int,
        commitment: str | None = None,
    ) -> list[ConfirmedSignatureInfo]:
        """Signatures newest-first, walking backward from ``before`` until ``after``."""
        ...

    async def get_transactions(
        self, sigs: list[ConfirmedSignatureInfo], commitment: str | None = None
    ) -> list[SolanaTransaction]:
        ...


class WormchainRepository(Protocol):
    """Tendermint RPC gateway for Wormchain."""

    async def get_block_height(self, chain_id: int) -> int | None:
        """Current head, or None if the node did not report one."""
        ...

    async def get_block_logs(self, chain_id: int, height: int) -> WormchainBlockLogs:
        """Event attributes of every transaction at ``height`` (base64-encoded)."""
        ...


class HealthCheckable(Protocol):
    """Optional capability of a repository: probe all of its providers."""

    async def health_check(
        self, chain: str, commitment: str, cursor: int | None
    ) -> list[ProviderHealth]:
        ...
