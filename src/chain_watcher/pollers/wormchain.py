"""PollWormchain - block-height poller for the Wormchain Cosmos chain."""

from __future__ import annotations

import base64
import binascii
import logging
from dataclasses import dataclass

from chain_watcher.errors import RpcError
from chain_watcher.interfaces.checkpoint import CheckpointStore
from chain_watcher.interfaces.repositories import WormchainRepository
from chain_watcher.interfaces.stats import StatsReporter
from chain_watcher.models.config import WormchainPollerConfig
from chain_watcher.models.wormchain import WormchainAttribute, WormchainTransaction
from chain_watcher.pollers.base import PollingJob

log = logging.getLogger(__name__)


def decode_base64(value: str) -> str:
    """Decode a Tendermint event key/value, keeping it as-is if not base64."""
    try:
        return base64.b64decode(value, validate=True).decode("utf-8", errors="replace")
    except (binascii.Error, ValueError):
        return value


def decode_transaction(tx: WormchainTransaction) -> WormchainTransaction:
    """Copy of ``tx`` with every attribute key and value decoded."""
    return WormchainTransaction(
        hash=tx.hash,
        type=tx.type,
        attributes=[
            WormchainAttribute(
                key=decode_base64(attr.key),
                value=decode_base64(attr.value),
                index=attr.index,
            )
            for attr in tx.attributes
        ],
    )


@dataclass(frozen=True)
class HeightRange:
    from_block: int
    to_block: int


class PollWormchain(PollingJob):
    """Walks Wormchain block by block, emitting decoded transaction events.

    Checkpoint metadata: ``{"lastBlock": to_block}``.
    """

    def __init__(
        self,
        repo: WormchainRepository,
        checkpoints: CheckpointStore,
        stats: StatsReporter,
        cfg: WormchainPollerConfig,
    ) -> None:
        super().__init__(cfg.id, cfg.chain, stats, cfg.interval)
        self._repo = repo
        self._checkpoints = checkpoints
        self._cfg = cfg
        self._latest_block_height: int | None = None
        self._block_height_cursor: int | None = None
        self._last_range: HeightRange | None = None

    @property
    def cursor(self) -> int | None:
        return self._block_height_cursor

    async def pre_hook(self) -> None:
        metadata = await self._checkpoints.get(self._cfg.id)
        if metadata and metadata.get("lastBlock") is not None:
            self._block_height_cursor = int(metadata["lastBlock"])
            log.info("[%s] Resuming after block %d", self._cfg.id, self._block_height_cursor)

    async def has_next(self) -> bool:
        return not self._cfg.has_finished(self._block_height_cursor)

    async def get(self) -> list[WormchainTransaction] | None:
        height = await self._repo.get_block_height(self._cfg.chain_id)
        if height is None:
            raise RpcError(f"No block height reported for {self._cfg.chain}")
        self._latest_block_height = height

        height_range = self.get_block_range(height)
        if height_range is None:
            log.debug(
                "[%s] No new blocks (cursor=%s, head=%d)",
                self._cfg.id, self._block_height_cursor, height,
            )
            return None

        transactions: list[WormchainTransaction] = []
        for block_height in range(height_range.from_block, height_range.to_block + 1):
            block = await self._repo.get_block_logs(self._cfg.chain_id, block_height)
            for raw in block.transactions:
                if not self._wanted(raw.type):
                    continue
                tx = decode_transaction(raw)
                tx.block_height = block.block_height
                tx.timestamp = block.timestamp
                tx.chain_id = self._cfg.chain_id
                tx.chain = self._cfg.chain
                transactions.append(tx)

        log.debug(
            "[%s] Got %d transactions in blocks [%d, %d]",
            self._cfg.id, len(transactions), height_range.from_block, height_range.to_block,
        )
        self._last_range = height_range
        return transactions

    async def persist(self) -> None:
        if self._last_range is None:
            return
        to_block = self._last_range.to_block
        self._last_range = None
        if self._block_height_cursor is not None and to_block <= self._block_height_cursor:
            return
        await self._checkpoints.save(self._cfg.id, {"lastBlock": to_block})
        self._block_height_cursor = to_block

    def get_block_range(self, current_height: int) -> HeightRange | None:
        if self._block_height_cursor is not None:
            from_block = self._block_height_cursor + 1
        elif self._cfg.from_block is not None:
            from_block = self._cfg.from_block
        else:
            from_block = current_height
        if self._cfg.from_block is not None and self._cfg.from_block > from_block:
            from_block = self._cfg.from_block

        if from_block > current_height:
            return None

        to_block = min(from_block + self._cfg.block_batch_size - 1, current_height)
        if self._cfg.to_block is not None:
            to_block = min(to_block, self._cfg.to_block)
        if from_block > to_block:
            return None
        return HeightRange(from_block, to_block)

    def _wanted(self, tx_type: str) -> bool:
        return not self._cfg.attribute_types or tx_type in self._cfg.attribute_types

    def report(self) -> None:
        self._report_cursor(
            self._latest_block_height, self._block_height_cursor, self._cfg.commitment
        )
