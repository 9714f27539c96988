"""PollEvm - block-range poller for EVM-compatible chains."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Union

from chain_watcher.errors import ConfigurationError, RpcError
from chain_watcher.interfaces.checkpoint import CheckpointStore
from chain_watcher.interfaces.repositories import EvmBlockRepository
from chain_watcher.interfaces.stats import StatsReporter
from chain_watcher.models.config import EvmPollerConfig
from chain_watcher.models.evm import EvmLog, EvmLogFilter, EvmTransaction
from chain_watcher.pollers.base import PollingJob

log = logging.getLogger(__name__)

EvmRecord = Union[EvmLog, EvmTransaction]


@dataclass(frozen=True)
class BlockRange:
    from_block: int
    to_block: int

    def heights(self) -> set[int]:
        return set(range(self.from_block, self.to_block + 1))


class GetEvmLogs:
    """Fetch headers for the whole range, then the filtered logs within it."""

    def __init__(self, repo: EvmBlockRepository) -> None:
        self._repo = repo

    async def execute(self, block_range: BlockRange, cfg: EvmPollerConfig) -> list[EvmLog]:
        blocks = await self._repo.get_blocks(cfg.chain, block_range.heights())
        logs = await self._repo.get_filtered_logs(
            cfg.chain,
            EvmLogFilter(
                from_block=block_range.from_block,
                to_block=block_range.to_block,
                addresses=tuple(cfg.addresses),
                topics=tuple(cfg.topics),
            ),
        )
        for evm_log in logs:
            block = blocks.get(evm_log.block_number)
            if block is None:
                raise RpcError(
                    f"Missing header for block {evm_log.block_number} on {cfg.chain}"
                )
            evm_log.block_time = block.timestamp
            evm_log.chain_id = cfg.chain_id
            evm_log.chain = cfg.chain

        log.debug(
            "[%s] Got %d logs in blocks [%d, %d]",
            cfg.id, len(logs), block_range.from_block, block_range.to_block,
        )
        return logs


class GetEvmTransactions:
    """Resolve the transactions behind matching logs, with receipts."""

    def __init__(self, repo: EvmBlockRepository) -> None:
        self._repo = repo

    async def execute(
        self, block_range: BlockRange, cfg: EvmPollerConfig
    ) -> list[EvmTransaction]:
        logs = await self._repo.get_filtered_logs(
            cfg.chain,
            EvmLogFilter(
                from_block=block_range.from_block,
                to_block=block_range.to_block,
                addresses=tuple(cfg.addresses),
                topics=tuple(cfg.topics),
            ),
        )
        if not logs:
            return []

        tx_hashes = {evm_log.transaction_hash for evm_log in logs}
        heights = {evm_log.block_number for evm_log in logs}
        blocks = await self._repo.get_blocks(cfg.chain, heights, with_transactions=True)

        transactions: list[EvmTransaction] = []
        for height in sorted(heights):
            block = blocks.get(height)
            if block is None:
                raise RpcError(f"Missing block {height} on {cfg.chain}")
            for tx in block.transactions:
                if tx.hash in tx_hashes:
                    tx.timestamp = block.timestamp
                    transactions.append(tx)

        receipts = await self._repo.get_transaction_receipts(
            cfg.chain, [tx.hash for tx in transactions]
        )
        for tx in transactions:
            receipt = receipts.get(tx.hash)
            if receipt is None:
                raise RpcError(f"Missing receipt for {tx.hash} on {cfg.chain}")
            tx.status = receipt.status
            tx.logs = receipt.logs
            tx.chain_id = cfg.chain_id
            tx.chain = cfg.chain

        return transactions


_STRATEGIES = {
    "GetEvmLogs": GetEvmLogs,
    "GetEvmTransactions": GetEvmTransactions,
}


class PollEvm(PollingJob):
    """Walks an EVM chain in block windows behind the head.

    Range per tick::

        safe_head = head - blocks_behind
        from      = max(lastBlock + 1, from_block)   # or safe_head if neither
        to        = min(from + block_batch_size - 1, safe_head, to_block)

    Checkpoint metadata: ``{"lastBlock": to}``.
    """

    def __init__(
        self,
        block_repo: EvmBlockRepository,
        checkpoints: CheckpointStore,
        stats: StatsReporter,
        cfg: EvmPollerConfig,
        records: str | None = None,
    ) -> None:
        super().__init__(cfg.id, cfg.chain, stats, cfg.interval)
        strategy = _STRATEGIES.get(records or "GetEvmLogs")
        if strategy is None:
            raise ConfigurationError(f"Unknown EVM records strategy: {records}")
        self._repo = block_repo
        self._checkpoints = checkpoints
        self._cfg = cfg
        self._strategy = strategy(block_repo)
        self._latest_block_height: int | None = None
        self._block_height_cursor: int | None = None
        self._last_range: BlockRange | None = None

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

    async def get(self) -> list[EvmRecord] | None:
        self._latest_block_height = await self._repo.get_block_height(
            self._cfg.chain, self._cfg.commitment
        )
        block_range = self.get_block_range(self._latest_block_height)
        if block_range is None:
            log.debug(
                "[%s] No new blocks (cursor=%s, head=%d)",
                self._cfg.id, self._block_height_cursor, self._latest_block_height,
            )
            return None

        records = await self._strategy.execute(block_range, self._cfg)
        self._last_range = block_range
        return records

    async def persist(self) -> None:
        if self._last_range is None:
            return
        to_block = self._last_range.to_block
        self._last_range = None
        if self._block_height_cursor is not None and to_block <= self._block_height_cursor:
            return
        await self._checkpoints.save(self._cfg.id, {"lastBlock": to_block})
        self._block_height_cursor = to_block

    def get_block_range(self, latest_block_height: int) -> BlockRange | None:
        """Next window to fetch, or None if the safe head has not moved."""
        safe_head = latest_block_height - self._cfg.blocks_behind
        if safe_head < 0:
            return None

        if self._block_height_cursor is not None:
            from_block = self._block_height_cursor + 1
        elif self._cfg.from_block is not None:
            from_block = self._cfg.from_block
        else:
            from_block = safe_head
        # A configured from_block ahead of the cursor lets operators skip blocks.
        if self._cfg.from_block is not None and self._cfg.from_block > from_block:
            from_block = self._cfg.from_block

        to_block = min(from_block + self._cfg.block_batch_size - 1, safe_head)
        if self._cfg.to_block is not None:
            to_block = min(to_block, self._cfg.to_block)

        if from_block > to_block:
            return None
        return BlockRange(from_block, to_block)

    def report(self) -> None:
        self._report_cursor(
            self._latest_block_height, self._block_height_cursor, self._cfg.commitment
        )
