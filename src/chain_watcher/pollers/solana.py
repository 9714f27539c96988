"""PollSolanaTransactions - slot window + signature cursor poller."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from chain_watcher.errors import InvalidRangeError
from chain_watcher.interfaces.checkpoint import CheckpointStore
from chain_watcher.interfaces.repositories import SolanaSlotRepository
from chain_watcher.interfaces.stats import StatsReporter
from chain_watcher.models.config import SolanaPollerConfig
from chain_watcher.models.solana import SolanaBlock, SolanaTransaction
from chain_watcher.pollers.base import PollingJob

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class SlotRange:
    from_slot: int
    to_slot: int


@dataclass(frozen=True)
class SignatureWindow:
    """Signature bounds of a slot window, exclusive on both ends."""

    after: str
    before: str


class GetSolanaTransactions:
    """Collect every transaction touching ``program_id`` inside a window.

    ``getSignaturesForAddress`` walks backward from ``before`` and stops at
    ``after``. A full page means there may be more, so the next request
    continues before the earliest signature of the page.
    """

    def __init__(self, repo: SolanaSlotRepository) -> None:
        self._repo = repo

    async def execute(
        self, program_id: str, window: SignatureWindow, cfg: SolanaPollerConfig
    ) -> list[SolanaTransaction]:
        transactions: list[SolanaTransaction] = []
        before: str | None = window.before
        seen: set[str] = set()

        while True:
            page = await self._repo.get_signatures_for_address(
                program_id, before, window.after, cfg.signatures_limit, cfg.commitment
            )
            if page:
                resolved = await self._repo.get_transactions(page, cfg.commitment)
                for tx in resolved:
                    tx.chain_id = cfg.chain_id
                    tx.chain = cfg.chain
                transactions.extend(resolved)

            if len(page) < cfg.signatures_limit:
                break
            before = page[-1].signature
            if not before or before in seen:
                # A provider returning the same page again would loop forever.
                break
            seen.add(before)

        log.debug(
            "[%s] %d transactions for %s", cfg.id, len(transactions), program_id
        )
        return transactions


class PollSolanaTransactions(PollingJob):
    """Walks Solana in slot windows, resolving program transactions per window.

    Checkpoint metadata: ``{"lastSlot": to_slot}``.
    """

    def __init__(
        self,
        checkpoints: CheckpointStore,
        slot_repo: SolanaSlotRepository,
        stats: StatsReporter,
        cfg: SolanaPollerConfig,
    ) -> None:
        super().__init__(cfg.id, cfg.chain, stats, cfg.interval)
        self._checkpoints = checkpoints
        self._repo = slot_repo
        self._cfg = cfg
        self._get_transactions = GetSolanaTransactions(slot_repo)
        self._latest_slot: int | None = None
        self._slot_cursor: int | None = None
        self._last_range: SlotRange | None = None

    @property
    def cursor(self) -> int | None:
        return self._slot_cursor

    async def pre_hook(self) -> None:
        metadata = await self._checkpoints.get(self._cfg.id)
        if metadata and metadata.get("lastSlot") is not None:
            self._slot_cursor = int(metadata["lastSlot"])
            log.info("[%s] Resuming after slot %d", self._cfg.id, self._slot_cursor)

    async def has_next(self) -> bool:
        return not self._cfg.has_finished(self._slot_cursor)

    async def get(self) -> list[SolanaTransaction] | None:
        self._latest_slot = await self._repo.get_latest_slot(self._cfg.commitment)
        slot_range = self.get_slot_range(self._latest_slot)
        if slot_range is None:
            log.debug(
                "[%s] No new slots (cursor=%s, latest=%d)",
                self._cfg.id, self._slot_cursor, self._latest_slot,
            )
            return None

        window = await self._get_signature_window(slot_range)
        if window is None:
            log.info(
                "[%s] No blocks with transactions in slots [%d, %d], skipping window",
                self._cfg.id, slot_range.from_slot, slot_range.to_slot,
            )
            self._last_range = slot_range
            return []

        results = await asyncio.gather(
            *(
                self._get_transactions.execute(program_id, window, self._cfg)
                for program_id in self._cfg.program_ids
            ),
            return_exceptions=True,
        )
        transactions: list[SolanaTransaction] = []
        for result in results:
            if isinstance(result, BaseException):
                raise result
            transactions.extend(result)

        log.debug(
            "[%s] Got %d transactions in slots [%d, %d]",
            self._cfg.id, len(transactions), slot_range.from_slot, slot_range.to_slot,
        )
        self._last_range = slot_range
        return transactions

    async def persist(self) -> None:
        if self._last_range is None:
            return
        to_slot = self._last_range.to_slot
        self._last_range = None
        if self._slot_cursor is not None and to_slot <= self._slot_cursor:
            return
        await self._checkpoints.save(self._cfg.id, {"lastSlot": to_slot})
        self._slot_cursor = to_slot

    def get_slot_range(self, latest_slot: int) -> SlotRange | None:
        """Next window to fetch, or None if no slot past the cursor is available."""
        if self._slot_cursor is not None:
            from_slot = self._slot_cursor + 1
        elif self._cfg.from_slot is not None:
            from_slot = self._cfg.from_slot
        else:
            from_slot = latest_slot
        if self._cfg.from_slot is not None and self._cfg.from_slot > from_slot:
            from_slot = self._cfg.from_slot

        to_slot = min(from_slot + self._cfg.slot_batch_size, latest_slot)
        if self._cfg.to_slot is not None:
            to_slot = min(to_slot, self._cfg.to_slot)

        if from_slot > to_slot:
            return None
        return SlotRange(from_slot, to_slot)

    async def _get_signature_window(self, slot_range: SlotRange) -> SignatureWindow | None:
        from_block = await self._find_valid_block(
            slot_range.from_slot, 1, slot_range.to_slot
        )
        if from_block is None:
            return None
        # The backward walk stops at from_block, which is known to be valid.
        to_block = await self._find_valid_block(
            slot_range.to_slot, -1, from_block.slot or slot_range.from_slot
        )
        if to_block is None:
            return None

        if from_block.block_time is None or to_block.block_time is None:
            raise InvalidRangeError(
                f"Block time missing for slots [{slot_range.from_slot}, {slot_range.to_slot}]"
            )
        if from_block.block_time > to_block.block_time:
            raise InvalidRangeError(
                f"Block time of slot {from_block.slot} is after slot {to_block.slot}"
            )

        after = from_block.transactions[0].signature
        before = to_block.transactions[-1].signature
        if not after or not before:
            raise InvalidRangeError(
                f"Missing signature cursor for slots [{slot_range.from_slot}, {slot_range.to_slot}]"
            )
        return SignatureWindow(after=after, before=before)

    async def _find_valid_block(self, slot: int, step: int, bound: int) -> SolanaBlock | None:
        """First block with transactions from ``slot`` toward ``bound`` (inclusive)."""
        while (step > 0 and slot <= bound) or (step < 0 and slot >= bound):
            result = await self._repo.get_block(slot, self._cfg.commitment)
            if not result.is_ok():
                failure = result.get_error()
                if not failure.is_expected_gap():
                    raise failure
                log.debug("[%s] Slot %d unavailable: %s", self._cfg.id, slot, failure.message)
            else:
                block = result.get_value()
                if block.transactions:
                    if block.slot is None:
                        block.slot = slot
                    return block
            slot += step
        return None

    def report(self) -> None:
        self._report_cursor(self._latest_slot, self._slot_cursor, self._cfg.commitment)
