"""Exception hierarchy shared by pollers, handlers and the job orchestrator."""

from __future__ import annotations


class WatcherError(Exception):
    """Base class for every error raised by chain_watcher."""


class ConfigurationError(WatcherError):
    """Invalid job or poller configuration. Fatal, never retried."""


class InvalidRangeError(ConfigurationError):
    """A fetched block/slot window is not self-consistent."""


class RpcError(WatcherError):
    """Transport or JSON-RPC level failure. Retried on the next tick."""

    def __init__(self, message: str, code: int | None = None, url: str | None = None) -> None:
        super().__init__(message)
        self.code = code
        self.url = url


class SolanaFailure(WatcherError):
    """Failure returned by a Solana block lookup.

    Returned as a value from ``SolanaSlotRepository.get_block`` so pollers can
    tell expected gaps (skipped slots, pruned blocks) from real failures.
    """

    BLOCK_NOT_FOUND = 0
    BLOCK_NOT_AVAILABLE = -32004
    SLOT_SKIPPED = -32007
    LONG_TERM_STORAGE_SLOT_SKIPPED = -32009

    def __init__(self, code: int, message: str) -> None:
        super().__init__(f"{message} (code {code})")
        self.code = code
        self.message = message

    def skipped_slot(self) -> bool:
        return self.code in (self.SLOT_SKIPPED, self.LONG_TERM_STORAGE_SLOT_SKIPPED)

    def no_block_or_block_time(self) -> bool:
        if self.code in (self.BLOCK_NOT_FOUND, self.BLOCK_NOT_AVAILABLE):
            return True
        return "block time" in self.message.lower()

    def is_expected_gap(self) -> bool:
        return self.skipped_slot() or self.no_block_or_block_time()
