"""Reference mappers from raw chain records to canonical events.

A mapper is ``mapper(record, HandlerConfig) -> event | None``; None means the
record is not applicable and is dropped by the handler.
"""

from chain_watcher.mappers.evm import (
    evm_log_message_published_mapper,
    evm_transaction_found_mapper,
)
from chain_watcher.mappers.solana import solana_transaction_found_mapper
from chain_watcher.mappers.wormchain import wormchain_log_message_published_mapper

MAPPERS = {
    "evmLogMessagePublishedMapper": evm_log_message_published_mapper,
    "evmTransactionFoundMapper": evm_transaction_found_mapper,
    "solanaTransactionFoundMapper": solana_transaction_found_mapper,
    "wormchainLogMessagePublishedMapper": wormchain_log_message_published_mapper,
}

__all__ = [
    "MAPPERS",
    "evm_log_message_published_mapper",
    "evm_transaction_found_mapper",
    "solana_transaction_found_mapper",
    "wormchain_log_message_published_mapper",
]
