"""Mapping-and-dispatch handlers, one per raw record kind."""

from chain_watcher.handlers.base import Mapper, RecordHandler
from chain_watcher.handlers.evm import HandleEvmLogs, HandleEvmTransactions
from chain_watcher.handlers.solana import HandleSolanaTransactions
from chain_watcher.handlers.wormchain import HandleWormchainLogs

__all__ = [
    "Mapper", "RecordHandler",
    "HandleEvmLogs", "HandleEvmTransactions",
    "HandleSolanaTransactions",
    "HandleWormchainLogs",
]
