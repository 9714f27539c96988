"""Chain pollers: one PollingJob subclass per progress model."""

from chain_watcher.pollers.base import PollingJob
from chain_watcher.pollers.evm import GetEvmLogs, GetEvmTransactions, PollEvm
from chain_watcher.pollers.solana import GetSolanaTransactions, PollSolanaTransactions
from chain_watcher.pollers.wormchain import PollWormchain

__all__ = [
    "PollingJob",
    "PollEvm", "GetEvmLogs", "GetEvmTransactions",
    "PollSolanaTransactions", "GetSolanaTransactions",
    "PollWormchain",
]
