"""Data models for the chain_watcher engine."""

from chain_watcher.models.config import (
    ChainRpcConfig,
    EvmPollerConfig,
    HandlerConfig,
    SolanaPollerConfig,
    WatcherConfig,
    WormchainPollerConfig,
)
from chain_watcher.models.events import CanonicalEvent, LogFoundEvent, TransactionFoundEvent
from chain_watcher.models.evm import EvmBlock, EvmLog, EvmLogFilter, EvmReceipt, EvmTransaction
from chain_watcher.models.jobs import (
    HandlerDefinition,
    JobDefinition,
    JobExecution,
    JobState,
    SourceDefinition,
)
from chain_watcher.models.results import Fallible
from chain_watcher.models.solana import (
    ConfirmedSignatureInfo,
    SolanaBlock,
    SolanaInstruction,
    SolanaMessage,
    SolanaTransaction,
)
from chain_watcher.models.wormchain import (
    WormchainAttribute,
    WormchainBlockLogs,
    WormchainTransaction,
)

__all__ = [
    "ChainRpcConfig", "EvmPollerConfig", "HandlerConfig", "SolanaPollerConfig",
    "WatcherConfig", "WormchainPollerConfig",
    "CanonicalEvent", "LogFoundEvent", "TransactionFoundEvent",
    "EvmBlock", "EvmLog", "EvmLogFilter", "EvmReceipt", "EvmTransaction",
    "HandlerDefinition", "JobDefinition", "JobExecution", "JobState", "SourceDefinition",
    "Fallible",
    "ConfirmedSignatureInfo", "SolanaBlock", "SolanaInstruction", "SolanaMessage",
    "SolanaTransaction",
    "WormchainAttribute", "WormchainBlockLogs", "WormchainTransaction",
]
