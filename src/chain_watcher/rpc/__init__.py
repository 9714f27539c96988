"""httpx-backed chain repositories."""

from chain_watcher.rpc.client import JsonRpcClient
from chain_watcher.rpc.evm import EvmJsonRpcRepository
from chain_watcher.rpc.solana import SolanaJsonRpcRepository
from chain_watcher.rpc.wormchain import WormchainJsonRpcRepository

__all__ = [
    "JsonRpcClient",
    "EvmJsonRpcRepository",
    "SolanaJsonRpcRepository",
    "WormchainJsonRpcRepository",
]
