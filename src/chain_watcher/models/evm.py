"""Raw EVM records as returned by an EvmBlockRepository."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class EvmLog:
    address: str
    topics: list[str]
    data: str
    block_number: int
    block_hash: str
    transaction_hash: str
    log_index: int
    transaction_index: int | None = None
    removed: bool = False
    chain_id: int = 0
    chain: str = ""
    block_time: int | None = None  # stamped by the poller from block headers


@dataclass
class EvmTransaction:
    hash: str
    from_address: str
    to_address: str | None
    input: str
    block_number: int
    block_hash: str
    nonce: int = 0
    value: int = 0
    gas: int = 0
    gas_price: int | None = None
    transaction_index: int | None = None
    status: str | None = None  # "0x1" success, "0x0" reverted, None until receipt
    timestamp: int | None = None
    logs: list[EvmLog] = field(default_factory=list)
    chain_id: int = 0
    chain: str = ""


@dataclass
class EvmBlock:
    number: int
    hash: str
    timestamp: int
    transactions: list[EvmTransaction] = field(default_factory=list)


@dataclass
class EvmReceipt:
    transaction_hash: str
    status: str
    logs: list[EvmLog] = field(default_factory=list)


@dataclass(frozen=True)
class EvmLogFilter:
    """Range + address/topic filter for eth_getLogs.

    ``topics`` are alternatives for topic[0] (OR-ed together).
    """

    from_block: int
    to_block: int
    addresses: tuple[str, ...] = ()
    topics: tuple[str, ...] = ()
