"""EVM JSON-RPC repository (eth_* methods over httpx)."""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping

from chain_watcher.errors import ConfigurationError, RpcError
from chain_watcher.interfaces.repositories import ProviderHealth
from chain_watcher.models.evm import (
    EvmBlock,
    EvmLog,
    EvmLogFilter,
    EvmReceipt,
    EvmTransaction,
)
from chain_watcher.rpc.client import JsonRpcClient

log = logging.getLogger(__name__)

COMMITMENTS = {"latest", "safe", "finalized", "pending", "earliest"}


def _int(value: Any, default: int = 0) -> int:
    if value is None:
        return default
    if isinstance(value, int):
        return value
    return int(value, 16) if str(value).startswith("0x") else int(value)


def _opt_int(value: Any) -> int | None:
    return None if value is None else _int(value)


def parse_log(raw: Mapping[str, Any]) -> EvmLog:
    return EvmLog(
        address=str(raw["address"]).lower(),
        topics=list(raw.get("topics", [])),
        data=raw.get("data", "0x"),
        block_number=_int(raw["blockNumber"]),
        block_hash=raw.get("blockHash", ""),
        transaction_hash=raw["transactionHash"],
        log_index=_int(raw.get("logIndex")),
        transaction_index=_opt_int(raw.get("transactionIndex")),
        removed=bool(raw.get("removed", False)),
    )


def parse_transaction(raw: Mapping[str, Any]) -> EvmTransaction:
    to = raw.get("to")
    return EvmTransaction(
        hash=raw["hash"],
        from_address=str(raw.get("from", "")).lower(),
        to_address=to.lower() if to else None,
        input=raw.get("input", "0x"),
        block_number=_int(raw.get("blockNumber")),
        block_hash=raw.get("blockHash", ""),
        nonce=_int(raw.get("nonce")),
        value=_int(raw.get("value")),
        gas=_int(raw.get("gas")),
        gas_price=_opt_int(raw.get("gasPrice")),
        transaction_index=_opt_int(raw.get("transactionIndex")),
    )


def parse_block(raw: Mapping[str, Any]) -> EvmBlock:
    timestamp = _int(raw["timestamp"])
    transactions = []
    for tx in raw.get("transactions", []):
        # Hash-only blocks list transactions as strings
        if isinstance(tx, Mapping):
            parsed = parse_transaction(tx)
            parsed.timestamp = timestamp
            transactions.append(parsed)
    return EvmBlock(
        number=_int(raw["number"]),
        hash=raw["hash"],
        timestamp=timestamp,
        transactions=transactions,
    )


class EvmJsonRpcRepository:
    """EvmBlockRepository for any number of EVM chains, one client each."""

    def __init__(self, clients: Mapping[str, JsonRpcClient]) -> None:
        self._clients = dict(clients)

    def _client(self, chain: str) -> JsonRpcClient:
        client = self._clients.get(chain)
        if client is None:
            raise ConfigurationError(f"No RPC providers configured for chain {chain}")
        return client

    async def close(self) -> None:
        for client in self._clients.values():
            await client.close()

    async def get_block_height(self, chain: str, commitment: str) -> int:
        if commitment not in COMMITMENTS:
            raise ConfigurationError(f"Unknown EVM commitment: {commitment}")
        block = await self._client(chain).call("eth_getBlockByNumber", [commitment, False])
        if not block:
            raise RpcError(f"No {commitment} block returned for {chain}")
        return _int(block["number"])

    async def get_blocks(
        self, chain: str, heights: Iterable[int], with_transactions: bool = False
    ) -> dict[int, EvmBlock]:
        ordered = sorted(set(heights))
        results = await self._client(chain).batch(
            [("eth_getBlockByNumber", [hex(h), with_transactions]) for h in ordered]
        )
        blocks: dict[int, EvmBlock] = {}
        for height, raw in zip(ordered, results):
            if raw is None:
                log.warning("[%s] Block %d not returned by provider", chain, height)
                continue
            blocks[height] = parse_block(raw)
        return blocks

    async def get_filtered_logs(self, chain: str, log_filter: EvmLogFilter) -> list[EvmLog]:
        params: dict[str, Any] = {
            "fromBlock": hex(log_filter.from_block),
            "toBlock": hex(log_filter.to_block),
        }
        if log_filter.addresses:
            params["address"] = list(log_filter.addresses)
        if log_filter.topics:
            params["topics"] = [list(log_filter.topics)]
        raw_logs = await self._client(chain).call("eth_getLogs", [params])
        return [parse_log(raw) for raw in raw_logs or []]

    async def get_transaction_receipts(
        self, chain: str, hashes: Iterable[str]
    ) -> dict[str, EvmReceipt]:
        ordered = list(dict.fromkeys(hashes))
        results = await self._client(chain).batch(
            [("eth_getTransactionReceipt", [h]) for h in ordered]
        )
        receipts: dict[str, EvmReceipt] = {}
        for tx_hash, raw in zip(ordered, results):
            if raw is None:
                continue
            receipts[tx_hash] = EvmReceipt(
                transaction_hash=tx_hash,
                status=raw.get("status", "0x0"),
                logs=[parse_log(item) for item in raw.get("logs", [])],
            )
        return receipts

    async def health_check(
        self, chain: str, commitment: str, cursor: int | None
    ) -> list[ProviderHealth]:
        client = self._client(chain)

        async def height_of(url: str) -> int:
            block = await client.call_on(url, "eth_getBlockByNumber", [commitment, False])
            return _int(block["number"])

        return [await client.probe(url, height_of) for url in client.urls]
