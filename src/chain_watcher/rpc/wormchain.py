"""Wormchain repository over the Tendermint URI RPC (/abci_info, /block, /tx)."""

from __future__ import annotations

import base64
import hashlib
import logging
import re
from datetime import datetime, timezone
from typing import Any, Mapping

from chain_watcher.errors import RpcError
from chain_watcher.interfaces.repositories import ProviderHealth
from chain_watcher.models.wormchain import (
    WormchainAttribute,
    WormchainBlockLogs,
    WormchainTransaction,
)
from chain_watcher.rpc.client import JsonRpcClient

log = logging.getLogger(__name__)

BLOCK_HEIGHT_ENDPOINT = "/abci_info"
BLOCK_ENDPOINT = "/block"
TRANSACTION_ENDPOINT = "/tx"

_FRACTION = re.compile(r"\.(\d+)")


def tx_hash(encoded_tx: str) -> str:
    """Tendermint tx hash: sha256 of the raw tx bytes, hex encoded."""
    return hashlib.sha256(base64.b64decode(encoded_tx)).hexdigest()


def parse_timestamp(value: str) -> int:
    """RFC 3339 header time (nanosecond precision) to unix seconds."""
    value = _FRACTION.sub(lambda m: "." + m.group(1)[:6], value)
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp())


def _last_block_height(body: Mapping[str, Any] | None) -> int | None:
    try:
        height = body["result"]["response"]["last_block_height"]  # type: ignore[index]
    except (KeyError, TypeError):
        return None
    return int(height) if height else None


def group_events(hash_: str, events: list[Mapping[str, Any]]) -> list[WormchainTransaction]:
    """One WormchainTransaction per event type, attributes kept undecoded."""
    grouped: dict[str, WormchainTransaction] = {}
    for event in events:
        event_type = event.get("type", "")
        tx = grouped.setdefault(event_type, WormchainTransaction(hash=hash_, type=event_type))
        for attr in event.get("attributes", []):
            tx.attributes.append(
                WormchainAttribute(
                    key=attr.get("key", ""),
                    value=attr.get("value") or "",
                    index=bool(attr.get("index", False)),
                )
            )
    return list(grouped.values())


class WormchainJsonRpcRepository:
    """WormchainRepository with one provider pool per chain id."""

    def __init__(
        self,
        clients: Mapping[int, JsonRpcClient],
        chain_ids: Mapping[str, int] | None = None,
    ) -> None:
        self._clients = dict(clients)
        self._chain_ids = dict(chain_ids or {})

    def _client(self, chain_id: int) -> JsonRpcClient:
        client = self._clients.get(chain_id)
        if client is None:
            raise RpcError(f"No RPC providers configured for chain id {chain_id}")
        return client

    async def close(self) -> None:
        for client in self._clients.values():
            await client.close()

    async def get_block_height(self, chain_id: int) -> int | None:
        body = await self._client(chain_id).get(BLOCK_HEIGHT_ENDPOINT)
        return _last_block_height(body)

    async def get_block_logs(self, chain_id: int, height: int) -> WormchainBlockLogs:
        client = self._client(chain_id)
        body = await client.get(BLOCK_ENDPOINT, {"height": str(height)})
        try:
            block = body["result"]["block"]
            header = block["header"]
            encoded_txs = block["data"].get("txs") or []
        except (KeyError, TypeError) as exc:
            raise RpcError(f"Malformed block {height} for chain id {chain_id}") from exc

        transactions: list[WormchainTransaction] = []
        for encoded in encoded_txs:
            hash_ = tx_hash(encoded)
            tx_body = await client.get(TRANSACTION_ENDPOINT, {"hash": f"0x{hash_}"})
            events = ((tx_body or {}).get("result") or {}).get("tx_result", {}).get("events")
            if not events:
                continue
            transactions.extend(group_events(f"0x{hash_}", events))

        return WormchainBlockLogs(
            block_height=int(header["height"]),
            timestamp=parse_timestamp(header["time"]),
            transactions=transactions,
        )

    async def health_check(
        self, chain: str, commitment: str, cursor: int | None
    ) -> list[ProviderHealth]:
        results: list[ProviderHealth] = []
        if chain in self._chain_ids:
            clients = [self._client(self._chain_ids[chain])]
        else:
            clients = list(self._clients.values())
        for client in clients:

            async def height_of(url: str, client: JsonRpcClient = client) -> int:
                height = _last_block_height(await client.get_on(url, BLOCK_HEIGHT_ENDPOINT))
                if height is None:
                    raise RpcError(f"No block height from {url}")
                return height

            results.extend([await client.probe(url, height_of) for url in client.urls])
        return results
