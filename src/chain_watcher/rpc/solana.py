"""Solana JSON-RPC repository."""

from __future__ import annotations

import logging
from typing import Any, Mapping

from chain_watcher.errors import RpcError, SolanaFailure
from chain_watcher.interfaces.repositories import ProviderHealth
from chain_watcher.models.results import Fallible
from chain_watcher.models.solana import (
    ConfirmedSignatureInfo,
    SolanaBlock,
    SolanaInstruction,
    SolanaMessage,
    SolanaTransaction,
)
from chain_watcher.rpc.client import JsonRpcClient

log = logging.getLogger(__name__)


def _commitment(commitment: str | None) -> dict[str, Any]:
    # getBlock/getTransaction only accept finalized or confirmed
    if commitment in ("finalized", "confirmed"):
        return {"commitment": commitment}
    return {}


def parse_transaction(raw: Mapping[str, Any], slot: int | None = None) -> SolanaTransaction:
    tx = raw.get("transaction", {})
    message = tx.get("message", {})
    meta = raw.get("meta") or {}
    account_keys = [
        key if isinstance(key, str) else key.get("pubkey", "")
        for key in message.get("accountKeys", [])
    ]
    return SolanaTransaction(
        signatures=list(tx.get("signatures", [])),
        message=SolanaMessage(
            account_keys=account_keys,
            instructions=[
                SolanaInstruction(
                    program_id_index=ix.get("programIdIndex", -1),
                    accounts=list(ix.get("accounts", [])),
                    data=ix.get("data", ""),
                )
                for ix in message.get("instructions", [])
            ],
        ),
        slot=raw.get("slot") or slot,
        block_time=raw.get("blockTime"),
        err=meta.get("err"),
        log_messages=list(meta.get("logMessages") or []),
    )


def parse_block(raw: Mapping[str, Any], slot: int) -> SolanaBlock:
    block_time = raw.get("blockTime")
    transactions = []
    for item in raw.get("transactions", []):
        tx = parse_transaction(item, slot)
        if tx.block_time is None:
            tx.block_time = block_time
        transactions.append(tx)
    return SolanaBlock(
        blockhash=raw.get("blockhash", ""),
        block_time=block_time,
        transactions=transactions,
        slot=slot,
    )


class SolanaJsonRpcRepository:
    """SolanaSlotRepository speaking the Solana JSON-RPC API."""

    def __init__(self, client: JsonRpcClient, chain: str = "solana") -> None:
        self._client = client
        self._chain = chain

    async def close(self) -> None:
        await self._client.close()

    async def get_latest_slot(self, commitment: str) -> int:
        return int(await self._client.call("getSlot", [{"commitment": commitment}]))

    async def get_block(
        self, slot: int, commitment: str | None = None
    ) -> Fallible[SolanaBlock, SolanaFailure]:
        params = {
            "encoding": "json",
            "transactionDetails": "full",
            "maxSupportedTransactionVersion": 0,
            "rewards": False,
            **_commitment(commitment),
        }
        try:
            raw = await self._client.call("getBlock", [slot, params])
        except RpcError as exc:
            # JSON-RPC errors describe the slot; transport errors still raise
            if exc.code is not None:
                return Fallible.fail(SolanaFailure(exc.code, str(exc)))
            raise
        if raw is None:
            return Fallible.fail(SolanaFailure(SolanaFailure.BLOCK_NOT_FOUND, "Block not found"))
        return Fallible.ok(parse_block(raw, slot))

    async def get_signatures_for_address(
        self,
        address: str,
        before: str | None,
        after: str | None,
        limit: int,
        commitment: str | None = None,
    ) -> list[ConfirmedSignatureInfo]:
        options: dict[str, Any] = {"limit": limit, **_commitment(commitment)}
        if before:
            options["before"] = before
        if after:
            options["until"] = after
        raw = await self._client.call("getSignaturesForAddress", [address, options])
        return [
            ConfirmedSignatureInfo(
                signature=item["signature"],
                err=item.get("err"),
                block_time=item.get("blockTime"),
                slot=item.get("slot"),
            )
            for item in raw or []
        ]

    async def get_transactions(
        self, sigs: list[ConfirmedSignatureInfo], commitment: str | None = None
    ) -> list[SolanaTransaction]:
        options = {
            "encoding": "json",
            "maxSupportedTransactionVersion": 0,
            **_commitment(commitment),
        }
        results = await self._client.batch(
            [("getTransaction", [sig.signature, options]) for sig in sigs]
        )
        transactions = []
        for sig, raw in zip(sigs, results):
            if raw is None:
                log.warning("[%s] Transaction %s not returned", self._chain, sig.signature)
                continue
            transactions.append(parse_transaction(raw, sig.slot))
        return transactions

    async def health_check(
        self, chain: str, commitment: str, cursor: int | None
    ) -> list[ProviderHealth]:
        async def height_of(url: str) -> int:
            return int(await self._client.call_on(url, "getSlot", [{"commitment": commitment}]))

        return [await self._client.probe(url, height_of) for url in self._client.urls]
