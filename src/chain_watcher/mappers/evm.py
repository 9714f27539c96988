"""EVM mappers: LogMessagePublished logs and found transactions."""

from __future__ import annotations

import logging
from typing import Any

from chain_watcher.models.config import HandlerConfig
from chain_watcher.models.events import LogFoundEvent, TransactionFoundEvent
from chain_watcher.models.evm import EvmLog, EvmTransaction

log = logging.getLogger(__name__)

# keccak256("LogMessagePublished(address,uint64,uint32,bytes,uint8)")
LOG_MESSAGE_PUBLISHED_TOPIC = (
    "0x6eb224fb001ed210e379b335e35efe88672a8ce935d981a6896b27ffdf52a3b2"
)

TX_STATUS_CONFIRMED = "0x1"
TX_STATUS_FAILED = "0x0"

WORD = 32


def _hex_bytes(value: str) -> bytes:
    return bytes.fromhex(value[2:] if value.startswith("0x") else value)


def _word(data: bytes, index: int) -> int:
    return int.from_bytes(data[index * WORD:(index + 1) * WORD], "big")


def decode_log_message_published(evm_log: EvmLog) -> dict[str, Any]:
    """Decode the non-indexed ``(uint64, uint32, bytes, uint8)`` body.

    Raises ValueError if ``data`` is too short for the ABI layout.
    """
    data = _hex_bytes(evm_log.data)
    if len(data) < 4 * WORD:
        raise ValueError(f"LogMessagePublished data too short in {evm_log.transaction_hash}")

    offset = _word(data, 2)
    length = int.from_bytes(data[offset:offset + WORD], "big")
    payload = data[offset + WORD:offset + WORD + length]
    if len(payload) != length:
        raise ValueError(f"LogMessagePublished payload truncated in {evm_log.transaction_hash}")

    return {
        "sender": "0x" + _hex_bytes(evm_log.topics[1])[-20:].hex(),
        "sequence": _word(data, 0),
        "nonce": _word(data, 1),
        "payload": "0x" + payload.hex(),
        "consistency_level": _word(data, 3),
    }


def evm_log_message_published_mapper(
    evm_log: EvmLog, cfg: HandlerConfig
) -> LogFoundEvent[dict[str, Any]] | None:
    if not evm_log.topics or evm_log.topics[0] != LOG_MESSAGE_PUBLISHED_TOPIC:
        return None
    if len(evm_log.topics) < 2:
        return None
    if evm_log.block_time is None:
        raise ValueError(f"Block time missing for log in {evm_log.transaction_hash}")

    attributes = decode_log_message_published(evm_log)
    log.info(
        "[%s] Source event info: [tx: %s][emitter: %s][seq: %d]",
        evm_log.chain or cfg.chain, evm_log.transaction_hash,
        attributes["sender"], attributes["sequence"],
    )
    return LogFoundEvent(
        name="log-message-published",
        address=evm_log.address,
        chain_id=evm_log.chain_id or cfg.chain_id,
        tx_hash=evm_log.transaction_hash,
        block_height=evm_log.block_number,
        block_time=evm_log.block_time,
        attributes=attributes,
    )


def evm_transaction_found_mapper(
    tx: EvmTransaction, cfg: HandlerConfig
) -> TransactionFoundEvent[dict[str, Any]] | None:
    if tx.to_address is None or tx.timestamp is None:
        return None

    status = "completed" if tx.status == TX_STATUS_CONFIRMED else "failed"
    method_id = tx.input[:10] if len(tx.input) >= 10 else None
    return TransactionFoundEvent(
        name=str(cfg.extra.get("event_name", "transaction-found")),
        address=tx.to_address,
        tx_hash=tx.hash,
        block_height=tx.block_number,
        chain_id=tx.chain_id or cfg.chain_id,
        block_time=tx.timestamp,
        attributes={
            "from": tx.from_address,
            "to": tx.to_address,
            "status": status,
            "method_id": method_id,
            "block_hash": tx.block_hash,
            "nonce": tx.nonce,
            "value": str(tx.value),
            "gas": tx.gas,
            "gas_price": tx.gas_price,
            "log_count": len(tx.logs),
        },
    )
