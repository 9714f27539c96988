"""Wormchain mappers."""

from __future__ import annotations

import logging
from typing import Any

from chain_watcher.handlers.wormchain import contract_address
from chain_watcher.models.config import HandlerConfig
from chain_watcher.models.events import LogFoundEvent
from chain_watcher.models.wormchain import WormchainTransaction

log = logging.getLogger(__name__)


def _int(value: str | None) -> int | None:
    try:
        return int(value) if value is not None else None
    except ValueError:
        return None


def wormchain_log_message_published_mapper(
    tx: WormchainTransaction, cfg: HandlerConfig
) -> LogFoundEvent[dict[str, Any]] | None:
    """Build ``log-message-published`` from decoded ``message.*`` attributes.

    Returns None unless the transaction was executed against a configured
    core contract and carries a complete message.
    """
    core_contract = (contract_address(tx) or "").lower()
    if not core_contract or (cfg.addresses and core_contract not in cfg.addresses):
        return None

    emitter_chain = _int(tx.attribute("message.chain_id"))
    sequence = _int(tx.attribute("message.sequence"))
    nonce = _int(tx.attribute("message.nonce"))
    payload = tx.attribute("message.message")
    sender = tx.attribute("message.sender")
    if emitter_chain is None or sequence is None or nonce is None or not payload or not sender:
        return None
    if tx.block_height is None or tx.timestamp is None:
        raise ValueError(f"Block height or timestamp missing for tx {tx.hash}")

    log.info(
        "[%s] Source event info: [tx: %s][VAA: %d/%s/%d]",
        cfg.chain, tx.hash, emitter_chain, sender.lower(), sequence,
    )
    return LogFoundEvent(
        name="log-message-published",
        address=core_contract,
        chain_id=emitter_chain,
        tx_hash=tx.hash,
        block_height=tx.block_height,
        block_time=tx.timestamp,
        attributes={
            "sender": sender.lower(),
            "sequence": sequence,
            "payload": payload.lower(),
            "nonce": nonce,
            "consistency_level": 0,
        },
    )
