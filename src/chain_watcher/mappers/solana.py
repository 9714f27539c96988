"""Solana mappers."""

from __future__ import annotations

import logging
from typing import Any

from chain_watcher.models.config import HandlerConfig
from chain_watcher.models.events import TransactionFoundEvent
from chain_watcher.models.solana import SolanaTransaction

log = logging.getLogger(__name__)


def solana_transaction_found_mapper(
    tx: SolanaTransaction, cfg: HandlerConfig
) -> TransactionFoundEvent[dict[str, Any]] | None:
    """Event for a successful transaction invoking the configured program."""
    program_id = cfg.extra.get("program_id")
    if tx.err is not None:
        log.info("[%s] Ignoring tx %s because it failed: %s", cfg.chain, tx.signature, tx.err)
        return None
    if tx.block_time is None or tx.slot is None or tx.signature is None:
        raise ValueError(f"Block time or slot missing for tx {tx.signature}")

    invoked = tx.message.program_ids()
    if program_id and program_id not in invoked:
        return None

    return TransactionFoundEvent(
        name=str(cfg.extra.get("event_name", "transaction-found")),
        address=program_id or (invoked[0] if invoked else ""),
        tx_hash=tx.signature,
        block_height=tx.slot,
        chain_id=tx.chain_id or cfg.chain_id,
        block_time=tx.block_time,
        attributes={
            "status": "completed",
            "programs": invoked,
            "instruction_count": len(tx.message.instructions),
        },
    )
