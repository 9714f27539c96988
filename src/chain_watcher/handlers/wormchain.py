"""Wormchain transaction handler."""

from __future__ import annotations

from chain_watcher.handlers.base import RecordHandler
from chain_watcher.models.wormchain import WormchainTransaction

CONTRACT_ADDRESS_KEYS = ("_contract_address", "contract_address")


def contract_address(tx: WormchainTransaction) -> str | None:
    for key in CONTRACT_ADDRESS_KEYS:
        if (value := tx.attribute(key)) is not None:
            return value
    return None


class HandleWormchainLogs(RecordHandler[WormchainTransaction]):
    """Keeps transactions executed against a configured contract address."""

    def matches(self, record: WormchainTransaction) -> bool:
        return self._address_allowed(contract_address(record))
