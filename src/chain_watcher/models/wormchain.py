"""Raw Wormchain (Cosmos SDK) records as returned by a WormchainRepository."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class WormchainAttribute:
    key: str
    value: str
    index: bool = False


@dataclass
class WormchainTransaction:
    hash: str
    type: str
    attributes: list[WormchainAttribute] = field(default_factory=list)
    # Stamped by the poller after decoding
    block_height: int | None = None
    timestamp: int | None = None
    chain_id: int | None = None
    chain: str | None = None

    def attribute(self, key: str) -> str | None:
        """First decoded attribute value for ``key``, if present."""
        for attr in self.attributes:
            if attr.key == key:
                return attr.value
        return None


@dataclass
class WormchainBlockLogs:
    block_height: int
    timestamp: int  # unix seconds
    transactions: list[WormchainTransaction] = field(default_factory=list)
