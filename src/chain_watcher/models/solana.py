"""Raw Solana records as returned by a SolanaSlotRepository."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class SolanaInstruction:
    program_id_index: int
    accounts: list[int] = field(default_factory=list)
    data: str = ""


@dataclass
class SolanaMessage:
    account_keys: list[str] = field(default_factory=list)
    instructions: list[SolanaInstruction] = field(default_factory=list)

    def program_ids(self) -> list[str]:
        """Account keys referenced as the program of any instruction."""
        ids = []
        for ix in self.instructions:
            if 0 <= ix.program_id_index < len(self.account_keys):
                ids.append(self.account_keys[ix.program_id_index])
        return ids


@dataclass
class SolanaTransaction:
    signatures: list[str]
    message: SolanaMessage
    slot: int | None = None
    block_time: int | None = None
    err: Any = None
    log_messages: list[str] = field(default_factory=list)
    chain_id: int | None = None
    chain: str | None = None

    @property
    def signature(self) -> str | None:
        return self.signatures[0] if self.signatures else None


@dataclass
class SolanaBlock:
    blockhash: str
    block_time: int | None
    transactions: list[SolanaTransaction] = field(default_factory=list)
    slot: int | None = None


@dataclass(frozen=True)
class ConfirmedSignatureInfo:
    signature: str
    err: Any = None
    block_time: int | None = None
    slot: int | None = None
