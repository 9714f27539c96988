"""Solana transaction handler."""

from __future__ import annotations

from chain_watcher.handlers.base import RecordHandler
from chain_watcher.models.solana import SolanaTransaction


class HandleSolanaTransactions(RecordHandler[SolanaTransaction]):
    """Keeps transactions whose account keys include a configured program id.

    Program ids are case-sensitive base58, so they come from the
    ``program_id``/``program_ids`` keys rather than the lower-cased ``addresses``.
    """

    def matches(self, record: SolanaTransaction) -> bool:
        program_ids = self._program_ids()
        if not program_ids:
            return True
        keys = set(record.message.account_keys)
        return any(program_id in keys for program_id in program_ids)

    def _program_ids(self) -> list[str]:
        ids = list(self.cfg.extra.get("program_ids", []))
        if program_id := self.cfg.extra.get("program_id"):
            ids.append(program_id)
        return ids
