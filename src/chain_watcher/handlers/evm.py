"""EVM handlers: logs and whole transactions."""

from __future__ import annotations

from chain_watcher.handlers.base import RecordHandler
from chain_watcher.models.evm import EvmLog, EvmTransaction


class HandleEvmLogs(RecordHandler[EvmLog]):
    """Keeps logs emitted by a configured address with a configured topic[0]."""

    def matches(self, record: EvmLog) -> bool:
        topic = record.topics[0] if record.topics else None
        return self._address_allowed(record.address) and self._topic_allowed(topic)


class HandleEvmTransactions(RecordHandler[EvmTransaction]):
    """Keeps transactions sent to a configured address.

    The topic filter passes when any receipt log carries a configured topic[0].
    """

    def matches(self, record: EvmTransaction) -> bool:
        if not self._address_allowed(record.to_address):
            return False
        if not self.cfg.topics:
            return True
        return any(
            evm_log.topics and self._topic_allowed(evm_log.topics[0])
            for evm_log in record.logs
        )
