"""Event sinks besides the SQLite table."""

from __future__ import annotations

import logging
from typing import Sequence

from chain_watcher.models.events import CanonicalEvent

log = logging.getLogger(__name__)


class LoggingSink:
    """EventSink that only logs what it receives. Used for dry runs."""

    def __init__(self, level: int = logging.INFO) -> None:
        self._level = level
        self.delivered = 0

    async def save(self, events: Sequence[CanonicalEvent], chain: str) -> None:
        if not events:
            return
        self.delivered += len(events)
        log.log(self._level, "[%s] %d events", chain, len(events))
        for event in events:
            log.debug(
                "[%s] %s tx=%s height=%d", chain, event.name, event.tx_hash, event.block_height
            )
