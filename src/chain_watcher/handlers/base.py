"""Shared mapping-and-dispatch stage."""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Generic, Optional, Sequence, TypeVar

from chain_watcher.interfaces.sink import EventSink
from chain_watcher.interfaces.stats import StatsReporter
from chain_watcher.models.config import HandlerConfig
from chain_watcher.models.events import CanonicalEvent
from chain_watcher.stats import safe_count, safe_measure

log = logging.getLogger(__name__)

R = TypeVar("R")

Mapper = Callable[[Any, HandlerConfig], Optional[CanonicalEvent]]


class RecordHandler(ABC, Generic[R]):
    """Filter raw records, map them to events and hand the batch to a sink.

    Instances are callables so they can be passed straight to a poller's
    ``run(handlers)``.
    """

    def __init__(
        self,
        cfg: HandlerConfig,
        mapper: Mapper,
        sink: EventSink,
        stats: StatsReporter,
    ) -> None:
        self.cfg = cfg
        self._mapper = mapper
        self._sink = sink
        self._stats = stats

    async def __call__(self, records: Sequence[R]) -> list[CanonicalEvent]:
        return await self.handle(records)

    async def handle(self, records: Sequence[R]) -> list[CanonicalEvent]:
        started = time.monotonic()
        labels = {
            "job": self.cfg.id,
            "chain": self.cfg.chain,
            "environment": self.cfg.environment,
        }
        events: list[CanonicalEvent] = []
        try:
            for record in records:
                if not self.matches(record):
                    continue
                event = self._mapper(record, self.cfg)
                if event is not None:
                    events.append(event)

            await self._sink.save(events, self.cfg.chain)
            if events:
                log.debug(
                    "[%s] Delivered %d/%d records as events",
                    self.cfg.id, len(events), len(records),
                )
            return events
        finally:
            safe_count(self._stats, self.cfg.metric_name, labels, len(events))
            safe_measure(
                self._stats, f"{self.cfg.metric_name}_duration",
                time.monotonic() - started, labels,
            )

    @abstractmethod
    def matches(self, record: R) -> bool:
        """True if ``record`` passes this handler's filter."""

    def _address_allowed(self, address: str | None) -> bool:
        if not self.cfg.addresses:
            return True
        return address is not None and address.lower() in self.cfg.addresses

    def _topic_allowed(self, topic: str | None) -> bool:
        if not self.cfg.topics:
            return True
        return topic is not None and topic in self.cfg.topics
