"""EventSink protocol - downstream consumer of canonical events."""

from __future__ import annotations

from typing import Protocol, Sequence

from chain_watcher.models.events import CanonicalEvent


class EventSink(Protocol):
    """Receives every mapped batch exactly once per successful dispatch.

    Delivery is at-least-once: a batch may be replayed after a crash between
    dispatch and checkpoint, so implementations should deduplicate.
    """

    async def save(self, events: Sequence[CanonicalEvent], chain: str) -> None:
        """Persist or forward ``events``. Raising fails the whole batch."""
        ...
