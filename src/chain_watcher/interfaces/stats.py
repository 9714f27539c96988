"""StatsReporter protocol - counters and measurements for observability."""

from __future__ import annotations

from typing import Mapping, Protocol


class StatsReporter(Protocol):
    """Fire-and-forget metrics. Callers must not depend on its success."""

    def count(
        self, name: str, labels: Mapping[str, str] | None = None, increase: int = 1
    ) -> None:
        ...

    def measure(
        self, name: str, value: float, labels: Mapping[str, str] | None = None
    ) -> None:
        ...

    def report(self) -> str:
        """Render all recorded metrics as text."""
        ...
