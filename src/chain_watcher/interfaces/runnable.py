"""Runnable protocol - anything the orchestrator can start and stop."""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Protocol, Sequence

Handler = Callable[[Sequence[Any]], Awaitable[Any]]


class Runnable(Protocol):
    """A long-running loop fed to one or more handlers."""

    async def run(self, handlers: Sequence[Handler]) -> None:
        """Loop until stopped or finished. Ticks never overlap."""
        ...

    async def stop(self) -> None:
        """Request the loop to end at the next tick boundary."""
        ...
