"""CheckpointStore protocol - per-job progress persistence."""

from __future__ import annotations

from typing import Any, Protocol


class CheckpointStore(Protocol):
    """Key-value store of job progress metadata, keyed by job id.

    Metadata shapes: ``{"lastBlock": int}`` for EVM and Wormchain jobs,
    ``{"lastSlot": int}`` for Solana jobs.
    """

    async def get(self, job_id: str) -> dict[str, Any] | None:
        """Return the last saved metadata, or None if the job never checkpointed."""
        ...

    async def save(self, job_id: str, metadata: dict[str, Any]) -> None:
        """Persist metadata for ``job_id``, replacing the previous value."""
        ...
