"""SQLite persistence: job checkpoints and the event sink table."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Sequence

import aiosqlite

from chain_watcher.models.events import CanonicalEvent, LogFoundEvent

SCHEMA = """
-- Per-job progress metadata
CREATE TABLE IF NOT EXISTS checkpoints (
    job_id TEXT PRIMARY KEY,
    metadata TEXT NOT NULL,
    updated_at TEXT NOT NULL DEFAULT (datetime('now'))
);

-- Delivered canonical events
CREATE TABLE IF NOT EXISTS events (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    kind TEXT NOT NULL,
    name TEXT NOT NULL,
    chain TEXT NOT NULL,
    chain_id INTEGER NOT NULL,
    address TEXT NOT NULL,
    tx_hash TEXT NOT NULL,
    block_height INTEGER NOT NULL,
    block_time INTEGER NOT NULL,
    attributes TEXT NOT NULL,
    tags TEXT,
    created_at TEXT NOT NULL DEFAULT (datetime('now'))
);
CREATE UNIQUE INDEX IF NOT EXISTS idx_events_dedupe
    ON events(chain_id, tx_hash, name, attributes);
CREATE INDEX IF NOT EXISTS idx_events_chain_height ON events(chain, block_height);
"""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _dumps(value: Any) -> str:
    return json.dumps(value, sort_keys=True, default=str)


class SQLiteStore:
    """SQLite-backed CheckpointStore that also stores delivered events."""

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path
        self._db: aiosqlite.Connection | None = None

    async def initialize(self) -> None:
        if self._db_path != ":memory:":
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        self._db = await aiosqlite.connect(self._db_path)
        self._db.row_factory = aiosqlite.Row
        await self._db.executescript(SCHEMA)
        await self._db.commit()

    async def close(self) -> None:
        if self._db:
            await self._db.close()
            self._db = None

    @property
    def db(self) -> aiosqlite.Connection:
        assert self._db is not None, "Store not initialized. Call initialize() first."
        return self._db

    # ── Checkpoints ────────────────────────────────────────

    async def get(self, job_id: str) -> dict[str, Any] | None:
        async with self.db.execute(
            "SELECT metadata FROM checkpoints WHERE job_id=?", (job_id,)
        ) as cur:
            row = await cur.fetchone()
            return json.loads(row["metadata"]) if row else None

    async def save(self, job_id: str, metadata: dict[str, Any]) -> None:
        await self.db.execute(
            "INSERT INTO checkpoints (job_id, metadata, updated_at) VALUES (?, ?, ?)"
            " ON CONFLICT(job_id) DO UPDATE SET metadata=excluded.metadata,"
            " updated_at=excluded.updated_at",
            (job_id, _dumps(metadata), _now()),
        )
        await self.db.commit()

    async def all(self) -> dict[str, dict[str, Any]]:
        async with self.db.execute(
            "SELECT job_id, metadata FROM checkpoints ORDER BY job_id"
        ) as cur:
            rows = await cur.fetchall()
            return {row["job_id"]: json.loads(row["metadata"]) for row in rows}

    # ── Events ─────────────────────────────────────────────

    async def save_events(self, events: Sequence[CanonicalEvent], chain: str) -> int:
        """Insert events, ignoring exact redeliveries. Returns rows inserted."""
        inserted = 0
        for event in events:
            kind = "log" if isinstance(event, LogFoundEvent) else "transaction"
            tags = getattr(event, "tags", None)
            cur = await self.db.execute(
                "INSERT OR IGNORE INTO events"
                " (kind, name, chain, chain_id, address, tx_hash, block_height,"
                "  block_time, attributes, tags, created_at)"
                " VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    kind, event.name, chain, event.chain_id, event.address,
                    event.tx_hash, event.block_height, event.block_time,
                    _dumps(event.attributes), _dumps(tags) if tags else None, _now(),
                ),
            )
            inserted += cur.rowcount
            await cur.close()
        await self.db.commit()
        return inserted

    async def count_events(self, chain: str | None = None) -> int:
        if chain is None:
            query, params = "SELECT COUNT(*) AS n FROM events", ()
        else:
            query, params = "SELECT COUNT(*) AS n FROM events WHERE chain=?", (chain,)
        async with self.db.execute(query, params) as cur:
            row = await cur.fetchone()
            return row["n"] if row else 0

    async def event_counts(self) -> dict[str, int]:
        """Stored events per chain."""
        async with self.db.execute(
            "SELECT chain, COUNT(*) AS n FROM events GROUP BY chain ORDER BY chain"
        ) as cur:
            rows = await cur.fetchall()
            return {row["chain"]: row["n"] for row in rows}


class SQLiteEventSink:
    """EventSink writing into ``SQLiteStore.events``."""

    def __init__(self, store: SQLiteStore) -> None:
        self._store = store

    async def save(self, events: Sequence[CanonicalEvent], chain: str) -> None:
        if not events:
            return
        await self._store.save_events(events, chain)
