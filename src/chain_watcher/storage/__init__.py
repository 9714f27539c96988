"""Persistence backends."""

from chain_watcher.storage.sqlite import SQLiteEventSink, SQLiteStore

__all__ = ["SQLiteStore", "SQLiteEventSink"]
