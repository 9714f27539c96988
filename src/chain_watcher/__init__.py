"""chain_watcher - multi-chain polling, checkpointing and event dispatch."""

__version__ = "0.1.0"
