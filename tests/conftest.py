"""Shared fixtures for chain_watcher tests."""

from __future__ import annotations

import json

import pytest
from pytest_metadata.plugin import metadata_key

from chain_watcher.models.config import (
    EvmPollerConfig,
    HandlerConfig,
    SolanaPollerConfig,
    WormchainPollerConfig,
)
from chain_watcher.stats import InMemoryStats
from chain_watcher.storage.sqlite import SQLiteStore

from tests.factories import PROGRAM_ID
from tests.mocks import (
    MockCheckpointStore,
    MockEvmRepository,
    MockSolanaRepository,
    MockWormchainRepository,
    RecordingHandler,
    RecordingSink,
)


def pytest_configure(config):
    """Add watched chains to the HTML report Environment table."""
    meta = config.stash.setdefault(metadata_key, {})
    meta["Chains"] = "EVM, Solana, Wormchain (mocked RPC)"


def make_evm_config(**overrides) -> EvmPollerConfig:
    defaults = dict(
        chain="ethereum",
        chain_id=2,
        id="poll-ethereum",
        block_batch_size=100,
        interval=0,
    )
    defaults.update(overrides)
    return EvmPollerConfig(**defaults)


def make_solana_config(**overrides) -> SolanaPollerConfig:
    defaults = dict(
        id="poll-solana",
        program_ids=[PROGRAM_ID],
        slot_batch_size=100,
        signatures_limit=2,
        interval=0,
    )
    defaults.update(overrides)
    return SolanaPollerConfig(**defaults)


def make_wormchain_config(**overrides) -> WormchainPollerConfig:
    defaults = dict(chain_id=3104, id="poll-wormchain", block_batch_size=100, interval=0)
    defaults.update(overrides)
    return WormchainPollerConfig(**defaults)


def make_handler_config(**overrides) -> HandlerConfig:
    defaults = dict(id="job-1", chain="ethereum", chain_id=2)
    defaults.update(overrides)
    return HandlerConfig(**defaults)


def write_jobs(tmp_path, jobs) -> str:
    path = tmp_path / "jobs.json"
    path.write_text(json.dumps(jobs))
    return str(path)


@pytest.fixture
def stats():
    return InMemoryStats()


@pytest.fixture
def checkpoints():
    return MockCheckpointStore()


@pytest.fixture
async def store():
    """Initialized in-memory SQLiteStore."""
    s = SQLiteStore(":memory:")
    await s.initialize()
    yield s
    await s.close()


@pytest.fixture
def evm_repo():
    return MockEvmRepository()


@pytest.fixture
def solana_repo():
    return MockSolanaRepository()


@pytest.fixture
def wormchain_repo():
    return MockWormchainRepository()


@pytest.fixture
def handler():
    return RecordingHandler()


@pytest.fixture
def sink():
    return RecordingSink()
