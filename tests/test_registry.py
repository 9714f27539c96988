"""StaticJobRepository - name resolution, and a full job run through StartJobs."""

from __future__ import annotations

import asyncio

import pytest

from chain_watcher.errors import ConfigurationError
from chain_watcher.handlers import HandleEvmLogs, HandleSolanaTransactions
from chain_watcher.jobs import RPCHealthcheck, StartJobs, StaticJobRepository
from chain_watcher.models.jobs import JobDefinition, JobState
from chain_watcher.pollers import PollEvm, PollSolanaTransactions, PollWormchain
from chain_watcher.storage import SQLiteEventSink

from tests.conftest import write_jobs
from tests.factories import PROGRAM_ID, make_job, make_log_message_published
from tests.mocks import RecordingSink


@pytest.fixture
def sinks():
    return {"sqlite": RecordingSink(), "logging": RecordingSink()}


@pytest.fixture
def registry(tmp_path, checkpoints, stats, sinks, evm_repo, solana_repo, wormchain_repo):
    return StaticJobRepository(
        tmp_path / "jobs.json",
        checkpoints,
        stats,
        sinks,
        environment="testnet",
        evm_repo=evm_repo,
        solana_repo=solana_repo,
        wormchain_repo=wormchain_repo,
        chain_ids={"ethereum": 2, "solana": 1, "wormchain": 3104},
    )


def _job(**kwargs) -> JobDefinition:
    return JobDefinition.from_dict(make_job(**kwargs))


class TestSources:

    def test_poll_evm(self, registry):
        source = registry.get_source(_job(source_config={"from_block": 5, "interval": 0}))

        assert isinstance(source, PollEvm)
        assert source.job_id == "poll-ethereum"

    def test_chain_id_falls_back_to_chain_table(self, registry):
        source = registry.get_source(_job(source_config={}))
        assert source._cfg.chain_id == 2
        assert source._cfg.environment == "testnet"

    def test_poll_solana(self, registry):
        source = registry.get_source(_job(
            job_id="poll-solana", chain="solana", action="PollSolanaTransactions",
            source_config={"program_ids": [PROGRAM_ID]},
        ))
        assert isinstance(source, PollSolanaTransactions)
        assert source._cfg.chain_id == 1

    def test_poll_wormchain(self, registry):
        source = registry.get_source(_job(
            job_id="poll-wormchain", chain="wormchain", action="PollWormchain", source_config={},
        ))
        assert isinstance(source, PollWormchain)

    def test_unknown_source(self, registry):
        with pytest.raises(ConfigurationError, match="Source PollBananas not found"):
            registry.get_source(_job(action="PollBananas"))

    def test_unknown_config_key(self, registry):
        with pytest.raises(ConfigurationError, match="fromBlock"):
            registry.get_source(_job(source_config={"fromBlock": 1}))

    def test_missing_repository(self, tmp_path, checkpoints, stats, sinks):
        registry = StaticJobRepository(
            tmp_path / "jobs.json", checkpoints, stats, sinks, chain_ids={"ethereum": 2}
        )
        with pytest.raises(ConfigurationError, match="EVM RPC repository"):
            registry.get_source(_job())


class TestHandlers:

    async def test_builds_handler_with_job_labels(self, registry, sinks):
        [handler] = await registry.get_handlers(_job())

        assert isinstance(handler, HandleEvmLogs)
        assert handler.cfg.id == "poll-ethereum"
        assert handler.cfg.chain == "ethereum"
        assert handler.cfg.chain_id == 2
        assert handler.cfg.environment == "testnet"

        await handler([])
        assert sinks["sqlite"].batches == [([], "ethereum")]

    async def test_solana_program_id_kept_in_extra(self, registry):
        [handler] = await registry.get_handlers(_job(
            chain="solana",
            handlers=[{
                "action": "HandleSolanaTransactions",
                "target": "sqlite",
                "mapper": "solanaTransactionFoundMapper",
                "config": {"program_id": PROGRAM_ID},
            }],
        ))
        assert isinstance(handler, HandleSolanaTransactions)
        assert handler.cfg.extra["program_id"] == PROGRAM_ID

    @pytest.mark.parametrize("field,value,message", [
        ("action", "HandleBananas", "Handler HandleBananas not found"),
        ("mapper", "bananaMapper", "Mapper bananaMapper not found"),
        ("target", "kafka", "Target kafka not found"),
    ])
    async def test_unknown_names_rejected(self, registry, field, value, message):
        definition = {
            "action": "HandleEvmLogs",
            "target": "sqlite",
            "mapper": "evmLogMessagePublishedMapper",
        }
        definition[field] = value
        with pytest.raises(ConfigurationError, match=message):
            await registry.get_handlers(_job(handlers=[definition]))

    async def test_dry_run_routes_to_logging_sink(
        self, tmp_path, checkpoints, stats, sinks, evm_repo
    ):
        registry = StaticJobRepository(
            tmp_path / "jobs.json", checkpoints, stats, sinks,
            dry_run=True, evm_repo=evm_repo, chain_ids={"ethereum": 2},
        )
        [handler] = await registry.get_handlers(_job())

        await handler([])

        assert sinks["sqlite"].batches == []
        assert sinks["logging"].batches == [([], "ethereum")]


class TestHealthcheck:

    def test_targets_every_job_with_default_commitment(self, registry):
        jobs = [
            _job(),
            _job(job_id="poll-solana", chain="solana", action="PollSolanaTransactions"),
            _job(job_id="poll-eth-safe", source_config={"commitment": "safe"}),
        ]

        healthcheck = registry.get_healthcheck(jobs)

        assert isinstance(healthcheck, RPCHealthcheck)
        commitments = {t.id: t.commitment for t in healthcheck._targets}
        assert commitments == {
            "poll-ethereum": "latest",
            "poll-solana": "finalized",
            "poll-eth-safe": "safe",
        }


async def _wait_stopped(jobs: StartJobs, job_id: str) -> None:
    for _ in range(500):
        by_id = {e.job_id: e for e in jobs.executions()}
        if by_id[job_id].state is JobState.STOPPED:
            return
        await asyncio.sleep(0.01)
    raise AssertionError(f"{job_id} did not stop")


async def test_job_file_to_stored_events(tmp_path, checkpoints, stats, store, evm_repo):
    evm_repo.height = 20
    evm_repo.logs = [make_log_message_published(block_number=11)]
    jobs_path = write_jobs(tmp_path, [make_job(
        source_config={"from_block": 10, "to_block": 11, "interval": 0},
    )])
    registry = StaticJobRepository(
        jobs_path, checkpoints, stats, {"sqlite": SQLiteEventSink(store)},
        evm_repo=evm_repo, chain_ids={"ethereum": 2}, healthcheck_interval=60,
    )
    jobs = StartJobs(registry)

    await jobs.run()
    await _wait_stopped(jobs, "poll-ethereum")
    await jobs.stop()

    assert await store.count_events("ethereum") == 1
    assert checkpoints.data["poll-ethereum"] == {"lastBlock": 11}
    execution = {e.job_id: e for e in jobs.executions()}["poll-ethereum"]
    assert execution.error is None
