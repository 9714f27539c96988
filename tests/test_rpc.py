"""RPC repositories against local aiohttp nodes."""

from __future__ import annotations

import base64
import hashlib
from dataclasses import dataclass, field
from typing import Any, Callable

import pytest
from aiohttp import web

from chain_watcher.errors import ConfigurationError, RpcError, SolanaFailure
from chain_watcher.models.evm import EvmLogFilter
from chain_watcher.models.solana import ConfirmedSignatureInfo
from chain_watcher.rpc import (
    EvmJsonRpcRepository,
    JsonRpcClient,
    SolanaJsonRpcRepository,
    WormchainJsonRpcRepository,
)
from chain_watcher.rpc.wormchain import parse_timestamp

from tests.factories import b64


@dataclass
class Fault:
    code: int
    message: str


@dataclass
class Node:
    """Scripted RPC node: JSON-RPC on POST /, Tendermint URI RPC on GET."""

    url: str
    methods: dict[str, Callable[[list[Any]], Any]] = field(default_factory=dict)
    routes: dict[str, Callable[[dict[str, str]], Any]] = field(default_factory=dict)
    status: int = 200
    requests: list[Any] = field(default_factory=list)

    def answer(self, item: dict[str, Any]) -> dict[str, Any]:
        result = self.methods[item["method"]](item.get("params", []))
        if isinstance(result, Fault):
            return {
                "jsonrpc": "2.0", "id": item["id"],
                "error": {"code": result.code, "message": result.message},
            }
        return {"jsonrpc": "2.0", "id": item["id"], "result": result}


async def _serve(node: Node, port: int) -> web.AppRunner:
    async def handle_post(request):
        payload = await request.json()
        node.requests.append(payload)
        if node.status != 200:
            return web.Response(status=node.status)
        if isinstance(payload, list):
            # Answer out of order; clients must match by id.
            return web.json_response([node.answer(item) for item in reversed(payload)])
        return web.json_response(node.answer(payload))

    async def handle_get(request):
        endpoint = request.match_info["endpoint"]
        node.requests.append((endpoint, dict(request.query)))
        if node.status != 200:
            return web.Response(status=node.status)
        return web.json_response(node.routes[endpoint](dict(request.query)))

    app = web.Application()
    app.router.add_post("/", handle_post)
    app.router.add_get("/{endpoint}", handle_get)

    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, "127.0.0.1", port)
    await site.start()
    return runner


@pytest.fixture
async def node():
    n = Node(url="http://127.0.0.1:9311")
    runner = await _serve(n, 9311)
    yield n
    await runner.cleanup()


@pytest.fixture
async def dead_node():
    n = Node(url="http://127.0.0.1:9312", status=503)
    runner = await _serve(n, 9312)
    yield n
    await runner.cleanup()


@pytest.fixture
async def make_client():
    created: list[JsonRpcClient] = []

    def factory(*urls: str) -> JsonRpcClient:
        client = JsonRpcClient(list(urls), timeout=5)
        created.append(client)
        return client

    yield factory
    for client in created:
        await client.close()


def _block(number: int, transactions=None) -> dict[str, Any]:
    return {
        "number": hex(number),
        "hash": f"0xblock{number}",
        "timestamp": hex(1_700_000_000 + number),
        "transactions": transactions or [],
    }


# ── JsonRpcClient ──────────────────────────────────────────


class TestJsonRpcClient:

    def test_requires_a_provider(self):
        with pytest.raises(ConfigurationError):
            JsonRpcClient([])

    async def test_rotates_past_failing_provider(self, node, dead_node, make_client):
        node.methods["eth_chainId"] = lambda params: "0x1"
        client = make_client(dead_node.url, node.url)

        assert await client.call("eth_chainId") == "0x1"
        assert client.current_url == node.url
        assert len(dead_node.requests) == 1

        # The healthy provider stays current for later calls
        await client.call("eth_chainId")
        assert len(dead_node.requests) == 1

    async def test_all_providers_failing(self, dead_node, make_client):
        client = make_client(dead_node.url)
        with pytest.raises(RpcError, match="All RPC providers failed"):
            await client.call("eth_chainId")

    async def test_rpc_error_is_not_retried(self, node, make_client):
        node.methods["eth_call"] = lambda params: Fault(-32000, "execution reverted")
        client = make_client(node.url, node.url + "/")

        with pytest.raises(RpcError, match="execution reverted") as exc_info:
            await client.call("eth_call", [{}])

        assert exc_info.value.code == -32000
        assert len(node.requests) == 1

    async def test_batch_keeps_request_order(self, node, make_client):
        node.methods["echo"] = lambda params: params[0]
        client = make_client(node.url)

        assert await client.batch([("echo", ["a"]), ("echo", ["b"]), ("echo", ["c"])]) == [
            "a", "b", "c",
        ]
        assert await client.batch([]) == []


# ── EVM ────────────────────────────────────────────────────


class TestEvmRepository:

    async def test_block_height_by_commitment(self, node, make_client):
        node.methods["eth_getBlockByNumber"] = lambda params: _block(0x10)
        repo = EvmJsonRpcRepository({"ethereum": make_client(node.url)})

        assert await repo.get_block_height("ethereum", "finalized") == 16
        assert node.requests[0]["params"] == ["finalized", False]

    async def test_unknown_commitment_and_chain(self, node, make_client):
        repo = EvmJsonRpcRepository({"ethereum": make_client(node.url)})
        with pytest.raises(ConfigurationError):
            await repo.get_block_height("ethereum", "immediate")
        with pytest.raises(ConfigurationError):
            await repo.get_block_height("polygon", "latest")

    async def test_get_blocks_skips_missing(self, node, make_client):
        def get_block(params):
            number = int(params[0], 16)
            return None if number == 12 else _block(number)

        node.methods["eth_getBlockByNumber"] = get_block
        repo = EvmJsonRpcRepository({"ethereum": make_client(node.url)})

        blocks = await repo.get_blocks("ethereum", {10, 11, 12})

        assert sorted(blocks) == [10, 11]
        assert blocks[11].timestamp == 1_700_000_011
        assert len(node.requests) == 1

    async def test_filtered_logs(self, node, make_client):
        node.methods["eth_getLogs"] = lambda params: [{
            "address": "0xABC",
            "topics": ["0xtopic"],
            "data": "0x",
            "blockNumber": "0xb",
            "blockHash": "0xblock11",
            "transactionHash": "0xtx",
            "logIndex": "0x2",
        }]
        repo = EvmJsonRpcRepository({"ethereum": make_client(node.url)})

        [evm_log] = await repo.get_filtered_logs(
            "ethereum", EvmLogFilter(10, 20, addresses=("0xabc",), topics=("0xtopic",))
        )

        assert node.requests[0]["params"] == [{
            "fromBlock": "0xa",
            "toBlock": "0x14",
            "address": ["0xabc"],
            "topics": [["0xtopic"]],
        }]
        assert (evm_log.address, evm_log.block_number, evm_log.log_index) == ("0xabc", 11, 2)

    async def test_receipts(self, node, make_client):
        node.methods["eth_getTransactionReceipt"] = lambda params: (
            {"status": "0x1", "logs": []} if params[0] == "0xaaa" else None
        )
        repo = EvmJsonRpcRepository({"ethereum": make_client(node.url)})

        receipts = await repo.get_transaction_receipts("ethereum", ["0xaaa", "0xbbb"])

        assert list(receipts) == ["0xaaa"]
        assert receipts["0xaaa"].status == "0x1"

    async def test_health_check_probes_every_provider(self, node, dead_node, make_client):
        node.methods["eth_getBlockByNumber"] = lambda params: _block(0x20)
        repo = EvmJsonRpcRepository({"ethereum": make_client(dead_node.url, node.url)})

        dead, live = await repo.health_check("ethereum", "latest", None)

        assert (dead.url, dead.is_live, dead.height) == (dead_node.url, False, None)
        assert (live.url, live.is_live, live.height) == (node.url, True, 32)
        assert live.latency is not None


# ── Solana ─────────────────────────────────────────────────


class TestSolanaRepository:

    def _raw_tx(self, signature: str) -> dict[str, Any]:
        return {
            "transaction": {
                "signatures": [signature],
                "message": {
                    "accountKeys": ["payer", "Program111"],
                    "instructions": [{"programIdIndex": 1, "accounts": [0], "data": ""}],
                },
            },
            "meta": {"err": None, "logMessages": ["Program log: hi"]},
        }

    async def test_get_block_outcomes(self, node, make_client):
        def get_block(params):
            slot = params[0]
            if slot == 5:
                return Fault(SolanaFailure.SLOT_SKIPPED, "Slot 5 was skipped")
            if slot == 6:
                return None
            return {"blockhash": "h7", "blockTime": 1_700_000_007, "transactions": [self._raw_tx("s1")]}

        node.methods["getBlock"] = get_block
        repo = SolanaJsonRpcRepository(make_client(node.url))

        skipped = await repo.get_block(5, "finalized")
        assert not skipped.is_ok()
        assert skipped.get_error().skipped_slot()

        missing = await repo.get_block(6, "finalized")
        assert missing.get_error().code == SolanaFailure.BLOCK_NOT_FOUND

        block = (await repo.get_block(7, "finalized")).get_value()
        assert block.slot == 7
        assert block.transactions[0].signature == "s1"
        assert block.transactions[0].block_time == 1_700_000_007
        assert block.transactions[0].message.program_ids() == ["Program111"]

    async def test_latest_slot(self, node, make_client):
        node.methods["getSlot"] = lambda params: 321
        repo = SolanaJsonRpcRepository(make_client(node.url))

        assert await repo.get_latest_slot("confirmed") == 321
        assert node.requests[0]["params"] == [{"commitment": "confirmed"}]

    async def test_signatures_window_maps_to_before_until(self, node, make_client):
        node.methods["getSignaturesForAddress"] = lambda params: [
            {"signature": "s2", "slot": 9}, {"signature": "s1", "slot": 8},
        ]
        repo = SolanaJsonRpcRepository(make_client(node.url))

        sigs = await repo.get_signatures_for_address("Program111", "z9", "a0", 50, "finalized")

        assert [s.signature for s in sigs] == ["s2", "s1"]
        assert node.requests[0]["params"] == [
            "Program111", {"limit": 50, "commitment": "finalized", "before": "z9", "until": "a0"},
        ]

    async def test_transactions_batch(self, node, make_client):
        node.methods["getTransaction"] = lambda params: (
            None if params[0] == "gone" else {**self._raw_tx(params[0]), "slot": 42}
        )
        repo = SolanaJsonRpcRepository(make_client(node.url))

        txs = await repo.get_transactions([
            ConfirmedSignatureInfo("s1"), ConfirmedSignatureInfo("gone"),
            ConfirmedSignatureInfo("s2"),
        ])

        assert [tx.signature for tx in txs] == ["s1", "s2"]
        assert txs[0].slot == 42
        assert txs[0].log_messages == ["Program log: hi"]


# ── Wormchain ──────────────────────────────────────────────


def test_parse_timestamp_truncates_nanoseconds():
    assert parse_timestamp("2024-01-01T00:00:00.123456789Z") == 1_704_067_200


class TestWormchainRepository:

    async def test_block_logs(self, node, make_client):
        encoded = base64.b64encode(b"raw-cosmos-tx").decode()
        expected_hash = "0x" + hashlib.sha256(b"raw-cosmos-tx").hexdigest()
        node.routes["abci_info"] = lambda q: {
            "result": {"response": {"last_block_height": "77"}}
        }
        node.routes["block"] = lambda q: {"result": {"block": {
            "header": {"height": q["height"], "time": "2024-01-01T00:00:10.5Z"},
            "data": {"txs": [encoded]},
        }}}
        node.routes["tx"] = lambda q: {"result": {"tx_result": {"events": [
            {"type": "wasm", "attributes": [
                {"key": b64("_contract_address"), "value": b64("wormhole1core"), "index": True},
            ]},
            {"type": "message", "attributes": [{"key": b64("action"), "value": None}]},
            {"type": "wasm", "attributes": [{"key": b64("message.sequence"), "value": b64("3")}]},
        ]}}}
        repo = WormchainJsonRpcRepository({3104: make_client(node.url)}, {"wormchain": 3104})

        assert await repo.get_block_height(3104) == 77
        logs = await repo.get_block_logs(3104, 76)

        assert logs.block_height == 76
        assert logs.timestamp == 1_704_067_210
        wasm, message = logs.transactions
        assert wasm.hash == expected_hash
        assert [a.key for a in wasm.attributes] == [b64("_contract_address"), b64("message.sequence")]
        assert message.attributes[0].value == ""
        assert ("tx", {"hash": expected_hash}) in node.requests

    async def test_missing_height_is_none(self, node, make_client):
        node.routes["abci_info"] = lambda q: {"result": {"response": {}}}
        repo = WormchainJsonRpcRepository({3104: make_client(node.url)})

        assert await repo.get_block_height(3104) is None

    async def test_unknown_chain_id(self, node, make_client):
        repo = WormchainJsonRpcRepository({3104: make_client(node.url)})
        with pytest.raises(RpcError):
            await repo.get_block_height(1)

    async def test_health_check(self, node, make_client):
        node.routes["abci_info"] = lambda q: {
            "result": {"response": {"last_block_height": "90"}}
        }
        repo = WormchainJsonRpcRepository({3104: make_client(node.url)}, {"wormchain": 3104})

        [health] = await repo.health_check("wormchain", "immediate", 80)

        assert health.is_live and health.height == 90
