"""
Shared pytest fixtures.

`FakeNode` answers NEAR JSON-RPC requests from in-memory tables through an
`httpx.MockTransport`, so tests exercise the real client end to end.
"""

from __future__ import annotations

import base64
import json
from typing import Any

import httpx
import pytest

from near_snapshot.rpc import NearRpcClient

CONTRACT = "counter.testnet"
ACCOUNT = "alice.testnet"
TX_BLOCK_HASH = "7AqN7mPcb7nv5Ga3GbD4XJ6RS9eBpNp3hN5iA4q3Y5aR"
ALICE_PK = "ed25519:5BGSaf6YjVm7565VzWQHNxoyEjwr3jUpRJSGjREvU9dB"


def b64(s: str | bytes) -> str:
    raw = s.encode() if isinstance(s, str) else s
    return base64.b64encode(raw).decode("ascii")


def account_view(amount: str, locked: str = "0", storage_usage: int = 182) -> dict[str, Any]:
    return {
        "amount": amount,
        "locked": locked,
        "code_hash": "11111111111111111111111111111111",
        "storage_usage": storage_usage,
        "storage_paid_at": 0,
        "block_height": 100,
        "block_hash": TX_BLOCK_HASH,
    }


def full_access_key(public_key: str) -> dict[str, Any]:
    return {"public_key": public_key, "access_key": {"nonce": 7, "permission": "FullAccess"}}


def header(height: int, block_hash: str) -> dict[str, Any]:
    return {
        "height": height,
        "hash": block_hash,
        "epoch_id": "EpochId1111111111111111111111111111111111111",
        "timestamp": 1650000000000000000,
        "timestamp_nanosec": "1650000000000000000",
        "random_value": "RandomValue11111111111111111111111111111111",
    }


class FakeNode:
    def __init__(self) -> None:
        self.accounts: dict[str, dict[str, Any]] = {}
        self.access_keys: dict[str, list[dict[str, Any]]] = {}
        self.code: dict[str, str] = {}
        self.state: dict[str, list[dict[str, str]]] = {}
        self.blocks: dict[Any, dict[str, Any]] = {}
        self.tx_statuses: dict[tuple[str, str], dict[str, Any]] = {}
        self.protocol_config: dict[str, Any] = {}
        self.genesis_config: dict[str, Any] = {}
        self.requests: list[dict[str, Any]] = []

    def _lookup(self, table: dict, key: Any) -> Any:
        if key not in table:
            raise LookupError(key)
        return table[key]

    def _dispatch(self, method: str, params: Any) -> Any:
        if method == "query":
            rt = params["request_type"]
            account_id = params["account_id"]
            if rt == "view_state":
                return {"values": self._lookup(self.state, account_id), "block_height": 100}
            if rt == "view_code":
                return {"code_base64": self._lookup(self.code, account_id), "hash": "CodeHash"}
            if rt == "view_account":
                return self._lookup(self.accounts, account_id)
            if rt == "view_access_key_list":
                return {"keys": self._lookup(self.access_keys, account_id), "block_height": 100}
        if method == "block":
            key = params.get("block_id", params.get("finality"))
            return {"header": self._lookup(self.blocks, key), "chunks": []}
        if method == "EXPERIMENTAL_protocol_config":
            return json.loads(json.dumps(self.protocol_config))
        if method == "EXPERIMENTAL_genesis_config":
            return json.loads(json.dumps(self.genesis_config))
        if method == "EXPERIMENTAL_tx_status":
            return self._lookup(self.tx_statuses, tuple(params))
        raise LookupError(method)

    def handle(self, request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        self.requests.append(payload)
        try:
            result = self._dispatch(payload["method"], payload["params"])
        except LookupError as e:
            error = {
                "code": -32000,
                "message": "Server error",
                "name": "HANDLER_ERROR",
                "cause": {"name": "UNKNOWN_ACCOUNT", "info": {}},
                "data": f"not found: {e}",
            }
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": payload["id"], "error": error})
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": payload["id"], "result": result})

    def client(self) -> NearRpcClient:
        transport = httpx.MockTransport(self.handle)
        return NearRpcClient("http://fake.rpc", timeout_s=5.0, client=httpx.Client(transport=transport))

    def methods(self) -> list[str]:
        return [r["params"]["request_type"] if r["method"] == "query" else r["method"] for r in self.requests]


def sandbox_genesis(total_supply: str = "1000") -> dict[str, Any]:
    return {
        "protocol_version": 52,
        "genesis_time": "2022-04-01T00:00:00.000000Z",
        "chain_id": "sandbox",
        "protocol_upgrade_num_epochs": 2,
        "total_supply": total_supply,
        "validators": [
            {"account_id": "test.near", "public_key": "ed25519:Local1111111111111111111111111111111111111", "amount": "50"}
        ],
        "records": [
            {
                "Account": {
                    "account_id": "test.near",
                    "account": {"amount": "950", "locked": "50", "code_hash": "1" * 32, "storage_usage": 182},
                }
            },
            {
                "AccessKey": {
                    "account_id": "test.near",
                    "public_key": "ed25519:Local1111111111111111111111111111111111111",
                    "access_key": {"nonce": 0, "permission": "FullAccess"},
                }
            },
        ],
    }


@pytest.fixture
def node() -> FakeNode:
    """A testnet-like node with one contract, one plain account and one block."""
    n = FakeNode()
    n.accounts[CONTRACT] = account_view("100")
    n.access_keys[CONTRACT] = [full_access_key("ed25519:Contract11111111111111111111111111111111111")]
    n.code[CONTRACT] = b64(b"\x00asm\x01\x00\x00\x00")
    n.state[CONTRACT] = [
        {"key": b64("STATE"), "value": b64("count=1"), "proof": []},
        {"key": b64("owner"), "value": b64(ACCOUNT), "proof": []},
        {"key": b64(b"\x00\xff"), "value": b64(b"\x01"), "proof": []},
    ]
    n.accounts[ACCOUNT] = account_view("250000000000000000000000000", locked="5")
    n.access_keys[ACCOUNT] = [full_access_key(ALICE_PK), full_access_key("ed25519:Second111111111111111111111111111111111111")]
    n.blocks["final"] = header(200, "FinalHash")
    n.blocks[TX_BLOCK_HASH] = header(100, TX_BLOCK_HASH)
    n.protocol_config = {
        "protocol_version": 56,
        "genesis_time": "2020-07-31T03:39:42.911378Z",
        "chain_id": "testnet",
        "genesis_height": 42376888,
        "num_block_producer_seats": 100,
        "epoch_length": 43200,
        "runtime_config": {"storage_amount_per_byte": "10000000000000000000"},
    }
    n.genesis_config = {
        "chain_id": "testnet",
        "protocol_upgrade_num_epochs": 4,
        "epoch_length": 43200,
    }
    return n


@pytest.fixture
def client(node: FakeNode):
    with node.client() as c:
        yield c
