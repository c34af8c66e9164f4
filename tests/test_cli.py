"""CLI entry point tests.

Each entry point runs against the fake node by patching
`RequestContext.client`; stdout must carry JSON only.
"""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import patch

import pytest
from conftest import ACCOUNT, CONTRACT, FakeNode, b64, sandbox_genesis

from near_snapshot import cli
from near_snapshot.errors import RpcResponseError


@pytest.fixture
def fake_client(node: FakeNode):
    with patch("near_snapshot.config.RequestContext.client", lambda self: node.client()):
        yield node


def test_dump_state_records_format(fake_client: FakeNode, capsys) -> None:
    cli.dump_state_main(["-a", CONTRACT, "-u", "http://fake.rpc", "-b", "100"])

    out = json.loads(capsys.readouterr().out)
    assert len(out) == 3
    assert out[0] == {"Data": {"account_id": CONTRACT, "data_key": b64("STATE"), "value": b64("count=1")}}
    assert fake_client.requests[0]["params"]["block_id"] == 100


def test_dump_state_trie_format(fake_client: FakeNode, capsys) -> None:
    cli.dump_state_main(["--accounts", CONTRACT, "--format", "trie"])

    out = json.loads(capsys.readouterr().out)
    assert out[b64(b"\x09" + CONTRACT.encode() + b",STATE")] == b64("count=1")
    assert fake_client.requests[0]["params"]["finality"] == "final"


def test_dump_state_requires_accounts(capsys) -> None:
    with pytest.raises(SystemExit) as exc_info:
        cli.dump_state_main([])
    assert exc_info.value.code == 2


def test_state_records_prints_protocol_config_with_records(fake_client: FakeNode, capsys) -> None:
    cli.state_records_main(["-c", CONTRACT, "-a", ACCOUNT, CONTRACT])

    out = json.loads(capsys.readouterr().out)
    assert out["chain_id"] == "testnet"
    assert len(out["records"]) == 9


def test_state_records_requires_a_target(capsys) -> None:
    with pytest.raises(SystemExit) as exc_info:
        cli.state_records_main([])
    assert exc_info.value.code == 2
    assert "--contracts or --accounts" in capsys.readouterr().err


def test_repro_genesis_rewrites_sandbox_home(fake_client: FakeNode, tmp_path: Path) -> None:
    (tmp_path / "genesis.json").write_text(json.dumps(sandbox_genesis("1000")))
    log_dir = tmp_path / "logs"

    cli.repro_genesis_main(["-s", str(tmp_path), "-c", CONTRACT, "--log-dir", str(log_dir)])

    doc = json.loads((tmp_path / "genesis.json").read_text())
    assert doc["total_supply"] == "1100"
    assert (tmp_path / "genesis.json.bak").exists()

    (run_dir,) = list(log_dir.iterdir())
    meta = json.loads((run_dir / "run_metadata.json").read_text())
    assert meta["command"] == "repro_genesis"
    assert meta["args"]["sandbox_home"] == str(tmp_path)
    rows = [json.loads(line) for line in (run_dir / "events.jsonl").read_text().splitlines()]
    assert [r["event"] for r in rows] == ["run_started", "account_added", "run_finished"]
    assert rows[1]["kinds"] == {"Account": 1, "AccessKey": 1, "Contract": 1, "Data": 3}


def test_repro_genesis_failure_propagates_and_is_logged(fake_client: FakeNode, tmp_path: Path) -> None:
    (tmp_path / "genesis.json").write_text(json.dumps(sandbox_genesis("1000")))
    log_dir = tmp_path / "logs"

    with pytest.raises(RpcResponseError):
        cli.repro_genesis_main(["-s", str(tmp_path), "-a", "ghost.testnet", "--log-dir", str(log_dir)])

    (run_dir,) = list(log_dir.iterdir())
    rows = [json.loads(line) for line in (run_dir / "events.jsonl").read_text().splitlines()]
    assert rows[-1]["event"] == "run_failed"
    assert rows[-1]["error_type"] == "RpcResponseError"


def test_vm_context_writes_outputs(fake_client: FakeNode, tmp_path: Path) -> None:
    from test_vm_context import TX_HASH, _tx_status

    fake_client.tx_statuses[(TX_HASH, ACCOUNT)] = _tx_status()

    cli.vm_context_main(["-a", ACCOUNT, "-t", TX_HASH, "-o", str(tmp_path)])

    assert json.loads((tmp_path / "vmcontext.json").read_text())["current_account_id"] == CONTRACT
    assert (tmp_path / "contract.wasm").exists()
    assert (tmp_path / "state.json").exists()
