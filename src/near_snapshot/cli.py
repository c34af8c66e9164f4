"""
Console entry points.

- near-dump-state: contract storage of one or more accounts, to stdout
- near-state-records: live protocol config plus account/contract records, to stdout
- near-repro-genesis: rewrite a sandbox home's genesis.json with live state
- near-vm-context: vmcontext.json / contract.wasm / state.json for one transaction

Errors are not handled here beyond a one-line log; they abort the process.
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from collections.abc import Callable
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

from near_snapshot.config import RequestContext
from near_snapshot.constants import DEFAULT_RPC_URL, GENESIS_FILENAME, RPC_REQUEST_TIMEOUT_SECONDS
from near_snapshot.errors import RpcResponseError
from near_snapshot.extractors import fetch_state_records, records_to_trie_map
from near_snapshot.genesis import build_repro_genesis, build_state_snapshot
from near_snapshot.logging import JsonlLogger, default_run_id
from near_snapshot.records import records_to_json
from near_snapshot.utils import dumps_json
from near_snapshot.vm_context import write_replay_inputs

logger = logging.getLogger(__name__)

# stdout carries JSON output only
console = Console(stderr=True)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def _add_common_args(p: argparse.ArgumentParser, *, block: bool = True) -> None:
    p.add_argument("-u", "--rpc-node-url", type=str, default=DEFAULT_RPC_URL, help="NEAR rpc node url")
    if block:
        p.add_argument(
            "-b",
            "--block-id",
            type=int,
            default=None,
            help="Block height to dump; latest final block if omitted.",
        )
    p.add_argument("--timeout-seconds", type=float, default=RPC_REQUEST_TIMEOUT_SECONDS)
    p.add_argument(
        "--log-dir",
        type=Path,
        default=None,
        help="Write run_metadata.json and events.jsonl under <log-dir>/<run_id>/.",
    )
    p.add_argument("-v", "--verbose", action="store_true")


def _open_run_log(args: argparse.Namespace, prefix: str) -> JsonlLogger | None:
    if args.log_dir is None:
        return None
    run_log = JsonlLogger(base_dir=args.log_dir, run_id=default_run_id(prefix=prefix))
    meta = {k: (str(v) if isinstance(v, Path) else v) for k, v in vars(args).items()}
    run_log.write_run_metadata({"command": prefix, "started_at_unix_seconds": int(time.time()), "args": meta})
    return run_log


def _run(name: str, args: argparse.Namespace, fn: Callable[[JsonlLogger | None], None]) -> None:
    """Run one pipeline, recording start/finish events; failures propagate."""
    _configure_logging(args.verbose)
    run_log = _open_run_log(args, name)
    if run_log is not None:
        run_log.event("run_started")
    try:
        fn(run_log)
    except Exception as e:
        logger.error(f"{name} failed: {type(e).__name__}: {e}")
        if run_log is not None:
            detail = e.to_dict() if isinstance(e, RpcResponseError) else None
            run_log.event("run_failed", error_type=type(e).__name__, error=str(e), detail=detail)
        raise
    if run_log is not None:
        run_log.event("run_finished")


def dump_state_main(argv: list[str] | None = None) -> None:
    p = argparse.ArgumentParser(description="Dump contract storage of NEAR accounts as JSON")
    p.add_argument("-a", "--accounts", nargs="+", required=True, help="accounts to dump storage")
    p.add_argument(
        "--format",
        choices=["records", "trie"],
        default="records",
        help="records: genesis Data records; trie: raw trie key (base64) -> value map",
    )
    _add_common_args(p)
    args = p.parse_args(argv)
    ctx = RequestContext.from_args(args)

    def _dump(run_log: JsonlLogger | None) -> None:
        records = []
        with ctx.client() as client:
            for account_id in dict.fromkeys(args.accounts):
                account_records = fetch_state_records(client, account_id, ctx.block)
                records.extend(account_records)
                if run_log is not None:
                    run_log.event("state_fetched", account_id=account_id, entries=len(account_records))
        out = records_to_json(records) if args.format == "records" else records_to_trie_map(records)
        sys.stdout.write(dumps_json(out))

    _run("dump_state", args, _dump)


def state_records_main(argv: list[str] | None = None) -> None:
    p = argparse.ArgumentParser(description="Print live protocol config with account and contract state records")
    p.add_argument("-c", "--contracts", nargs="+", help="contract accounts to fetch")
    p.add_argument("-a", "--accounts", nargs="+", help="accounts and access keys to fetch")
    _add_common_args(p)
    args = p.parse_args(argv)
    if not args.contracts and not args.accounts:
        p.error("at least one of --contracts or --accounts is required")
    ctx = RequestContext.from_args(args)

    def _snapshot(run_log: JsonlLogger | None) -> None:
        with ctx.client() as client:
            doc = build_state_snapshot(client, ctx, args.contracts, args.accounts)
        if run_log is not None:
            run_log.event("snapshot_built", records=len(doc["records"]))
        sys.stdout.write(dumps_json(doc))

    _run("state_records", args, _snapshot)


def repro_genesis_main(argv: list[str] | None = None) -> None:
    p = argparse.ArgumentParser(description="Rewrite a sandbox genesis to reproduce live contract state")
    p.add_argument(
        "-s",
        "--sandbox-home",
        type=Path,
        required=True,
        help=f"sandbox home directory containing {GENESIS_FILENAME}",
    )
    p.add_argument("-c", "--contracts", nargs="+", help="contract accounts to fetch")
    p.add_argument("-a", "--accounts", nargs="+", help="accounts and access keys to fetch")
    _add_common_args(p)
    args = p.parse_args(argv)
    ctx = RequestContext.from_args(args)

    def _genesis(run_log: JsonlLogger | None) -> None:
        with ctx.client() as client:
            doc = build_repro_genesis(client, ctx, args.sandbox_home, args.contracts, args.accounts, run_log=run_log)
        console.print(
            f"[green]wrote[/green] {args.sandbox_home / GENESIS_FILENAME} "
            f"chain_id={doc['chain_id']} records={len(doc['records'])} total_supply={doc['total_supply']}"
        )

    _run("repro_genesis", args, _genesis)


def vm_context_main(argv: list[str] | None = None) -> None:
    p = argparse.ArgumentParser(description="Fetch VM context, code and state to replay one NEAR transaction")
    p.add_argument("-a", "--account", required=True, help="account id (transaction sender)")
    p.add_argument("-t", "--transaction", required=True, help="transaction hash")
    p.add_argument("-r", "--receipt-id", default=None, help="receipt to replay instead of the direct call")
    p.add_argument("-o", "--out-dir", type=Path, default=Path("."), help="output directory")
    _add_common_args(p, block=False)
    args = p.parse_args(argv)
    ctx = RequestContext.from_args(args)

    def _context(run_log: JsonlLogger | None) -> None:
        with ctx.client() as client:
            vm_ctx = write_replay_inputs(client, args.transaction, args.account, args.out_dir, args.receipt_id)
        if run_log is not None:
            run_log.event("context_written", current_account_id=vm_ctx.current_account_id, block_index=vm_ctx.block_index)
        console.print(f"[green]wrote[/green] replay inputs for {vm_ctx.current_account_id} to {args.out_dir}")

    _run("vm_context", args, _context)
