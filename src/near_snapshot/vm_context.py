"""
Execution-context reconstruction for replaying one function call off-chain.

The context is assembled from three disjoint partials:
- `CallContext`: transaction + selected receipt (identities, input, gas, deposit),
- `BlockContext`: header of the block the call executed in,
- `AccountContext`: the account's balances as of that block.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

from near_snapshot.constants import (
    CONTRACT_CODE_FILENAME,
    CONTRACT_STATE_FILENAME,
    SUPPORTED_KEY_CURVE,
    VM_CONTEXT_FILENAME,
)
from near_snapshot.errors import ReceiptActionError, ReceiptSelectionError, UnsupportedKeyError
from near_snapshot.extractors import BlockHeader, fetch_account, fetch_block_header, fetch_code_bytes, fetch_state_map
from near_snapshot.rpc import BlockRef, NearRpcClient
from near_snapshot.utils import atomic_write_bytes, atomic_write_json

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CallContext:
    current_account_id: str
    signer_account_id: str
    signer_account_pk: str
    predecessor_account_id: str
    input: str  # base64 args
    attached_deposit: str
    prepaid_gas: int
    is_view: bool = False
    output_data_receivers: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class BlockContext:
    block_index: int
    epoch_height: str
    block_timestamp: str
    random_seed: str


@dataclass(frozen=True)
class AccountContext:
    account_balance: str
    account_locked_balance: str
    storage_usage: int


@dataclass(frozen=True)
class ExecutionContext:
    current_account_id: str
    signer_account_id: str
    signer_account_pk: str
    predecessor_account_id: str
    input: str
    attached_deposit: str
    prepaid_gas: int
    is_view: bool
    output_data_receivers: list[str]
    block_index: int
    epoch_height: str
    block_timestamp: str
    random_seed: str
    account_balance: str
    account_locked_balance: str
    storage_usage: int

    @classmethod
    def from_parts(cls, call: CallContext, block: BlockContext, account: AccountContext) -> ExecutionContext:
        # Later parts win on a key collision; the three field sets are disjoint today.
        merged = {**asdict(call), **asdict(block), **asdict(account)}
        return cls(**merged)

    def to_json(self) -> dict[str, Any]:
        return asdict(self)


def decode_signer_public_key(public_key: str) -> str:
    """Return the base58 payload of an `ed25519:<payload>` key."""
    curve, sep, payload = public_key.partition(":")
    if not sep or curve != SUPPORTED_KEY_CURVE or not payload:
        raise UnsupportedKeyError(public_key)
    return payload


def select_receipt(tx_status: dict[str, Any], receipt_id: str | None = None) -> dict[str, Any]:
    """
    Pick the receipt that executed the function call.

    With `receipt_id`, match on id. Otherwise match the receipt sent by the
    transaction signer to the transaction receiver. Exactly one match is required.
    """
    tx = tx_status["transaction"]
    receipts = tx_status.get("receipts") or []
    if receipt_id is not None:
        matches = [r for r in receipts if r.get("receipt_id") == receipt_id]
        rule = f"receipt_id == {receipt_id}"
    else:
        matches = [
            r
            for r in receipts
            if r.get("receiver_id") == tx["receiver_id"] and r.get("predecessor_id") == tx["signer_id"]
        ]
        rule = f"receiver_id == {tx['receiver_id']} and predecessor_id == {tx['signer_id']}"

    if len(matches) != 1:
        raise ReceiptSelectionError(
            f"expected exactly one receipt with {rule}, found {len(matches)}",
            candidates=[str(r.get("receipt_id")) for r in matches],
        )
    return matches[0]


def function_call_action(receipt: dict[str, Any]) -> dict[str, Any]:
    """Return the `FunctionCall` body of a single-action receipt."""
    body = receipt.get("receipt") or {}
    action_receipt = body.get("Action") if isinstance(body, dict) else None
    if not isinstance(action_receipt, dict):
        raise ReceiptActionError(f"receipt {receipt.get('receipt_id')} is not an action receipt")
    actions = action_receipt.get("actions") or []
    if len(actions) != 1:
        raise ReceiptActionError(f"receipt {receipt.get('receipt_id')} has {len(actions)} actions, expected 1")
    action = actions[0]
    if not isinstance(action, dict) or not isinstance(action.get("FunctionCall"), dict):
        kind = next(iter(action)) if isinstance(action, dict) and action else action
        raise ReceiptActionError(f"receipt {receipt.get('receipt_id')} action is {kind!r}, expected FunctionCall")
    return action["FunctionCall"]


def call_context_from_tx_status(tx_status: dict[str, Any], receipt_id: str | None = None) -> CallContext:
    tx = tx_status["transaction"]
    receipt = select_receipt(tx_status, receipt_id)
    call = function_call_action(receipt)
    receivers = receipt["receipt"]["Action"].get("output_data_receivers") or []
    return CallContext(
        current_account_id=receipt["receiver_id"],
        signer_account_id=tx["signer_id"],
        signer_account_pk=decode_signer_public_key(tx["public_key"]),
        predecessor_account_id=receipt["predecessor_id"],
        input=call["args"],
        attached_deposit=str(call["deposit"]),
        prepaid_gas=int(call["gas"]),
        is_view=False,
        output_data_receivers=[r["receiver_id"] for r in receivers],
    )


def context_block_hash(tx_status: dict[str, Any], receipt_id: str | None = None) -> str:
    """Block of the receipt's own outcome when `receipt_id` is given, else the transaction's block."""
    if receipt_id is None:
        return tx_status["transaction_outcome"]["block_hash"]
    for outcome in tx_status.get("receipts_outcome") or []:
        if outcome.get("id") == receipt_id:
            return outcome["block_hash"]
    raise ReceiptSelectionError(f"no recorded outcome for receipt {receipt_id}")


def block_context(header: BlockHeader) -> BlockContext:
    return BlockContext(
        block_index=header.height,
        epoch_height=header.epoch_id,
        block_timestamp=header.timestamp_nanosec,
        random_seed=header.random_value,
    )


def account_context(view: dict[str, Any]) -> AccountContext:
    return AccountContext(
        account_balance=str(view["amount"]),
        account_locked_balance=str(view["locked"]),
        storage_usage=int(view["storage_usage"]),
    )


def build_execution_context(
    client: NearRpcClient,
    tx_hash: str,
    account_id: str,
    receipt_id: str | None = None,
) -> tuple[ExecutionContext, BlockRef]:
    """
    Fetch the transaction, its block and the account, and merge them.

    Returns:
        The context and the block it was resolved against.
    """
    tx_status = client.tx_status(tx_hash, account_id)
    call = call_context_from_tx_status(tx_status, receipt_id)
    block = BlockRef(block_id=context_block_hash(tx_status, receipt_id))
    header = fetch_block_header(client, block)
    account = fetch_account(client, account_id, block)
    ctx = ExecutionContext.from_parts(call, block_context(header), account_context(account))
    logger.info(f"built context for {ctx.current_account_id} at block {ctx.block_index}")
    return ctx, block


def write_replay_inputs(
    client: NearRpcClient,
    tx_hash: str,
    account_id: str,
    out_dir: Path,
    receipt_id: str | None = None,
) -> ExecutionContext:
    """Write vmcontext.json, contract.wasm and state.json for the called contract into `out_dir`."""
    ctx, block = build_execution_context(client, tx_hash, account_id, receipt_id)
    atomic_write_json(out_dir / VM_CONTEXT_FILENAME, ctx.to_json())
    code = fetch_code_bytes(client, ctx.current_account_id, block)
    atomic_write_bytes(out_dir / CONTRACT_CODE_FILENAME, code)
    state = fetch_state_map(client, ctx.current_account_id, block)
    atomic_write_json(out_dir / CONTRACT_STATE_FILENAME, state)
    logger.info(f"wrote replay inputs to {out_dir} (code={len(code)} bytes, state={len(state)} keys)")
    return ctx
