"""
Per-entity fetch-and-reshape helpers.

Each extractor performs one RPC call. Contract storage has three output shapes,
all derived from the same raw key/value pairs:
- Data records (genesis `records` entries),
- the legacy trie-key map (`base64(0x09 || account_id || "," || key) -> value`),
- a plain `key -> value` map (VM runner state file).
"""

from __future__ import annotations

import base64
import logging
from dataclasses import dataclass
from typing import Any

from near_snapshot.constants import TRIE_ACCOUNT_DATA_SEPARATOR, TRIE_CONTRACT_DATA_MARKER
from near_snapshot.records import AccessKeyRecord, AccountRecord, ContractRecord, DataRecord
from near_snapshot.rpc import BlockRef, NearRpcClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StateEntry:
    key: str  # base64
    value: str  # base64


@dataclass(frozen=True)
class BlockHeader:
    height: int
    epoch_id: str
    timestamp_nanosec: str
    random_value: str
    hash: str | None = None


# -- contract storage ---------------------------------------------------------


def fetch_state_entries(client: NearRpcClient, account_id: str, block: BlockRef) -> list[StateEntry]:
    res = client.view_state(account_id, block)
    entries = [StateEntry(key=kv["key"], value=kv["value"]) for kv in res.get("values", [])]
    logger.info(f"fetched {len(entries)} storage entries for {account_id}")
    return entries


def entries_to_data_records(account_id: str, entries: list[StateEntry]) -> list[DataRecord]:
    return [DataRecord(account_id=account_id, data_key=e.key, value=e.value) for e in entries]


def trie_key(account_id: str, data_key: str) -> str:
    """Base64 of nearcore's raw trie key for one contract storage key."""
    raw = (
        TRIE_CONTRACT_DATA_MARKER
        + account_id.encode("utf-8")
        + TRIE_ACCOUNT_DATA_SEPARATOR
        + base64.b64decode(data_key)
    )
    return base64.b64encode(raw).decode("ascii")


def split_trie_key(encoded: str) -> tuple[str, str]:
    """
    Inverse of `trie_key`: returns (account_id, base64 data key).

    Account ids never contain ",", so the first separator ends the account id.
    """
    raw = base64.b64decode(encoded)
    if not raw.startswith(TRIE_CONTRACT_DATA_MARKER):
        raise ValueError(f"not a contract data trie key: {encoded!r}")
    body = raw[len(TRIE_CONTRACT_DATA_MARKER) :]
    account, sep, key = body.partition(TRIE_ACCOUNT_DATA_SEPARATOR)
    if not sep:
        raise ValueError(f"trie key has no account separator: {encoded!r}")
    return account.decode("utf-8"), base64.b64encode(key).decode("ascii")


def records_to_trie_map(records: list[DataRecord]) -> dict[str, str]:
    return {trie_key(r.account_id, r.data_key): r.value for r in records}


def trie_map_to_records(trie_map: dict[str, str]) -> list[DataRecord]:
    out = []
    for encoded, value in trie_map.items():
        account_id, data_key = split_trie_key(encoded)
        out.append(DataRecord(account_id=account_id, data_key=data_key, value=value))
    return out


def fetch_state_records(client: NearRpcClient, account_id: str, block: BlockRef) -> list[DataRecord]:
    return entries_to_data_records(account_id, fetch_state_entries(client, account_id, block))


def fetch_state_trie_map(client: NearRpcClient, account_id: str, block: BlockRef) -> dict[str, str]:
    return records_to_trie_map(fetch_state_records(client, account_id, block))


def fetch_state_map(client: NearRpcClient, account_id: str, block: BlockRef) -> dict[str, str]:
    return {e.key: e.value for e in fetch_state_entries(client, account_id, block)}


# -- code -----------------------------------------------------------------------


def fetch_code_base64(client: NearRpcClient, account_id: str, block: BlockRef) -> str:
    return client.view_code(account_id, block)["code_base64"]


def fetch_code_bytes(client: NearRpcClient, account_id: str, block: BlockRef) -> bytes:
    return base64.b64decode(fetch_code_base64(client, account_id, block))


def fetch_contract_record(client: NearRpcClient, account_id: str, block: BlockRef) -> ContractRecord:
    return ContractRecord(account_id=account_id, code=fetch_code_base64(client, account_id, block))


# -- accounts and keys ----------------------------------------------------------


def fetch_account(client: NearRpcClient, account_id: str, block: BlockRef) -> dict[str, Any]:
    return client.view_account(account_id, block)


def account_view_to_record(account_id: str, view: dict[str, Any]) -> AccountRecord:
    return AccountRecord(
        account_id=account_id,
        amount=str(view["amount"]),
        locked=str(view["locked"]),
        code_hash=view["code_hash"],
        storage_usage=int(view["storage_usage"]),
    )


def fetch_account_record(client: NearRpcClient, account_id: str, block: BlockRef) -> AccountRecord:
    return account_view_to_record(account_id, fetch_account(client, account_id, block))


def fetch_access_key_records(client: NearRpcClient, account_id: str, block: BlockRef) -> list[AccessKeyRecord]:
    res = client.view_access_key_list(account_id, block)
    return [
        AccessKeyRecord(account_id=account_id, public_key=k["public_key"], access_key=dict(k["access_key"]))
        for k in res.get("keys", [])
    ]


# -- blocks -----------------------------------------------------------------------


def fetch_block_header(client: NearRpcClient, block: BlockRef) -> BlockHeader:
    header = client.block(block)["header"]
    return BlockHeader(
        height=int(header["height"]),
        epoch_id=header["epoch_id"],
        timestamp_nanosec=str(header["timestamp_nanosec"]),
        random_value=header["random_value"],
        hash=header.get("hash"),
    )
