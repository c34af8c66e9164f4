"""
Sandbox repro genesis reconciliation.

Builds a genesis document a local sandbox node can boot from while carrying
live state for selected contracts and accounts. Three sources are merged with
a fixed precedence (see `merge_genesis`), then fetched accounts are appended as
state records and folded into `total_supply`.
"""

from __future__ import annotations

import copy
import logging
from collections import Counter
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from near_snapshot.config import RequestContext
from near_snapshot.constants import GENESIS_BACKUP_SUFFIX, GENESIS_FILENAME, SANDBOX_CHAIN_ID_PREFIX
from near_snapshot.extractors import (
    fetch_access_key_records,
    fetch_account_record,
    fetch_contract_record,
    fetch_state_records,
)
from near_snapshot.logging import JsonlLogger
from near_snapshot.records import AccountRecord, StateRecord, account_ids_in, record_kind, records_to_json
from near_snapshot.rpc import BlockRef, NearRpcClient
from near_snapshot.utils import atomic_write_json, backup_file, read_json

logger = logging.getLogger(__name__)

# Fields that must come from the sandbox: only it holds valid local validator
# keys and a ledger consistent with its own total supply.
SANDBOX_FIELDS = ("total_supply", "validators", "records")

# Fields the live protocol config omits and the live genesis config provides.
LIVE_GENESIS_FIELDS = ("protocol_upgrade_num_epochs",)


@dataclass(frozen=True)
class GenesisSources:
    sandbox: dict[str, Any]  # <sandbox home>/genesis.json
    protocol_config: dict[str, Any]  # EXPERIMENTAL_protocol_config of the live network
    genesis_config: dict[str, Any]  # EXPERIMENTAL_genesis_config of the live network


def sandbox_chain_id(live_chain_id: str) -> str:
    return SANDBOX_CHAIN_ID_PREFIX + live_chain_id


def merge_genesis(sources: GenesisSources) -> dict[str, Any]:
    """
    Layer the three sources into a new genesis document.

    Precedence, lowest to highest:
    1. every field of the live protocol config;
    2. `chain_id`, synthesized from the live chain id;
    3. `LIVE_GENESIS_FIELDS` from the live genesis config;
    4. `SANDBOX_FIELDS` from the sandbox genesis.

    Inputs are not mutated.

    Raises:
        KeyError: a required field is missing from its source.
    """
    doc = copy.deepcopy(sources.protocol_config)
    live_chain_id = sources.protocol_config.get("chain_id") or sources.genesis_config["chain_id"]
    doc["chain_id"] = sandbox_chain_id(live_chain_id)
    for key in LIVE_GENESIS_FIELDS:
        doc[key] = copy.deepcopy(sources.genesis_config[key])
    for key in SANDBOX_FIELDS:
        doc[key] = copy.deepcopy(sources.sandbox[key])
    return doc


class ReproGenesis:
    """
    A merged genesis document being extended with live accounts.

    `total_supply` is tracked as an unbounded int and written back to the
    document as a decimal string after every account.
    """

    def __init__(self, document: dict[str, Any]) -> None:
        self.document = document
        self.total_supply = int(document["total_supply"])
        self._sandbox_accounts = account_ids_in(document["records"])
        self.added_accounts: list[str] = []

    @property
    def records(self) -> list[dict[str, Any]]:
        return self.document["records"]

    def add_account(self, account: AccountRecord, records: list[StateRecord]) -> None:
        """
        Append `records` and add the account's amount + locked to total supply.

        Raises:
            ValueError: the account was already added to this document.
        """
        account_id = account.account_id
        if account_id in self.added_accounts:
            raise ValueError(f"account already added: {account_id}")
        if account_id in self._sandbox_accounts:
            # Known gap: the sandbox already counts this balance; it is counted again.
            logger.warning(f"{account_id} already exists in sandbox records; total_supply double counts it")
        self.records.extend(records_to_json(records))
        self.total_supply += account.balance_total
        self.document["total_supply"] = str(self.total_supply)
        self.added_accounts.append(account_id)


def unique_targets(contracts: list[str] | None, accounts: list[str] | None) -> tuple[list[str], list[str]]:
    """
    De-duplicate the requested ids, preserving order.

    Plain accounts that are also contracts are dropped from the account list.
    """
    contract_ids = list(dict.fromkeys(contracts or []))
    account_ids = [a for a in dict.fromkeys(accounts or []) if a not in contract_ids]
    return contract_ids, account_ids


def collect_contract(client: NearRpcClient, account_id: str, block: BlockRef) -> tuple[AccountRecord, list[StateRecord]]:
    code = fetch_contract_record(client, account_id, block)
    data = fetch_state_records(client, account_id, block)
    account = fetch_account_record(client, account_id, block)
    keys = fetch_access_key_records(client, account_id, block)
    return account, [account, *keys, code, *data]


def collect_account(client: NearRpcClient, account_id: str, block: BlockRef) -> tuple[AccountRecord, list[StateRecord]]:
    account = fetch_account_record(client, account_id, block)
    keys = fetch_access_key_records(client, account_id, block)
    return account, [account, *keys]


def iter_snapshot(
    client: NearRpcClient,
    block: BlockRef,
    contracts: list[str] | None,
    accounts: list[str] | None,
) -> Iterator[tuple[AccountRecord, list[StateRecord]]]:
    """Yield (account, records) for each requested contract, then each remaining plain account."""
    contract_ids, account_ids = unique_targets(contracts, accounts)
    for account_id in contract_ids:
        logger.info(f"fetching contract {account_id}")
        yield collect_contract(client, account_id, block)
    for account_id in account_ids:
        logger.info(f"fetching account {account_id}")
        yield collect_account(client, account_id, block)


def build_state_snapshot(
    client: NearRpcClient,
    ctx: RequestContext,
    contracts: list[str] | None,
    accounts: list[str] | None,
) -> dict[str, Any]:
    """Live protocol config with the requested accounts' records attached; no sandbox involved."""
    doc = client.protocol_config(ctx.block)
    records: list[dict[str, Any]] = []
    for _, account_records in iter_snapshot(client, ctx.block, contracts, accounts):
        records.extend(records_to_json(account_records))
    doc["records"] = records
    return doc


def build_repro_genesis(
    client: NearRpcClient,
    ctx: RequestContext,
    sandbox_home: Path,
    contracts: list[str] | None,
    accounts: list[str] | None,
    *,
    run_log: JsonlLogger | None = None,
) -> dict[str, Any]:
    """
    Rewrite `<sandbox_home>/genesis.json` into a repro genesis.

    The pristine sandbox genesis is kept in `genesis.json.bak`: the first run
    copies it there, later runs leave it alone and start from it, so reruns
    never stack on a previous repro genesis. `genesis.json` is only replaced
    (atomically) once every fetch has succeeded.
    """
    genesis_path = sandbox_home / GENESIS_FILENAME
    backup = backup_file(genesis_path, GENESIS_BACKUP_SUFFIX)
    sandbox = read_json(backup)

    sources = GenesisSources(
        sandbox=sandbox,
        protocol_config=client.protocol_config(ctx.block),
        genesis_config=client.genesis_config(),
    )
    repro = ReproGenesis(merge_genesis(sources))
    sandbox_supply = repro.total_supply
    logger.info(f"merged genesis chain_id={repro.document['chain_id']} sandbox_records={len(repro.records)}")

    for account, records in iter_snapshot(client, ctx.block, contracts, accounts):
        repro.add_account(account, records)
        if run_log is not None:
            run_log.event(
                "account_added",
                account_id=account.account_id,
                records=len(records),
                kinds=dict(Counter(record_kind(r) for r in records)),
                balance=str(account.balance_total),
                total_supply=repro.document["total_supply"],
            )

    atomic_write_json(genesis_path, repro.document)
    logger.info(
        f"wrote {genesis_path}: accounts={len(repro.added_accounts)} "
        f"total_supply {sandbox_supply} -> {repro.total_supply}"
    )
    return repro.document
