"""State records as they appear in a NEAR genesis `records` list.

`StateRecord` is a closed union of four frozen dataclasses. `record_to_json`
and `record_from_json` convert to and from the genesis JSON envelope
(`{"Data": {...}}`, `{"Account": {...}}`, ...).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union


@dataclass(frozen=True)
class DataRecord:
    account_id: str
    data_key: str  # base64
    value: str  # base64


@dataclass(frozen=True)
class ContractRecord:
    account_id: str
    code: str  # base64 wasm


@dataclass(frozen=True)
class AccountRecord:
    account_id: str
    amount: str
    locked: str
    code_hash: str
    storage_usage: int

    @property
    def balance_total(self) -> int:
        """Liquid plus locked balance in yoctoNEAR."""
        return int(self.amount) + int(self.locked)


@dataclass(frozen=True)
class AccessKeyRecord:
    account_id: str
    public_key: str
    access_key: dict[str, Any] = field(default_factory=dict, hash=False)


StateRecord = Union[DataRecord, ContractRecord, AccountRecord, AccessKeyRecord]


def record_kind(record: StateRecord) -> str:
    if isinstance(record, DataRecord):
        return "Data"
    if isinstance(record, ContractRecord):
        return "Contract"
    if isinstance(record, AccountRecord):
        return "Account"
    if isinstance(record, AccessKeyRecord):
        return "AccessKey"
    raise TypeError(f"not a state record: {type(record).__name__}")


def record_to_json(record: StateRecord) -> dict[str, Any]:
    if isinstance(record, DataRecord):
        return {"Data": {"account_id": record.account_id, "data_key": record.data_key, "value": record.value}}
    if isinstance(record, ContractRecord):
        return {"Contract": {"account_id": record.account_id, "code": record.code}}
    if isinstance(record, AccountRecord):
        return {
            "Account": {
                "account_id": record.account_id,
                "account": {
                    "amount": record.amount,
                    "locked": record.locked,
                    "code_hash": record.code_hash,
                    "storage_usage": record.storage_usage,
                },
            }
        }
    if isinstance(record, AccessKeyRecord):
        return {
            "AccessKey": {
                "account_id": record.account_id,
                "public_key": record.public_key,
                "access_key": dict(record.access_key),
            }
        }
    raise TypeError(f"not a state record: {type(record).__name__}")


def record_from_json(obj: dict[str, Any]) -> StateRecord:
    """
    Parse one genesis record envelope.

    Raises:
        ValueError: the envelope is not exactly one of the four known kinds.
    """
    if not isinstance(obj, dict) or len(obj) != 1:
        raise ValueError(f"expected a single-key record envelope, got {obj!r}")
    kind, body = next(iter(obj.items()))
    if kind == "Data":
        return DataRecord(account_id=body["account_id"], data_key=body["data_key"], value=body["value"])
    if kind == "Contract":
        return ContractRecord(account_id=body["account_id"], code=body["code"])
    if kind == "Account":
        acc = body["account"]
        return AccountRecord(
            account_id=body["account_id"],
            amount=str(acc["amount"]),
            locked=str(acc["locked"]),
            code_hash=acc["code_hash"],
            storage_usage=int(acc["storage_usage"]),
        )
    if kind == "AccessKey":
        return AccessKeyRecord(
            account_id=body["account_id"],
            public_key=body["public_key"],
            access_key=dict(body["access_key"]),
        )
    raise ValueError(f"unknown record kind: {kind!r}")


def records_to_json(records: list[StateRecord]) -> list[dict[str, Any]]:
    return [record_to_json(r) for r in records]


def account_ids_in(raw_records: list[dict[str, Any]]) -> set[str]:
    """Account ids owning an `Account` record in a raw genesis record list."""
    out: set[str] = set()
    for r in raw_records:
        if isinstance(r, dict) and isinstance(r.get("Account"), dict):
            account_id = r["Account"].get("account_id")
            if isinstance(account_id, str):
                out.add(account_id)
    return out
