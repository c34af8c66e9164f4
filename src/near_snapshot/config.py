from __future__ import annotations

import argparse
from dataclasses import dataclass

from near_snapshot.constants import DEFAULT_RPC_URL, RPC_REQUEST_TIMEOUT_SECONDS
from near_snapshot.rpc import BlockRef, NearRpcClient


@dataclass(frozen=True)
class RequestContext:
    """
    Per-run request settings, passed explicitly to every pipeline step.

    `block_id` of None means "latest final block".
    """

    rpc_url: str = DEFAULT_RPC_URL
    block_id: int | str | None = None
    timeout_s: float = RPC_REQUEST_TIMEOUT_SECONDS

    def __post_init__(self) -> None:
        if not self.rpc_url:
            raise ValueError("rpc_url must be non-empty")
        if self.timeout_s <= 0:
            raise ValueError(f"timeout_s must be > 0, got {self.timeout_s}")

    @property
    def block(self) -> BlockRef:
        return BlockRef.at(self.block_id)

    def client(self) -> NearRpcClient:
        return NearRpcClient(self.rpc_url, timeout_s=self.timeout_s)

    @classmethod
    def from_args(cls, args: argparse.Namespace) -> RequestContext:
        return cls(
            rpc_url=args.rpc_node_url,
            block_id=getattr(args, "block_id", None),
            timeout_s=args.timeout_seconds,
        )
