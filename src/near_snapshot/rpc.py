"""
Minimal NEAR JSON-RPC client.

One request per call, no retries. Every call carries an explicit timeout so a
stuck node fails the run instead of hanging it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from near_snapshot.constants import (
    DEFAULT_FINALITY,
    JSONRPC_REQUEST_ID,
    JSONRPC_VERSION,
    RPC_REQUEST_TIMEOUT_SECONDS,
)
from near_snapshot.errors import RpcResponseError, RpcTransportError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BlockRef:
    """
    Block selector for queries: an explicit block id xor a finality level.

    `block_id` is either a height (int) or a block hash (str).
    """

    block_id: int | str | None = None
    finality: str | None = None

    def __post_init__(self) -> None:
        if (self.block_id is None) == (self.finality is None):
            raise ValueError("BlockRef needs exactly one of block_id or finality")

    @classmethod
    def final(cls) -> BlockRef:
        return cls(finality=DEFAULT_FINALITY)

    @classmethod
    def at(cls, block_id: int | str | None) -> BlockRef:
        """Select `block_id` when given, otherwise the latest final block."""
        if block_id is None:
            return cls.final()
        return cls(block_id=block_id)

    def params(self) -> dict[str, Any]:
        if self.block_id is not None:
            return {"block_id": self.block_id}
        return {"finality": self.finality}


class NearRpcClient:
    """Blocking JSON-RPC 2.0 client bound to one node URL."""

    def __init__(
        self,
        rpc_url: str,
        *,
        timeout_s: float = RPC_REQUEST_TIMEOUT_SECONDS,
        client: httpx.Client | None = None,
    ) -> None:
        self.rpc_url = rpc_url
        self.timeout_s = timeout_s
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=timeout_s)

    def __enter__(self) -> NearRpcClient:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def call(self, method: str, params: Any) -> Any:
        """
        Send one request and return its `result` member.

        Raises:
            RpcTransportError: connection failure, timeout, or non-2xx status without an error body.
            RpcResponseError: body is not JSON, has no result, or carries an error object (any status).
        """
        payload = {
            "jsonrpc": JSONRPC_VERSION,
            "id": JSONRPC_REQUEST_ID,
            "method": method,
            "params": params,
        }
        logger.debug(f"rpc {method} params={params}")
        try:
            resp = self._client.post(self.rpc_url, json=payload, timeout=self.timeout_s)
        except httpx.TimeoutException as e:
            raise RpcTransportError(method, f"timed out after {self.timeout_s}s ({self.rpc_url})") from e
        except httpx.HTTPError as e:
            raise RpcTransportError(method, f"{type(e).__name__}: {e} ({self.rpc_url})") from e

        if not 200 <= resp.status_code < 300:
            # nearcore answers some errors (e.g. request validation) with a 4xx/5xx and a JSON-RPC error body
            try:
                body = resp.json()
            except ValueError:
                body = None
            if isinstance(body, dict) and "error" in body:
                raise RpcResponseError.from_error_object(method, body["error"])
            raise RpcTransportError(method, f"HTTP {resp.status_code} from {self.rpc_url}")

        try:
            body = resp.json()
        except ValueError as e:
            raise RpcResponseError(method, f"invalid JSON response: {resp.text[:200]!r}") from e

        if not isinstance(body, dict):
            raise RpcResponseError(method, f"non-object JSON response: {type(body).__name__}")
        if "error" in body:
            raise RpcResponseError.from_error_object(method, body["error"])
        if "result" not in body:
            raise RpcResponseError(method, "response has neither result nor error")
        return body["result"]

    # -- query helpers --------------------------------------------------------

    def query(self, request_type: str, account_id: str, block: BlockRef, **extra: Any) -> dict[str, Any]:
        params = {"request_type": request_type, "account_id": account_id, **extra, **block.params()}
        return self.call("query", params)

    def view_state(self, account_id: str, block: BlockRef, *, prefix_base64: str = "") -> dict[str, Any]:
        return self.query("view_state", account_id, block, prefix_base64=prefix_base64)

    def view_code(self, account_id: str, block: BlockRef) -> dict[str, Any]:
        return self.query("view_code", account_id, block)

    def view_account(self, account_id: str, block: BlockRef) -> dict[str, Any]:
        return self.query("view_account", account_id, block)

    def view_access_key_list(self, account_id: str, block: BlockRef) -> dict[str, Any]:
        return self.query("view_access_key_list", account_id, block)

    # -- other methods ----------------------------------------------------------

    def block(self, block: BlockRef) -> dict[str, Any]:
        return self.call("block", block.params())

    def protocol_config(self, block: BlockRef) -> dict[str, Any]:
        return self.call("EXPERIMENTAL_protocol_config", block.params())

    def genesis_config(self) -> dict[str, Any]:
        return self.call("EXPERIMENTAL_genesis_config", None)

    def tx_status(self, tx_hash: str, sender_account_id: str) -> dict[str, Any]:
        return self.call("EXPERIMENTAL_tx_status", [tx_hash, sender_account_id])
