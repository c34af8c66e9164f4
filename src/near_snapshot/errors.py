"""Error types for RPC access and execution-context reconstruction.

Nothing here is caught locally: every error propagates to the CLI entry point,
which aborts the run with a non-zero exit.
"""

from __future__ import annotations

from typing import Any


class SnapshotError(Exception):
    """Base class for near-snapshot errors."""


class RpcError(SnapshotError):
    """Base class for failures talking to the node."""

    def __init__(self, method: str, message: str):
        self.method = method
        self.message = message
        super().__init__(f"{method}: {message}")


class RpcTransportError(RpcError):
    """The node could not be reached, timed out, or answered with a non-2xx status."""


class RpcResponseError(RpcError):
    """The node answered, but with an error object or an unreadable body."""

    def __init__(
        self,
        method: str,
        message: str,
        *,
        code: int | None = None,
        data: Any = None,
        name: str | None = None,
        cause: dict[str, Any] | None = None,
    ):
        self.code = code
        self.data = data
        self.name = name
        self.cause = cause or {}
        super().__init__(method, message)

    @classmethod
    def from_error_object(cls, method: str, error: Any) -> RpcResponseError:
        """Build from a JSON-RPC `error` member, tolerating non-dict payloads."""
        if not isinstance(error, dict):
            return cls(method, str(error))
        cause = error.get("cause")
        cause_name = cause.get("name") if isinstance(cause, dict) else None
        message = str(error.get("message") or "RPC error")
        if cause_name:
            message = f"{message} ({cause_name})"
        return cls(
            method,
            message,
            code=error.get("code"),
            data=error.get("data"),
            name=error.get("name"),
            cause=cause if isinstance(cause, dict) else None,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "method": self.method,
            "code": self.code,
            "message": self.message,
            "name": self.name,
            "data": self.data,
        }


class ContextBuildError(SnapshotError):
    """The transaction data does not describe a replayable single function call."""


class ReceiptSelectionError(ContextBuildError):
    """Zero or several receipts matched the selection rule."""

    def __init__(self, reason: str, candidates: list[str] | None = None):
        self.candidates = candidates or []
        msg = reason
        if self.candidates:
            msg = f"{reason} (candidates: {', '.join(self.candidates)})"
        super().__init__(msg)


class ReceiptActionError(ContextBuildError):
    """The selected receipt is not a single FunctionCall action."""


class UnsupportedKeyError(ContextBuildError):
    """The signer public key uses a curve other than ed25519."""

    def __init__(self, public_key: str):
        self.public_key = public_key
        super().__init__(f"unsupported signer key curve: {public_key!r}")
