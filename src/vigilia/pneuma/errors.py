"""
RPC error taxonomy.

Transport, protocol and decode failures are kept apart so callers (and the
poll loop) can tell a flaky node from a rejected request.
"""

from __future__ import annotations

from typing import Any, Optional


class RpcError(RuntimeError):
    exit_code: int = 1


class TransportError(RpcError):
    """The node could not be reached or answered with a non-2xx status."""

    exit_code = 2


class ProtocolError(RpcError):
    """The node answered with a JSON-RPC error object (non-zero code)."""

    exit_code = 3

    def __init__(self, code: int, message: str, data: Optional[Any] = None) -> None:
        self.code = code
        self.message = message
        self.data = data
        super().__init__(f"RPC error {code}: {message}")


class DecodeError(RpcError):
    """The reply could not be parsed, or its result has the wrong shape."""

    exit_code = 4


class CorrelationError(DecodeError):
    def __init__(self, expected: int, actual: int) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(f"Reply id {actual} does not match request id {expected}")
