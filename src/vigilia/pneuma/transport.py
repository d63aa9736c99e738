"""
Transport Gateway - deliver one request, return one reply.

HttpTransport posts JSON-RPC payloads with httpx and parses the body with
the envelope it was built with. Any object with a matching `send` can be
used instead (tests use an in-memory node).
"""

from __future__ import annotations

import logging
from typing import Optional, Protocol

import httpx

from .envelope import JsonRpc, Reply, Request
from .errors import DecodeError, RpcError, TransportError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


class Transport(Protocol):
    """Delivers requests numbered by the caller; never assigns ids itself."""

    def send(self, request: Request, timeout: Optional[float] = None) -> Reply:
        ...


class HttpTransport:
    """
    JSON-RPC over HTTP POST.

    Args:
        url: Node endpoint
        rpc: Envelope used to parse replies (default: a fresh JsonRpc)
        timeout: Default per-request timeout in seconds
        headers: Extra HTTP headers
        client: Pre-built httpx.Client (mainly for tests)
    """

    def __init__(
        self,
        url: str,
        rpc: Optional[JsonRpc] = None,
        timeout: float = DEFAULT_TIMEOUT,
        headers: Optional[dict[str, str]] = None,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self.url = url
        self.rpc = rpc or JsonRpc()
        self._client = client or httpx.Client(timeout=timeout, headers=headers)

    def send(self, request: Request, timeout: Optional[float] = None) -> Reply:
        kwargs = {}
        if timeout is not None:
            kwargs["timeout"] = timeout

        logger.debug("-> %s", request)
        try:
            response = self._client.post(self.url, json=request.to_dict(), **kwargs)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise TransportError(f"{request.method} failed: {exc}") from exc

        reply = self.rpc.parse_reply(response.content)
        if reply is None:
            raise DecodeError(f"Unparseable reply to {request.method}: {response.text[:200]!r}")
        logger.debug("<- %s", reply)
        return reply

    def is_connected(self) -> bool:
        """True if the node answers `net_listening` with a well-formed reply."""
        try:
            reply = self.send(self.rpc.new_request("net_listening"))
        except RpcError:
            return False
        return reply.error() is None

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "HttpTransport":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
