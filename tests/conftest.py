"""
Shared fixtures: an in-memory node that answers JSON-RPC requests from
scripted outcomes, and a client wired to it.
"""

from __future__ import annotations

import threading
from collections import defaultdict, deque
from typing import Any, Callable, Optional

import pytest

from vigilia.client import Vigilia
from vigilia.config import WatchConfig
from vigilia.pneuma.envelope import ErrorObject, JsonRpc, Reply, Request

_UNSCRIPTED = object()


class FakeNode:
    """
    Transport double.

    Each request pops the next scripted outcome for its method, falling back
    to a registered handler. Outcomes may be a plain result, an ErrorObject
    (error reply), a Reply (returned as is) or an exception (raised).
    """

    def __init__(self) -> None:
        self.rpc = JsonRpc()
        self.requests: list[Request] = []
        self.timeouts: list[Optional[float]] = []
        self.closed = False
        self._handlers: dict[str, Callable[[Request], Any]] = {}
        self._scripts: dict[str, deque] = defaultdict(deque)
        self._cond = threading.Condition()

    def on(self, method: str, result: Any = None, handler: Optional[Callable[[Request], Any]] = None) -> None:
        self._handlers[method] = handler or (lambda request: result)

    def script(self, method: str, *outcomes: Any) -> None:
        with self._cond:
            self._scripts[method].extend(outcomes)

    def send(self, request: Request, timeout: Optional[float] = None) -> Reply:
        with self._cond:
            self.requests.append(request)
            self.timeouts.append(timeout)
            self._cond.notify_all()
            script = self._scripts[request.method]
            outcome = script.popleft() if script else _UNSCRIPTED

        if outcome is _UNSCRIPTED:
            handler = self._handlers.get(request.method)
            if handler is None:
                return self.rpc.new_reply(request, error=ErrorObject(-32601, "method not found"))
            outcome = handler(request)

        if isinstance(outcome, BaseException):
            raise outcome
        if isinstance(outcome, ErrorObject):
            return self.rpc.new_reply(request, error=outcome)
        if isinstance(outcome, Reply):
            return outcome
        return self.rpc.new_reply(request, result=outcome)

    def _count(self, method: str) -> int:
        return sum(1 for r in self.requests if r.method == method)

    def calls(self, method: str) -> list[Request]:
        with self._cond:
            return [r for r in self.requests if r.method == method]

    def wait_for_calls(self, method: str, count: int, timeout: float = 5.0) -> bool:
        with self._cond:
            return self._cond.wait_for(lambda: self._count(method) >= count, timeout)

    def close(self) -> None:
        self.closed = True


def _log(index: int, address: str = "0x16c5785ac562ff41e2dcfdf829c5a142f1fccd7d") -> dict[str, Any]:
    return {
        "logIndex": hex(index),
        "blockNumber": "0x1b4",
        "blockHash": "0x8216c5785ac562ff41e2dcfdf5785ac562ff41e2dcfdf829c5a142f1fccd7d",
        "transactionHash": "0xdf829c5a142f1fccd7d8216c5785ac562ff41e2dcfdf5785ac562ff41e2dcf",
        "transactionIndex": "0x0",
        "address": address,
        "data": "0x" + "00" * 32,
        "topics": ["0x59ebeb90bc63057b6515673c3ecf9438e5058bca0f92585014eced636878c9a5"],
    }


@pytest.fixture()
def make_log() -> Callable[..., dict[str, Any]]:
    return _log


def _node() -> FakeNode:
    fake = FakeNode()
    fake.on("eth_newFilter", "0x1")
    fake.on("eth_newBlockFilter", "0x2")
    fake.on("eth_newPendingTransactionFilter", "0x3")
    fake.on("eth_uninstallFilter", True)
    fake.on("eth_getFilterChanges", [])
    return fake


@pytest.fixture()
def make_node() -> Callable[[], FakeNode]:
    return _node


@pytest.fixture()
def node() -> FakeNode:
    return _node()


@pytest.fixture()
def watch_config() -> WatchConfig:
    return WatchConfig(poll_interval=0.01, delivery_timeout=0.2)


@pytest.fixture()
def client(node: FakeNode, watch_config: WatchConfig):
    vigilia = Vigilia(node, config=watch_config)
    yield vigilia
    vigilia.reset()
