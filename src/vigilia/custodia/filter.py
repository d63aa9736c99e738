"""
Filter - handle for one server-side filter registration.

A Filter is created by a successful install call (eth_newFilter,
eth_newBlockFilter, eth_newPendingTransactionFilter) and stays registered
on the node until `uninstall()` is called. Constructing one does no I/O;
polling only happens while someone is watching.

Usage:
    with client.eth.new_block_filter() as blocks:
        for block_hash in blocks.watch():
            print(block_hash)
"""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING, Any, Callable, Optional

from ..config import WatchConfig
from ..pneuma.types import FilterKind, FilterOption
from .channel import FilterStateError, WatchChannel
from .poller import ErrorHandler, Poller, PollState

if TYPE_CHECKING:
    from ..pneuma.rpc import EthAPI


class Filter:
    def __init__(
        self,
        eth: "EthAPI",
        kind: FilterKind,
        filter_id: int,
        option: Optional[FilterOption] = None,
        config: Optional[WatchConfig] = None,
        on_error: Optional[ErrorHandler] = None,
    ) -> None:
        self._eth = eth
        self._id = int(filter_id)
        self.kind = FilterKind(kind)
        self.option = option
        self.config = config or WatchConfig()
        self._uninstalled = False
        self._uninstalling = False
        self._lock = threading.Lock()
        self._poller = Poller(
            self._fetch,
            interval=self.config.poll_interval,
            queue_size=self.config.queue_size,
            policy=self.config.backpressure,
            delivery_timeout=self.config.delivery_timeout,
            on_error=on_error,
            name=f"filter-{self._id:#x}",
        )

    @property
    def id(self) -> int:
        return self._id

    @property
    def poller(self) -> Poller:
        return self._poller

    @property
    def state(self) -> PollState:
        return self._poller.state

    @property
    def is_watching(self) -> bool:
        return self._poller.is_running

    @property
    def uninstalled(self) -> bool:
        return self._uninstalled

    @property
    def on_error(self) -> Optional[ErrorHandler]:
        return self._poller.on_error

    @on_error.setter
    def on_error(self, handler: Optional[ErrorHandler]) -> None:
        self._poller.on_error = handler

    def _check_installed(self) -> None:
        if self._uninstalled:
            raise FilterStateError(f"Filter {self._id:#x} has been uninstalled")
        if self._uninstalling:
            raise FilterStateError(f"Filter {self._id:#x} is being uninstalled")

    def _fetch(self) -> list[Any]:
        return self._eth.get_filter_changes(self, timeout=self.config.poll_timeout)

    def watch(self, callback: Optional[Callable[[Any], None]] = None) -> WatchChannel:
        """
        Start receiving this filter's changes.

        Args:
            callback: Called with each item from a dedicated thread. If
                omitted, pull items from the returned channel instead.

        Returns:
            The subscriber's channel. Closing it unsubscribes; closing the
            last one stops polling.
        """
        with self._lock:
            self._check_installed()
            return self._poller.subscribe(callback)

    def stop_watching(self) -> None:
        """Stop polling and close every subscriber channel. No-op when idle."""
        self._poller.stop()

    def changes(self) -> list[Any]:
        """One-shot eth_getFilterChanges, bypassing any watchers."""
        self._check_installed()
        return self._eth.get_filter_changes(self)

    def logs(self) -> list[Any]:
        """All logs matching a log filter (eth_getFilterLogs)."""
        self._check_installed()
        if self.kind is not FilterKind.LOG:
            raise FilterStateError(f"eth_getFilterLogs needs a log filter, not {self.kind.value}")
        return self._eth.get_filter_logs(self)

    def uninstall(self) -> bool:
        """
        Stop watching and remove the filter from the node.

        Returns the node's answer (False if it had already forgotten the
        filter). Uninstalling twice is an error. While the call is in
        flight, `watch()` raises FilterStateError; if the node call fails
        the filter is usable again.
        """
        with self._lock:
            self._check_installed()
            self._uninstalling = True
        try:
            self._poller.stop()
            result = self._eth.uninstall_filter_id(self._id)
        except BaseException:
            with self._lock:
                self._uninstalling = False
            raise
        with self._lock:
            self._uninstalled = True
            self._uninstalling = False
        return result

    def __enter__(self) -> "Filter":
        return self

    def __exit__(self, *exc_info) -> None:
        if not (self._uninstalled or self._uninstalling):
            self.uninstall()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Filter):
            return NotImplemented
        return self._id == other._id

    def __hash__(self) -> int:
        return hash(self._id)

    def __repr__(self) -> str:
        return f"Filter(id={self._id:#x}, kind={self.kind.value}, state={self.state.value})"
