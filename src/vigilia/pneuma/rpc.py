"""
JSON-RPC client for Ethereum nodes.

RequestManager pairs an envelope with a transport and turns replies into
typed results or typed errors. EthAPI and NetAPI are thin method tables on
top of it; EthAPI also installs filters and keeps track of them so the
client can tear them all down.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Optional, Union

from ..config import WatchConfig
from ..custodia.channel import FilterStateError
from ..custodia.filter import Filter
from ..utils import int_to_hex
from .envelope import JsonRpc, Reply, Request, ResultKind, ResultValue
from .errors import CorrelationError, DecodeError, RpcError
from .transport import Transport
from .types import BlockTag, FilterKind, FilterOption, Log, SyncStatus, block_param

logger = logging.getLogger(__name__)


class RequestManager:
    """
    Numbers, sends and checks requests for one client.

    The correlation counter lives here, not in the transport, so ids keep
    increasing when the provider is swapped.
    """

    def __init__(self, provider: Transport, rpc: Optional[JsonRpc] = None) -> None:
        self.provider = provider
        self._rpc = rpc or JsonRpc()

    @property
    def rpc(self) -> JsonRpc:
        return self._rpc

    def new_request(self, method: str, *params: Any) -> Request:
        return self.rpc.new_request(method, *params)

    def send(self, request: Request, timeout: Optional[float] = None) -> Reply:
        """
        Send a request and return its reply.

        Raises:
            TransportError: The node could not be reached
            DecodeError: The reply was unparseable
            CorrelationError: The reply answers a different request
            ProtocolError: The node returned an error object
        """
        reply = self.provider.send(request, timeout=timeout)
        error = reply.error()
        if reply.id != request.id:
            # nodes answer with id null when they could not read the request
            if error is not None and reply.id == 0:
                raise error
            raise CorrelationError(request.id, reply.id)
        if error is not None:
            raise error
        return reply

    def call(self, method: str, *params: Any, timeout: Optional[float] = None) -> ResultValue:
        return self.send(self.new_request(method, *params), timeout=timeout).result_value()


def _filter_param(filter_id: int) -> str:
    return int_to_hex(filter_id)


def _as_optional_dict(value: ResultValue) -> Optional[dict]:
    if value.is_null:
        return None
    return value.as_dict()


class EthAPI:
    def __init__(self, manager: RequestManager, config: Optional[WatchConfig] = None) -> None:
        self.manager = manager
        self.config = config or WatchConfig()
        self._filters: dict[int, Filter] = {}
        self._lock = threading.Lock()

    # ============ Chain state ============

    def protocol_version(self) -> str:
        return self.manager.call("eth_protocolVersion").as_str()

    def chain_id(self) -> int:
        return self.manager.call("eth_chainId").as_int()

    def syncing(self) -> Union[bool, SyncStatus]:
        """False when the node is in sync, otherwise its sync progress."""
        result = self.manager.call("eth_syncing")
        if result.kind is ResultKind.BOOL:
            return False
        return SyncStatus.from_dict(result.as_dict())

    def coinbase(self) -> str:
        return self.manager.call("eth_coinbase").as_str()

    def mining(self) -> bool:
        return self.manager.call("eth_mining").as_bool()

    def hashrate(self) -> int:
        return self.manager.call("eth_hashrate").as_int()

    def gas_price(self) -> int:
        """Current gas price in wei."""
        return self.manager.call("eth_gasPrice").as_int()

    def accounts(self) -> list[str]:
        return [str(a) for a in self.manager.call("eth_accounts").as_list()]

    def block_number(self) -> int:
        return self.manager.call("eth_blockNumber").as_int()

    def get_balance(self, address: str, block: BlockTag = "latest") -> int:
        """Balance in wei."""
        return self.manager.call("eth_getBalance", address, block_param(block)).as_int()

    def get_storage_at(self, address: str, position: int, block: BlockTag = "latest") -> str:
        return self.manager.call(
            "eth_getStorageAt", address, int_to_hex(position), block_param(block)
        ).as_str()

    def get_transaction_count(self, address: str, block: BlockTag = "latest") -> int:
        return self.manager.call("eth_getTransactionCount", address, block_param(block)).as_int()

    def get_code(self, address: str, block: BlockTag = "latest") -> str:
        return self.manager.call("eth_getCode", address, block_param(block)).as_str()

    def call(self, tx: dict[str, Any], block: BlockTag = "latest") -> str:
        """eth_call; returns the raw 0x-prefixed return data."""
        return self.manager.call("eth_call", tx, block_param(block)).as_str()

    def estimate_gas(self, tx: dict[str, Any]) -> int:
        return self.manager.call("eth_estimateGas", tx).as_int()

    def send_raw_transaction(self, raw_tx: str) -> str:
        """Submit a signed transaction; returns its hash."""
        return self.manager.call("eth_sendRawTransaction", raw_tx).as_str()

    # ============ Blocks & transactions ============

    def get_block_by_hash(self, block_hash: str, full: bool = False) -> Optional[dict]:
        return _as_optional_dict(self.manager.call("eth_getBlockByHash", block_hash, full))

    def get_block_by_number(self, block: BlockTag = "latest", full: bool = False) -> Optional[dict]:
        return _as_optional_dict(self.manager.call("eth_getBlockByNumber", block_param(block), full))

    def get_transaction_by_hash(self, tx_hash: str) -> Optional[dict]:
        return _as_optional_dict(self.manager.call("eth_getTransactionByHash", tx_hash))

    def get_transaction_receipt(self, tx_hash: str) -> Optional[dict]:
        return _as_optional_dict(self.manager.call("eth_getTransactionReceipt", tx_hash))

    def wait_for_receipt(self, tx_hash: str, timeout: float = 120, poll_interval: float = 2.0) -> dict:
        """
        Wait for a transaction receipt.

        Raises:
            TimeoutError: If receipt not found within timeout
        """
        start = time.monotonic()
        while time.monotonic() - start < timeout:
            receipt = self.get_transaction_receipt(tx_hash)
            if receipt is not None:
                return receipt
            time.sleep(poll_interval)

        raise TimeoutError(f"Transaction {tx_hash} not confirmed within {timeout}s")

    # ============ Filters ============

    @property
    def filters(self) -> list[Filter]:
        with self._lock:
            return list(self._filters.values())

    def _install(self, kind: FilterKind, method: str, *params: Any, option: Optional[FilterOption] = None) -> Filter:
        filter_id = self.manager.call(method, *params).as_int()
        installed = Filter(self, kind, filter_id, option=option, config=self.config)
        with self._lock:
            self._filters[filter_id] = installed
        logger.debug("Installed %s filter %#x", kind.value, filter_id)
        return installed

    def new_filter(self, option: Optional[FilterOption] = None) -> Filter:
        """Install a log filter."""
        option = option or FilterOption()
        return self._install(FilterKind.LOG, "eth_newFilter", option, option=option)

    def new_block_filter(self) -> Filter:
        """Install a filter that yields the hash of every new block."""
        return self._install(FilterKind.BLOCK, "eth_newBlockFilter")

    def new_pending_transaction_filter(self) -> Filter:
        """Install a filter that yields the hash of every new pending transaction."""
        return self._install(FilterKind.PENDING_TRANSACTION, "eth_newPendingTransactionFilter")

    def uninstall_filter(self, target: Union[Filter, int]) -> bool:
        if isinstance(target, Filter):
            return target.uninstall()
        return self.uninstall_filter_id(target)

    def uninstall_filter_id(self, filter_id: int) -> bool:
        result = self.manager.call("eth_uninstallFilter", _filter_param(filter_id)).as_bool()
        with self._lock:
            self._filters.pop(filter_id, None)
        logger.debug("Uninstalled filter %#x (node answered %s)", filter_id, result)
        return result

    def _decode_items(self, kind: FilterKind, items: list) -> list:
        if kind is FilterKind.LOG:
            return [Log.from_dict(item) for item in items]
        for item in items:
            if not isinstance(item, str):
                raise DecodeError(f"Expected a hash from a {kind.value} filter, got {item!r}")
        return list(items)

    def get_filter_changes(self, target: Filter, timeout: Optional[float] = None) -> list:
        """
        Items that arrived since the previous poll of `target`.

        Log filters yield Log objects; block and pending-transaction filters
        yield hash strings.
        """
        result = self.manager.call("eth_getFilterChanges", _filter_param(target.id), timeout=timeout)
        if result.is_null:
            return []
        return self._decode_items(target.kind, result.as_list())

    def get_filter_logs(self, target: Filter) -> list[Log]:
        result = self.manager.call("eth_getFilterLogs", _filter_param(target.id))
        return self._decode_items(FilterKind.LOG, result.as_list())

    def get_logs(self, option: Optional[FilterOption] = None) -> list[Log]:
        result = self.manager.call("eth_getLogs", option or FilterOption())
        return self._decode_items(FilterKind.LOG, result.as_list())

    def reset(self) -> int:
        """
        Stop polling and uninstall every filter this API installed.

        Filters the node fails to uninstall are logged and forgotten.
        Returns how many were uninstalled.
        """
        removed = 0
        for installed in self.filters:
            try:
                installed.uninstall()
                removed += 1
            except FilterStateError:
                pass
            except RpcError as exc:
                logger.warning("Could not uninstall filter %#x: %s", installed.id, exc)
            with self._lock:
                self._filters.pop(installed.id, None)
        return removed


class NetAPI:
    def __init__(self, manager: RequestManager) -> None:
        self.manager = manager

    def version(self) -> str:
        """Network id as reported by the node."""
        return self.manager.call("net_version").as_str()

    def peer_count(self) -> int:
        return self.manager.call("net_peerCount").as_int()

    def listening(self) -> bool:
        return self.manager.call("net_listening").as_bool()
