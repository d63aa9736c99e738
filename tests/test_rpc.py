"""Tests for RequestManager, EthAPI and NetAPI against the in-memory node."""

from __future__ import annotations

import pytest

from vigilia.custodia.filter import Filter
from vigilia.custodia.poller import PollState
from vigilia.pneuma.envelope import ErrorObject, Reply, ResultKind
from vigilia.pneuma.errors import CorrelationError, DecodeError, ProtocolError, TransportError
from vigilia.pneuma.types import FilterKind, FilterOption, Log, SyncStatus


class TestRequestManager:
    """Request/reply pairing and error mapping."""

    def test_call_returns_result_value(self, client, node) -> None:
        node.on("eth_blockNumber", "0x4b7")
        result = client.manager.call("eth_blockNumber")
        assert result.kind is ResultKind.STRING
        assert result.as_int() == 1207

    def test_protocol_error(self, client, node) -> None:
        node.on("eth_blockNumber", ErrorObject(-32000, "header not found"))
        with pytest.raises(ProtocolError) as exc_info:
            client.manager.call("eth_blockNumber")
        assert exc_info.value.code == -32000
        assert exc_info.value.exit_code == 3

    def test_zero_code_error_is_ignored(self, client, node) -> None:
        def handler(request):
            return Reply(version="2.0", id=request.id, result="0x1", err=ErrorObject(0, ""))

        node.on("eth_chainId", handler=handler)
        assert client.eth.chain_id() == 1

    def test_unknown_method(self, client) -> None:
        with pytest.raises(ProtocolError) as exc_info:
            client.manager.call("eth_nope")
        assert exc_info.value.code == -32601

    def test_transport_error_propagates(self, client, node) -> None:
        node.script("eth_blockNumber", TransportError("connection refused"))
        with pytest.raises(TransportError):
            client.eth.block_number()

    def test_mismatched_id(self, client, node) -> None:
        node.on("eth_blockNumber", handler=lambda request: Reply(version="2.0", id=request.id + 100, result="0x1"))
        with pytest.raises(CorrelationError) as exc_info:
            client.eth.block_number()
        assert exc_info.value.actual == exc_info.value.expected + 100

    def test_error_without_id_is_protocol_error(self, client, node) -> None:
        node.on(
            "eth_blockNumber",
            handler=lambda request: Reply(version="2.0", id=0, err=ErrorObject(-32700, "parse error")),
        )
        with pytest.raises(ProtocolError):
            client.eth.block_number()

    def test_ids_increase_across_calls(self, client, node) -> None:
        node.on("eth_blockNumber", "0x1")
        for _ in range(5):
            client.eth.block_number()
        ids = [r.id for r in node.calls("eth_blockNumber")]
        assert ids == sorted(ids)
        assert len(set(ids)) == 5

    def test_ids_keep_increasing_across_providers(self, client, node, make_node) -> None:
        node.on("net_version", "1")
        client.net.version()
        client.net.version()

        other = make_node()
        other.on("net_version", "1")
        client.set_provider(other)
        client.net.version()

        assert client.current_provider is other
        ids = [r.id for r in node.requests + other.requests]
        assert ids == [1, 2, 3]

    def test_timeout_is_forwarded(self, client, node) -> None:
        node.on("eth_blockNumber", "0x1")
        client.manager.call("eth_blockNumber", timeout=2.5)
        assert node.timeouts[-1] == 2.5


class TestEthChainState:
    """Method table and result decoding."""

    def test_block_number(self, client, node) -> None:
        node.on("eth_blockNumber", "0x4b7")
        assert client.eth.block_number() == 1207

    def test_gas_price(self, client, node) -> None:
        node.on("eth_gasPrice", "0x09184e72a000")
        assert client.eth.gas_price() == 10_000_000_000_000

    def test_accounts(self, client, node) -> None:
        node.on("eth_accounts", ["0x407d73d8a49eeb85d32cf465507dd71d507100c1"])
        assert client.eth.accounts() == ["0x407d73d8a49eeb85d32cf465507dd71d507100c1"]

    def test_mining(self, client, node) -> None:
        node.on("eth_mining", True)
        assert client.eth.mining() is True

    def test_mining_wrong_shape(self, client, node) -> None:
        node.on("eth_mining", "yes")
        with pytest.raises(DecodeError):
            client.eth.mining()

    def test_syncing_false(self, client, node) -> None:
        node.on("eth_syncing", False)
        assert client.eth.syncing() is False

    def test_syncing_progress(self, client, node) -> None:
        node.on("eth_syncing", {"startingBlock": "0x384", "currentBlock": "0x386", "highestBlock": "0x454"})
        assert client.eth.syncing() == SyncStatus(900, 902, 1108)

    def test_get_balance_params(self, client, node) -> None:
        node.on("eth_getBalance", "0x0234c8a3397aab58")
        assert client.eth.get_balance("0x407d73d8a49eeb85d32cf465507dd71d507100c1") == 0x0234C8A3397AAB58
        assert node.calls("eth_getBalance")[0].params == ("0x407d73d8a49eeb85d32cf465507dd71d507100c1", "latest")

    def test_get_storage_at_params(self, client, node) -> None:
        node.on("eth_getStorageAt", "0x" + "00" * 31 + "01")
        client.eth.get_storage_at("0xabc", 0, 436)
        assert node.calls("eth_getStorageAt")[0].params == ("0xabc", "0x0", "0x1b4")

    def test_get_block_by_number(self, client, node) -> None:
        node.on("eth_getBlockByNumber", {"number": "0x1b4", "hash": "0xdc0818cf"})
        block = client.eth.get_block_by_number(436)
        assert block["hash"] == "0xdc0818cf"
        assert node.calls("eth_getBlockByNumber")[0].params == ("0x1b4", False)

    def test_missing_block_is_none(self, client, node) -> None:
        node.on("eth_getBlockByHash", None)
        assert client.eth.get_block_by_hash("0xdead") is None

    def test_send_raw_transaction(self, client, node) -> None:
        node.on("eth_sendRawTransaction", "0xe670ec64")
        assert client.eth.send_raw_transaction("0xd46e8dd6") == "0xe670ec64"


class TestWaitForReceipt:
    def test_returns_once_mined(self, client, node) -> None:
        node.script("eth_getTransactionReceipt", None, None, {"status": "0x1"})
        receipt = client.eth.wait_for_receipt("0xabc", timeout=5, poll_interval=0.01)
        assert receipt == {"status": "0x1"}
        assert len(node.calls("eth_getTransactionReceipt")) == 3

    def test_timeout(self, client, node) -> None:
        node.on("eth_getTransactionReceipt", None)
        with pytest.raises(TimeoutError):
            client.eth.wait_for_receipt("0xabc", timeout=0.05, poll_interval=0.01)


class TestNet:
    def test_version(self, client, node) -> None:
        node.on("net_version", "100")
        assert client.net.version() == "100"

    def test_peer_count(self, client, node) -> None:
        node.on("net_peerCount", "0x32")
        assert client.net.peer_count() == 50

    def test_listening(self, client, node) -> None:
        node.on("net_listening", True)
        assert client.net.listening() is True
        assert client.is_connected() is True

    def test_not_connected(self, client, node) -> None:
        node.on("net_listening", TransportError("down"))
        assert client.is_connected() is False


class TestFilterInstall:
    """Installing, querying and uninstalling filters."""

    def test_new_filter(self, client, node) -> None:
        option = FilterOption(from_block="latest", address="0xabc")
        installed = client.eth.new_filter(option)
        assert isinstance(installed, Filter)
        assert installed.id == 1
        assert installed.kind is FilterKind.LOG
        assert installed.state is PollState.IDLE
        assert node.calls("eth_newFilter")[0].params == ({"fromBlock": "latest", "address": "0xabc"},)
        assert client.eth.filters == [installed]

    def test_new_block_filter(self, client) -> None:
        installed = client.eth.new_block_filter()
        assert installed.id == 2
        assert installed.kind is FilterKind.BLOCK

    def test_new_pending_transaction_filter(self, client) -> None:
        installed = client.eth.new_pending_transaction_filter()
        assert installed.id == 3
        assert installed.kind is FilterKind.PENDING_TRANSACTION

    def test_install_failure(self, client, node) -> None:
        node.on("eth_newBlockFilter", ErrorObject(-32000, "filters disabled"))
        with pytest.raises(ProtocolError):
            client.eth.new_block_filter()
        assert client.eth.filters == []

    def test_changes_for_log_filter(self, client, node, make_log) -> None:
        installed = client.eth.new_filter()
        node.script("eth_getFilterChanges", [make_log(1), make_log(2)])
        changes = installed.changes()
        assert [log.log_index for log in changes] == [1, 2]
        assert all(isinstance(log, Log) for log in changes)
        assert node.calls("eth_getFilterChanges")[0].params == ("0x1",)

    def test_changes_for_block_filter(self, client, node) -> None:
        installed = client.eth.new_block_filter()
        node.script("eth_getFilterChanges", ["0xaa", "0xbb"])
        assert installed.changes() == ["0xaa", "0xbb"]

    def test_null_changes(self, client, node) -> None:
        installed = client.eth.new_block_filter()
        node.script("eth_getFilterChanges", None)
        assert installed.changes() == []

    def test_malformed_changes(self, client, node) -> None:
        installed = client.eth.new_block_filter()
        node.script("eth_getFilterChanges", [{"not": "a hash"}])
        with pytest.raises(DecodeError):
            installed.changes()

    def test_filter_logs(self, client, node, make_log) -> None:
        installed = client.eth.new_filter()
        node.on("eth_getFilterLogs", [make_log(7)])
        assert [log.log_index for log in installed.logs()] == [7]

    def test_get_logs(self, client, node, make_log) -> None:
        node.on("eth_getLogs", [make_log(1)])
        logs = client.eth.get_logs(FilterOption(block_hash="0xbeef"))
        assert len(logs) == 1
        assert node.calls("eth_getLogs")[0].params == ({"blockHash": "0xbeef"},)

    def test_uninstall_by_id(self, client, node) -> None:
        installed = client.eth.new_filter()
        assert client.eth.uninstall_filter(installed.id) is True
        assert node.calls("eth_uninstallFilter")[0].params == ("0x1",)
        assert client.eth.filters == []

    def test_uninstall_by_handle(self, client, node) -> None:
        installed = client.eth.new_block_filter()
        assert client.eth.uninstall_filter(installed) is True
        assert installed.uninstalled
        assert client.eth.filters == []


class TestReset:
    def test_uninstalls_everything(self, client, node) -> None:
        logs = client.eth.new_filter()
        blocks = client.eth.new_block_filter()
        channel = blocks.watch()

        assert client.reset() == 2

        assert logs.uninstalled and blocks.uninstalled
        assert blocks.state is PollState.IDLE
        assert channel.closed
        assert client.eth.filters == []
        assert len(node.calls("eth_uninstallFilter")) == 2

    def test_node_failure_is_forgotten(self, client, node) -> None:
        client.eth.new_block_filter()
        node.script("eth_uninstallFilter", TransportError("down"))
        assert client.reset() == 0
        assert client.eth.filters == []
