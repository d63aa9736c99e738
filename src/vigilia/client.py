"""
Vigilia - client facade.

Bundles a transport with the Eth and Net method tables:

    with Vigilia.from_url("http://127.0.0.1:8545") as client:
        print(client.eth.block_number())
"""

from __future__ import annotations

import logging
from typing import Optional

from .config import WatchConfig, get_request_timeout, get_rpc_url, load_env
from .pneuma.errors import RpcError
from .pneuma.rpc import EthAPI, NetAPI, RequestManager
from .pneuma.transport import HttpTransport, Transport

logger = logging.getLogger(__name__)


class Vigilia:
    def __init__(self, provider: Transport, config: Optional[WatchConfig] = None) -> None:
        self._provider = provider
        self.config = config or WatchConfig()
        self.manager = RequestManager(provider)
        self.eth = EthAPI(self.manager, self.config)
        self.net = NetAPI(self.manager)

    @classmethod
    def from_url(
        cls,
        rpc_url: Optional[str] = None,
        config: Optional[WatchConfig] = None,
        timeout: Optional[float] = None,
    ) -> "Vigilia":
        """Client over HTTP; unset arguments come from the environment."""
        load_env()
        url = rpc_url or get_rpc_url()
        transport = HttpTransport(url, timeout=timeout or get_request_timeout())
        return cls(transport, config=config or WatchConfig.from_env())

    @property
    def current_provider(self) -> Transport:
        return self._provider

    def set_provider(self, provider: Transport) -> None:
        """
        Route all further calls, including filter polls, through `provider`.

        Correlation ids continue from the same counter.
        """
        self._provider = provider
        self.manager.provider = provider

    def is_connected(self) -> bool:
        try:
            return self.net.listening()
        except RpcError as exc:
            logger.debug("Node not reachable: %s", exc)
            return False

    def reset(self) -> int:
        """Stop all polling and uninstall every filter installed through this client."""
        return self.eth.reset()

    def close(self) -> None:
        close = getattr(self._provider, "close", None)
        if close is not None:
            close()

    def __enter__(self) -> "Vigilia":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
