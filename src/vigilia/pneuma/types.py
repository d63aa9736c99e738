from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Sequence, Union

from eth_abi import decode

from ..utils import bytes_to_hex, hex_to_bytes, hex_to_int, int_to_hex, keccak256
from .errors import DecodeError

BlockTag = Union[int, str]
TopicMatch = Union[None, str, Sequence[str]]


class FilterKind(str, Enum):
    LOG = "log"
    BLOCK = "block"
    PENDING_TRANSACTION = "pending_transaction"


def block_param(value: BlockTag) -> str:
    if isinstance(value, int):
        return int_to_hex(value)
    return value


def event_topic(signature: str) -> str:
    """
    Topic hash for an event signature.

    >>> event_topic("Transfer(address,address,uint256)")[:10]
    '0xddf252ad'
    """
    return bytes_to_hex(keccak256(signature.replace(" ", "").encode("utf-8")))


@dataclass(frozen=True)
class FilterOption:
    """
    Query for a log filter (eth_newFilter / eth_getLogs).

    Attributes:
        from_block: Block number or tag ("latest", "earliest", "pending")
        to_block: Block number or tag
        address: Contract address or list of addresses
        topics: Positional topic matchers; each entry is None (any), a topic
            or a list of alternatives
    """

    from_block: Optional[BlockTag] = None
    to_block: Optional[BlockTag] = None
    address: Union[None, str, Sequence[str]] = None
    topics: Optional[Sequence[TopicMatch]] = None
    block_hash: Optional[str] = None

    def to_params(self) -> dict[str, Any]:
        params: dict[str, Any] = {}
        if self.from_block is not None:
            params["fromBlock"] = block_param(self.from_block)
        if self.to_block is not None:
            params["toBlock"] = block_param(self.to_block)
        if self.address is not None:
            params["address"] = self.address if isinstance(self.address, str) else list(self.address)
        if self.topics is not None:
            params["topics"] = [
                t if t is None or isinstance(t, str) else list(t) for t in self.topics
            ]
        if self.block_hash is not None:
            params["blockHash"] = self.block_hash
        return params


def _opt_int(payload: dict[str, Any], key: str) -> Optional[int]:
    value = payload.get(key)
    if value is None:
        return None
    return hex_to_int(value)


@dataclass(frozen=True)
class SyncStatus:
    starting_block: int
    current_block: int
    highest_block: int

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "SyncStatus":
        try:
            return cls(
                starting_block=hex_to_int(payload["startingBlock"]),
                current_block=hex_to_int(payload["currentBlock"]),
                highest_block=hex_to_int(payload["highestBlock"]),
            )
        except (KeyError, ValueError) as exc:
            raise DecodeError(f"Malformed sync status: {exc}") from exc


@dataclass(frozen=True)
class Log:
    address: str
    data: str
    topics: tuple[str, ...] = field(default_factory=tuple)
    block_number: Optional[int] = None
    block_hash: Optional[str] = None
    transaction_hash: Optional[str] = None
    transaction_index: Optional[int] = None
    log_index: Optional[int] = None
    removed: bool = False

    @classmethod
    def from_dict(cls, payload: Any) -> "Log":
        if not isinstance(payload, dict):
            raise DecodeError(f"Log entry must be an object, got {payload!r}")
        try:
            topics = payload.get("topics") or []
            if not all(isinstance(t, str) for t in topics):
                raise ValueError(f"Invalid topics: {topics!r}")
            return cls(
                address=str(payload["address"]),
                data=str(payload.get("data") or "0x"),
                topics=tuple(topics),
                block_number=_opt_int(payload, "blockNumber"),
                block_hash=payload.get("blockHash"),
                transaction_hash=payload.get("transactionHash"),
                transaction_index=_opt_int(payload, "transactionIndex"),
                log_index=_opt_int(payload, "logIndex"),
                removed=bool(payload.get("removed", False)),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise DecodeError(f"Malformed log entry: {exc}") from exc

    @property
    def event(self) -> Optional[str]:
        """topics[0], the event signature hash for non-anonymous events."""
        return self.topics[0] if self.topics else None

    def decode_data(self, types: list[str]) -> tuple:
        """ABI-decode the non-indexed event arguments."""
        return decode(types, hex_to_bytes(self.data))

    def to_dict(self) -> dict[str, Any]:
        return {
            "address": self.address,
            "data": self.data,
            "topics": list(self.topics),
            "blockNumber": None if self.block_number is None else int_to_hex(self.block_number),
            "blockHash": self.block_hash,
            "transactionHash": self.transaction_hash,
            "transactionIndex": None if self.transaction_index is None else int_to_hex(self.transaction_index),
            "logIndex": None if self.log_index is None else int_to_hex(self.log_index),
            "removed": self.removed,
        }
