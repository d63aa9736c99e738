__all__ = [
    # Client
    "Vigilia",
    "WatchConfig",
    # Envelope
    "ABSENT",
    "JsonRpc",
    "Request",
    "Reply",
    "ErrorObject",
    "ResultKind",
    "ResultValue",
    # Transport & APIs
    "Transport",
    "HttpTransport",
    "RequestManager",
    "EthAPI",
    "NetAPI",
    # Types
    "FilterKind",
    "FilterOption",
    "Log",
    "SyncStatus",
    "event_topic",
    # Subscriptions
    "Filter",
    "Poller",
    "PollState",
    "WatchChannel",
    "BackpressurePolicy",
    # Errors
    "RpcError",
    "TransportError",
    "ProtocolError",
    "DecodeError",
    "CorrelationError",
    "WatchError",
    "ChannelClosedError",
    "FilterStateError",
]

__version__ = "0.3.0"

from .client import Vigilia
from .config import WatchConfig
from .custodia.channel import (
    BackpressurePolicy,
    ChannelClosedError,
    FilterStateError,
    WatchChannel,
    WatchError,
)
from .custodia.filter import Filter
from .custodia.poller import Poller, PollState
from .pneuma.envelope import (
    ABSENT,
    ErrorObject,
    JsonRpc,
    Reply,
    Request,
    ResultKind,
    ResultValue,
)
from .pneuma.errors import (
    CorrelationError,
    DecodeError,
    ProtocolError,
    RpcError,
    TransportError,
)
from .pneuma.rpc import EthAPI, NetAPI, RequestManager
from .pneuma.transport import HttpTransport, Transport
from .pneuma.types import FilterKind, FilterOption, Log, SyncStatus, event_topic
