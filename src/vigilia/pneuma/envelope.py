"""
Message Envelope - JSON-RPC 2.0 requests and replies.

Builds requests stamped with a per-instance correlation id and parses raw
replies into `Reply` objects. Field access is uniform and never raises:
unknown keys yield the `ABSENT` marker.
"""

from __future__ import annotations

import itertools
import json
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union

from ..utils import hex_to_int
from .errors import DecodeError, ProtocolError

JSONRPC_VERSION = "2.0"

MESSAGE_KEYS = ("version", "method", "params", "id", "result", "error")


class _Absent(Enum):
    ABSENT = "absent"

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "ABSENT"


ABSENT = _Absent.ABSENT


class ResultKind(Enum):
    STRING = "string"
    NUMBER = "number"
    BOOL = "bool"
    LIST = "list"
    RAW = "raw"
    NULL = "null"


@dataclass(frozen=True)
class ResultValue:
    """
    Tagged view over a reply's `result`.

    Decode sites switch on `kind` or use the typed accessors, which raise
    DecodeError when the node sent something of a different shape.
    """

    kind: ResultKind
    value: Any

    @classmethod
    def of(cls, value: Any) -> "ResultValue":
        if value is None:
            return cls(ResultKind.NULL, None)
        if isinstance(value, bool):
            return cls(ResultKind.BOOL, value)
        if isinstance(value, (int, float)):
            return cls(ResultKind.NUMBER, value)
        if isinstance(value, str):
            return cls(ResultKind.STRING, value)
        if isinstance(value, list):
            return cls(ResultKind.LIST, value)
        return cls(ResultKind.RAW, value)

    @property
    def is_null(self) -> bool:
        return self.kind is ResultKind.NULL

    def _expect(self, *kinds: ResultKind) -> None:
        if self.kind not in kinds:
            expected = "/".join(k.value for k in kinds)
            raise DecodeError(f"Expected {expected} result, got {self.kind.value}: {self.value!r}")

    def as_str(self) -> str:
        self._expect(ResultKind.STRING)
        return self.value

    def as_bool(self) -> bool:
        self._expect(ResultKind.BOOL)
        return self.value

    def as_list(self) -> list:
        self._expect(ResultKind.LIST)
        return self.value

    def as_dict(self) -> dict:
        self._expect(ResultKind.RAW)
        if not isinstance(self.value, dict):
            raise DecodeError(f"Expected object result, got {self.value!r}")
        return self.value

    def as_int(self) -> int:
        """Integer from a hex quantity string or a plain JSON number."""
        self._expect(ResultKind.STRING, ResultKind.NUMBER)
        if self.kind is ResultKind.NUMBER:
            if isinstance(self.value, float) and not self.value.is_integer():
                raise DecodeError(f"Expected integer result, got {self.value!r}")
            return int(self.value)
        try:
            return hex_to_int(self.value)
        except ValueError as exc:
            raise DecodeError(f"Invalid quantity: {self.value!r}") from exc


def _to_param(arg: Any) -> Any:
    if hasattr(arg, "to_params"):
        return arg.to_params()
    if isinstance(arg, tuple):
        return [_to_param(a) for a in arg]
    if isinstance(arg, list):
        return [_to_param(a) for a in arg]
    return arg


@dataclass(frozen=True)
class Request:
    version: str
    method: str
    params: tuple = ()
    id: int = 0

    def field(self, key: str) -> Any:
        k = key.lower()
        if k == "version":
            return self.version
        if k == "method":
            return self.method
        if k == "params":
            return list(self.params)
        if k == "id":
            return self.id
        return ABSENT

    def to_dict(self) -> dict[str, Any]:
        return {
            "jsonrpc": self.version,
            "method": self.method,
            "params": list(self.params),
            "id": self.id,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), separators=(",", ":"))

    def __str__(self) -> str:
        return self.to_json()


@dataclass(frozen=True)
class ErrorObject:
    code: int
    message: str = ""
    data: Any = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.data is not None:
            result["data"] = self.data
        return result


@dataclass(frozen=True)
class Reply:
    version: str
    id: int
    result: Any = None
    err: Optional[ErrorObject] = None
    method: Optional[str] = None
    params: Any = field(default=None)

    def field(self, key: str) -> Any:
        k = key.lower()
        if k == "version":
            return self.version
        if k == "method":
            return self.method
        if k == "params":
            return self.params
        if k == "id":
            return self.id
        if k == "result":
            return self.result
        if k == "error":
            return self.err
        return ABSENT

    def error(self) -> Optional[ProtocolError]:
        """
        Protocol-level failure carried by this reply, if any.

        An error object whose code is 0 does not count as an error.
        """
        if self.err is not None and self.err.code != 0:
            return ProtocolError(self.err.code, self.err.message, self.err.data)
        return None

    def result_value(self) -> ResultValue:
        return ResultValue.of(self.result)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"jsonrpc": self.version, "id": self.id}
        if self.method is not None:
            payload["method"] = self.method
            payload["params"] = self.params
        if self.err is not None:
            payload["error"] = self.err.to_dict()
        else:
            payload["result"] = self.result
        return payload

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), separators=(",", ":"))

    def __str__(self) -> str:
        return self.to_json()


def _is_uint(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def _parse_error(raw: Any) -> Union[ErrorObject, None, _Absent]:
    if raw is None:
        return None
    if not isinstance(raw, dict):
        return ABSENT
    code = raw.get("code", 0)
    message = raw.get("message", "")
    if isinstance(code, bool) or not isinstance(code, int) or not isinstance(message, str):
        return ABSENT
    return ErrorObject(code=code, message=message, data=raw.get("data"))


class JsonRpc:
    """
    JSON-RPC 2.0 message factory.

    Each instance owns its correlation counter; ids start at 1 and are
    handed out atomically, so requests built from several threads never
    share an id.
    """

    name = "jsonrpc"
    version = JSONRPC_VERSION

    def __init__(self) -> None:
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def next_id(self) -> int:
        with self._lock:
            return next(self._ids)

    def new_request(self, method: str, *args: Any) -> Request:
        params = tuple(_to_param(arg) for arg in args)
        return Request(version=self.version, method=method, params=params, id=self.next_id())

    def new_reply(
        self,
        request: Request,
        result: Any = None,
        error: Optional[ErrorObject] = None,
    ) -> Reply:
        return Reply(version=self.version, id=request.id, result=result, err=error)

    def parse_reply(self, raw: Union[bytes, bytearray, str, dict]) -> Optional[Reply]:
        """
        Decode a raw reply.

        Returns None when the payload is not a well-formed reply object.
        Garbled and truncated payloads are not distinguished from each other.
        """
        payload: Any = raw
        if isinstance(raw, (bytes, bytearray)):
            try:
                payload = raw.decode("utf-8")
            except UnicodeDecodeError:
                return None
        if isinstance(payload, str):
            try:
                payload = json.loads(payload)
            except ValueError:
                return None
        if not isinstance(payload, dict):
            return None

        version = payload.get("jsonrpc", "")
        ident = payload.get("id")
        if ident is None:
            ident = 0
        if not isinstance(version, str) or not _is_uint(ident):
            return None

        err = _parse_error(payload.get("error"))
        if err is ABSENT:
            return None

        method = payload.get("method")
        if method is not None and not isinstance(method, str):
            return None

        return Reply(
            version=version,
            id=ident,
            result=payload.get("result"),
            err=err,
            method=method,
            params=payload.get("params"),
        )
