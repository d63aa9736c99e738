from __future__ import annotations

from typing import Union

from eth_hash.auto import keccak

HEX_DIGITS = frozenset("0123456789abcdefABCDEF")


def keccak256(data: bytes) -> bytes:
    # NOTE: Keccak-256 != SHA3-256 (NIST). Never use hashlib.sha3_256 here.
    return keccak(data)


def strip_hex_prefix(value: str) -> str:
    if value[:2] in ("0x", "0X"):
        return value[2:]
    return value


def hex_to_int(value: Union[str, int]) -> int:
    """Parse a JSON-RPC quantity ("0x1b4") into an int.

    Plain ints pass through unchanged. Raises ValueError for anything that
    is not a non-negative hex quantity.
    """
    if isinstance(value, bool):
        raise ValueError(f"Not a quantity: {value!r}")
    if isinstance(value, int):
        if value < 0:
            raise ValueError(f"Quantity must be non-negative: {value}")
        return value
    if not isinstance(value, str):
        raise ValueError(f"Not a quantity: {value!r}")
    digits = strip_hex_prefix(value.strip())
    if not digits:
        return 0
    # int() would also take a sign, underscores and inner whitespace
    if not all(c in HEX_DIGITS for c in digits):
        raise ValueError(f"Not a hex quantity: {value!r}")
    return int(digits, 16)


def int_to_hex(value: int) -> str:
    if value < 0:
        raise ValueError(f"Quantity must be non-negative: {value}")
    return hex(value)


def hex_to_bytes(value: str) -> bytes:
    digits = strip_hex_prefix(value)
    if len(digits) % 2:
        digits = "0" + digits
    return bytes.fromhex(digits)


def bytes_to_hex(data: bytes) -> str:
    return "0x" + data.hex()
