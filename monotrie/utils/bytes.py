"""
monotrie.utils.bytes
====================

Small byte helpers shared by the codec, the hashers and log lines.

>>> u16be(258)
b'\\x01\\x02'
>>> short_hex(bytes(range(4)), n=2)
'0001'
"""

from __future__ import annotations

from typing import Optional, Union

BytesLike = Union[bytes, bytearray, memoryview]


def as_bytes(data: BytesLike) -> bytes:
    """Copy any buffer into immutable bytes; str is rejected."""
    if isinstance(data, bytes):
        return data
    if isinstance(data, (bytearray, memoryview)):
        return bytes(data)
    raise TypeError(f"expected bytes-like, got {type(data).__name__}")


def short_hex(data: Optional[BytesLike], n: int = 8) -> str:
    """First `n` bytes as hex, or '-' for None."""
    if data is None:
        return "-"
    return as_bytes(data)[:n].hex()


def u16be(x: int) -> bytes:
    if not 0 <= x <= 0xFFFF:
        raise ValueError(f"u16 out of range: {x}")
    return x.to_bytes(2, "big")


def read_u16be(data: bytes, offset: int = 0) -> int:
    end = offset + 2
    if end > len(data):
        raise ValueError("truncated u16")
    return int.from_bytes(data[offset:end], "big")


__all__ = ["BytesLike", "as_bytes", "short_hex", "u16be", "read_u16be"]
