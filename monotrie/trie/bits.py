"""
Bit paths
=========

`Bits` is an immutable run of bits, consumed most-significant-bit first. Keys
become a `Bits` of ``8 * digest_size`` bits; branch prefixes and leaf suffixes
are slices of it. Bit 0 routes left, bit 1 routes right.

Representation is ``(value, length)`` where ``value`` holds the bits as an
unsigned integer, so slicing and prefix comparison are integer shifts.

>>> k = Bits.from_bytes(b"\\xa0")
>>> str(k.take(3)), k.bit(0), len(k.drop(3))
('101', 1, 5)
>>> Bits.from_str("1100").common_prefix_len(Bits.from_str("1110"))
2
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator


@dataclass(frozen=True)
class Bits:
    value: int = 0
    length: int = 0

    def __post_init__(self) -> None:
        if self.length < 0:
            raise ValueError("bit length must be >= 0")
        if self.value < 0 or self.value >> self.length:
            raise ValueError(f"value does not fit in {self.length} bits")

    # -- constructors --

    @classmethod
    def from_bytes(cls, data: bytes) -> "Bits":
        return cls(int.from_bytes(data, "big"), 8 * len(data))

    @classmethod
    def from_bit(cls, bit: int) -> "Bits":
        if bit not in (0, 1):
            raise ValueError("bit must be 0 or 1")
        return cls(bit, 1)

    @classmethod
    def from_str(cls, s: str) -> "Bits":
        """Parse a string of '0'/'1' characters (handy in tests and logs)."""
        if s and set(s) - {"0", "1"}:
            raise ValueError(f"not a bit string: {s!r}")
        return cls(int(s, 2) if s else 0, len(s))

    # -- access --

    def __len__(self) -> int:
        return self.length

    def bit(self, i: int) -> int:
        if not (0 <= i < self.length):
            raise IndexError(f"bit index {i} out of range for length {self.length}")
        return (self.value >> (self.length - 1 - i)) & 1

    def __iter__(self) -> Iterator[int]:
        for i in range(self.length):
            yield self.bit(i)

    def take(self, n: int) -> "Bits":
        """First `n` bits."""
        if not (0 <= n <= self.length):
            raise IndexError(f"take({n}) out of range for length {self.length}")
        return Bits(self.value >> (self.length - n), n)

    def drop(self, n: int) -> "Bits":
        """All but the first `n` bits."""
        if not (0 <= n <= self.length):
            raise IndexError(f"drop({n}) out of range for length {self.length}")
        rest = self.length - n
        return Bits(self.value & ((1 << rest) - 1), rest)

    def __add__(self, other: "Bits") -> "Bits":
        if not isinstance(other, Bits):
            return NotImplemented
        return Bits((self.value << other.length) | other.value, self.length + other.length)

    def common_prefix_len(self, other: "Bits") -> int:
        n = min(self.length, other.length)
        diff = self.take(n).value ^ other.take(n).value
        return n - diff.bit_length()

    def startswith(self, prefix: "Bits") -> bool:
        return prefix.length <= self.length and self.take(prefix.length) == prefix

    # -- byte packing --

    def pack(self) -> bytes:
        """ceil(len/8) bytes, MSB-first, trailing pad bits zero."""
        nbytes = (self.length + 7) // 8
        pad = 8 * nbytes - self.length
        return (self.value << pad).to_bytes(nbytes, "big")

    @classmethod
    def unpack(cls, data: bytes, length: int) -> "Bits":
        """Inverse of `pack`. Raises ValueError on a size mismatch or non-zero padding."""
        nbytes = (length + 7) // 8
        if len(data) != nbytes:
            raise ValueError(f"expected {nbytes} packed bytes for {length} bits, got {len(data)}")
        pad = 8 * nbytes - length
        raw = int.from_bytes(data, "big")
        if raw & ((1 << pad) - 1):
            raise ValueError("non-zero padding bits")
        return cls(raw >> pad, length)

    def to_bytes(self) -> bytes:
        if self.length % 8:
            raise ValueError("bit length is not a whole number of bytes")
        return self.value.to_bytes(self.length // 8, "big")

    def __str__(self) -> str:
        return format(self.value, f"0{self.length}b") if self.length else ""

    def __repr__(self) -> str:
        s = str(self)
        if len(s) > 24:
            s = s[:24] + "…"
        return f"Bits({s!r}, len={self.length})"


EMPTY_BITS = Bits(0, 0)

__all__ = ["Bits", "EMPTY_BITS"]
