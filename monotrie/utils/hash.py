"""
monotrie.utils.hash
===================

The Hasher capability and its concrete implementations.

A hasher is anything with a ``name``, a fixed ``digest_size`` and a pure
``digest(data) -> bytes``. The trie is generic over it; the digest size also
fixes the key width (keys are digest-sized byte strings).

Provided hashers
----------------
- ``Sha256Hasher``   name "sha2-256"    (hashlib)
- ``Sha3Hasher``     name "sha3-256"    (hashlib)
- ``Blake2bHasher``  name "blake2b-256" (hashlib, 32-byte output)
- ``Blake3Hasher``   name "blake3"      (the ``blake3`` package; default)

Use ``get_hasher(name)`` to resolve a name or alias from configuration.
"""

from __future__ import annotations

import hashlib
from typing import Callable, Dict, Protocol, runtime_checkable

import blake3 as _blake3

from ..errors import ConfigError
from .bytes import BytesLike, as_bytes

DEFAULT_HASHER = "blake3"


@runtime_checkable
class Hasher(Protocol):
    name: str
    digest_size: int

    def digest(self, data: bytes) -> bytes:
        ...


class _HashlibHasher:
    """Base for hashers backed by a hashlib-style constructor."""

    name: str = ""
    digest_size: int = 32

    def _new(self, data: bytes):  # pragma: no cover - overridden
        raise NotImplementedError

    def digest(self, data: BytesLike) -> bytes:
        return self._new(as_bytes(data)).digest()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, digest_size={self.digest_size})"

    def __eq__(self, other: object) -> bool:
        return (
            isinstance(other, _HashlibHasher)
            and other.name == self.name
            and other.digest_size == self.digest_size
        )

    def __hash__(self) -> int:
        return hash((self.name, self.digest_size))


class Sha256Hasher(_HashlibHasher):
    name = "sha2-256"

    def _new(self, data: bytes):
        return hashlib.sha256(data)


class Sha3Hasher(_HashlibHasher):
    name = "sha3-256"

    def _new(self, data: bytes):
        return hashlib.sha3_256(data)


class Blake2bHasher(_HashlibHasher):
    name = "blake2b-256"

    def _new(self, data: bytes):
        return hashlib.blake2b(data, digest_size=self.digest_size)


class Blake3Hasher(_HashlibHasher):
    name = "blake3"

    def _new(self, data: bytes):
        return _blake3.blake3(data)

    def digest(self, data: BytesLike) -> bytes:
        return self._new(as_bytes(data)).digest(length=self.digest_size)


# ------------
# Registry
# ------------

_REGISTRY: Dict[str, Callable[[], Hasher]] = {
    "sha2-256": Sha256Hasher,
    "sha3-256": Sha3Hasher,
    "blake2b-256": Blake2bHasher,
    "blake3": Blake3Hasher,
}

_ALIASES: Dict[str, str] = {
    "sha256": "sha2-256",
    "sha2": "sha2-256",
    "sha3": "sha3-256",
    "sha3_256": "sha3-256",
    "blake2": "blake2b-256",
    "blake2b": "blake2b-256",
    "blake3-256": "blake3",
}


def available_hashers() -> list[str]:
    return sorted(_REGISTRY)


def get_hasher(name: str = DEFAULT_HASHER) -> Hasher:
    """Resolve a hasher by canonical name or alias (case-insensitive)."""
    key = (name or "").strip().lower()
    key = _ALIASES.get(key, key)
    factory = _REGISTRY.get(key)
    if factory is None:
        raise ConfigError(
            f"unknown hasher {name!r}", name=name, available=available_hashers()
        )
    return factory()


__all__ = [
    "DEFAULT_HASHER",
    "Hasher",
    "Sha256Hasher",
    "Sha3Hasher",
    "Blake2bHasher",
    "Blake3Hasher",
    "available_hashers",
    "get_hasher",
]
