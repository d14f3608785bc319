"""
monotrie • trie: node model

Two node shapes make up a path-compressed binary trie:

  • Leaf(suffix, value)
        `suffix` is the part of the key not consumed by the branches above
        (the whole key for a single-key tree); `value` is a digest.

  • Branch(prefix, left, right)
        `prefix` is the compressed run of bits shared by every key below the
        branch. After it, one routing bit picks the child: 0 → left, 1 → right.
        Children are referenced by digest; an absent child is None and is
        never materialized.

Nodes are immutable and content-addressed: a node's digest is
``hasher.digest(codec.encode(node))``. "Changing" a node means building a new
one with `with_child` / `with_path`.

The empty subtree has no stored node; its commitment is
``hasher.digest(EMPTY_ENCODING)`` (see `empty_digest`).
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Optional, Union

from .bits import Bits

EMPTY_TAG = 0x00
LEAF_TAG = 0x01
BRANCH_TAG = 0x02

EMPTY_ENCODING = bytes([EMPTY_TAG])


@dataclass(frozen=True)
class Leaf:
    suffix: Bits
    value: bytes

    @property
    def path(self) -> Bits:
        return self.suffix

    def with_path(self, path: Bits) -> "Leaf":
        return replace(self, suffix=path)


@dataclass(frozen=True)
class Branch:
    prefix: Bits
    left: Optional[bytes] = None
    right: Optional[bytes] = None

    @property
    def path(self) -> Bits:
        return self.prefix

    def with_path(self, path: Bits) -> "Branch":
        return replace(self, prefix=path)

    def child(self, bit: int) -> Optional[bytes]:
        return self.right if bit else self.left

    def with_child(self, bit: int, digest: Optional[bytes]) -> "Branch":
        if bit:
            return replace(self, right=digest)
        return replace(self, left=digest)


Node = Union[Leaf, Branch]


def make_branch(prefix: Bits, bit: int, child: Optional[bytes], sibling: Optional[bytes]) -> Branch:
    """Branch with `child` on the `bit` side and `sibling` on the other."""
    if bit:
        return Branch(prefix, left=sibling, right=child)
    return Branch(prefix, left=child, right=sibling)


def empty_digest(hasher) -> bytes:
    """Commitment of the empty subtree (never stored)."""
    return hasher.digest(EMPTY_ENCODING)


__all__ = [
    "EMPTY_TAG",
    "LEAF_TAG",
    "BRANCH_TAG",
    "EMPTY_ENCODING",
    "Leaf",
    "Branch",
    "Node",
    "make_branch",
    "empty_digest",
]
