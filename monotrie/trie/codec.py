"""
monotrie • trie: node codec
===========================

Canonical on-disk encoding of trie nodes. Root digests are a function of these
bytes; any layout change changes every root.

Format
------
    empty  := 0x00
    leaf   := 0x01 || u16be(len) || packed(suffix) || value[digest_size]
    branch := 0x02 || u16be(len) || packed(prefix) || flags:u8
                     || [left[digest_size]] || [right[digest_size]]

    packed(bits) := ceil(len/8) bytes, MSB-first, trailing pad bits zero
    flags        := bit0 = left present, bit1 = right present, others zero

Decoding is strict: every malformed input (unknown tag, truncation, trailing
bytes, dirty padding, unknown flag bits, the empty tag) raises `CorruptNode`.
The empty encoding exists only to define the empty-subtree commitment.

API
---
    encode(node) -> bytes
    decode(data, digest_size) -> Node
    node_digest(node, hasher) -> bytes
"""

from __future__ import annotations

from typing import Tuple

from ..errors import CorruptNode
from ..utils.bytes import read_u16be, u16be
from .bits import Bits
from .node import BRANCH_TAG, EMPTY_TAG, LEAF_TAG, Branch, Leaf, Node

FLAG_LEFT = 0x01
FLAG_RIGHT = 0x02
_FLAG_MASK = FLAG_LEFT | FLAG_RIGHT


# --------------------------------------------------------------------------- #
# Encoding
# --------------------------------------------------------------------------- #


def encode(node: Node) -> bytes:
    if isinstance(node, Leaf):
        return bytes([LEAF_TAG]) + u16be(len(node.suffix)) + node.suffix.pack() + node.value
    if isinstance(node, Branch):
        flags = (FLAG_LEFT if node.left is not None else 0) | (
            FLAG_RIGHT if node.right is not None else 0
        )
        out = bytearray([BRANCH_TAG])
        out += u16be(len(node.prefix))
        out += node.prefix.pack()
        out.append(flags)
        if node.left is not None:
            out += node.left
        if node.right is not None:
            out += node.right
        return bytes(out)
    raise TypeError(f"not a trie node: {type(node)!r}")


def node_digest(node: Node, hasher) -> bytes:
    return hasher.digest(encode(node))


# --------------------------------------------------------------------------- #
# Decoding
# --------------------------------------------------------------------------- #


def _read_bits(data: bytes, offset: int) -> Tuple[Bits, int]:
    try:
        n = read_u16be(data, offset)
    except ValueError as e:
        raise CorruptNode("truncated path length", size=len(data)) from e
    offset += 2
    nbytes = (n + 7) // 8
    if offset + nbytes > len(data):
        raise CorruptNode("truncated path bits", bits=n, size=len(data))
    try:
        bits = Bits.unpack(data[offset:offset + nbytes], n)
    except ValueError as e:
        raise CorruptNode(str(e), bits=n) from e
    return bits, offset + nbytes


def decode(data: bytes, digest_size: int) -> Node:
    """Decode one encoded node; `digest_size` fixes value/child widths."""
    if not data:
        raise CorruptNode("empty node encoding")
    tag = data[0]

    if tag == LEAF_TAG:
        suffix, off = _read_bits(data, 1)
        if len(data) - off != digest_size:
            raise CorruptNode(
                "leaf value has wrong size",
                expected=digest_size,
                got=len(data) - off,
            )
        return Leaf(suffix, bytes(data[off:]))

    if tag == BRANCH_TAG:
        prefix, off = _read_bits(data, 1)
        if off >= len(data):
            raise CorruptNode("truncated branch flags", size=len(data))
        flags = data[off]
        off += 1
        if flags & ~_FLAG_MASK:
            raise CorruptNode("unknown branch flag bits", flags=flags)
        if not flags:
            raise CorruptNode("branch without children")
        want = digest_size * bin(flags).count("1")
        if len(data) - off != want:
            raise CorruptNode("branch children have wrong size", expected=want, got=len(data) - off)
        left = right = None
        if flags & FLAG_LEFT:
            left = bytes(data[off:off + digest_size])
            off += digest_size
        if flags & FLAG_RIGHT:
            right = bytes(data[off:off + digest_size])
        return Branch(prefix, left, right)

    if tag == EMPTY_TAG:
        raise CorruptNode("empty subtree is never stored")
    raise CorruptNode("unknown node tag", tag=tag)


__all__ = ["encode", "decode", "node_digest", "FLAG_LEFT", "FLAG_RIGHT"]
