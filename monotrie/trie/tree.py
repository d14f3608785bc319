"""
monotrie • trie: engine
=======================

`SparseMerkleTrie` is a path-compressed binary Merkle trie over fixed-width
keys (``hasher.digest_size`` bytes). It is stateless apart from its store: every
operation takes the root digest to work from and mutations return the new
root. ``None`` is the root of the empty tree.

    trie = SparseMerkleTrie(open_kv("memory://"), get_hasher("sha3-256"))
    root = trie.insert(None, key, value)
    assert trie.get(root, key) == value
    root = trie.remove(root, key)            # -> None, tree is empty again

Mutation model
--------------
1. Descend from the root, recording a frame ``(branch, bit)`` per branch taken.
2. Build the replacement for the bottom of the path (new leaf, split, or
   collapse) and re-derive every branch on the spine bottom-up.
3. New nodes are staged in a pending write-set keyed by digest. On success the
   nodes reachable from the new root are written in **one** ``kv.batch()``;
   anything raised before or during the batch leaves the store untouched.

`insert_many` / `remove_many` run many mutations against the same write-set
and commit once, so intermediate nodes never reach the store.

The engine holds no locks; concurrent writers must be serialized by the
caller. Readers are safe alongside writers because committed nodes are
immutable and content-addressed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from ..db.cache import NodeCache
from ..db.kv import KV
from ..errors import (CorruptNode, InternalError, KeyLengthMismatch, StoreFailure,
                      TrieError, ValueLengthMismatch, wrap)
from ..logging import get_logger
from ..metrics import TrieMetrics, get_metrics
from ..utils.bytes import short_hex
from ..utils.hash import Hasher
from . import codec
from .bits import Bits
from .node import Branch, Leaf, Node, empty_digest, make_branch
from .proofs import Proof, build_proof
from .verify import verify_proof, verify_proof_checked

log = get_logger("monotrie.trie")

# Reserved store key for the caller's head root. Its length differs from every
# supported digest size, so it can never collide with a node digest.
HEAD_KEY = b"monotrie:head"

Frame = Tuple[Branch, int]


@dataclass
class _WriteSet:
    """Nodes created by the current call, not yet committed."""

    nodes: Dict[bytes, Tuple[Node, bytes]] = field(default_factory=dict)

    def get(self, digest: bytes) -> Optional[Node]:
        hit = self.nodes.get(digest)
        return hit[0] if hit is not None else None


class SparseMerkleTrie:
    """
    Authenticated key → digest index over a KV store.

    Parameters
    ----------
    kv : KV
        Backing store; nodes live under their digest.
    hasher : Hasher
        Digest function; its `digest_size` fixes key and value widths.
    cache : NodeCache | None
        Optional decoded-node LRU shared across calls.
    metrics : TrieMetrics | None
        Defaults to the process-wide `get_metrics()` instance.
    """

    def __init__(
        self,
        kv: KV,
        hasher: Hasher,
        *,
        cache: Optional[NodeCache] = None,
        metrics: Optional[TrieMetrics] = None,
    ) -> None:
        self.kv = kv
        self.hasher = hasher
        self.digest_size = int(hasher.digest_size)
        self.cache = cache
        self.metrics = metrics or get_metrics()
        self._empty = empty_digest(hasher)

    def __repr__(self) -> str:
        return f"SparseMerkleTrie(hasher={self.hasher.name!r}, kv={type(self.kv).__name__})"

    # ------------------------------------------------------------------ #
    # Root helpers
    # ------------------------------------------------------------------ #

    @property
    def empty_root(self) -> bytes:
        """Commitment of the empty tree."""
        return self._empty

    def root_or_empty(self, root: Optional[bytes]) -> bytes:
        return self._empty if root is None else root

    def head_root(self) -> Optional[bytes]:
        """Root previously saved with `set_head_root`, or None."""
        raw = self._kv_get(HEAD_KEY)
        if raw is None:
            return None
        if len(raw) != self.digest_size:
            raise CorruptNode("head root has wrong size", expected=self.digest_size, got=len(raw))
        return raw

    def set_head_root(self, root: Optional[bytes]) -> None:
        """Persist `root` as the head; None clears it."""
        if root is not None and len(root) != self.digest_size:
            raise ValueLengthMismatch(self.digest_size, len(root))
        try:
            with self.kv.batch() as b:
                if root is None:
                    b.delete(HEAD_KEY)
                else:
                    b.put(HEAD_KEY, bytes(root))
        except TrieError:
            raise
        except Exception as e:
            raise wrap(e, as_=StoreFailure, op="set_head_root") from e

    # ------------------------------------------------------------------ #
    # Public operations
    # ------------------------------------------------------------------ #

    def get(self, root: Optional[bytes], key: bytes) -> Optional[bytes]:
        """Value stored under `key`, or None if absent."""
        bits = self._key_bits(key)
        with self.metrics.time_op("get"):
            return self._get(None, root, bits)

    def get_many(self, root: Optional[bytes], keys: Iterable[bytes]) -> List[Optional[bytes]]:
        """Values for `keys`, in order; None for absent keys."""
        all_bits = [self._key_bits(k) for k in keys]
        with self.metrics.time_op("get_many"):
            return [self._get(None, root, bits) for bits in all_bits]

    def insert(self, root: Optional[bytes], key: bytes, value: bytes) -> bytes:
        """Insert or replace `key ↦ value`; returns the new root."""
        bits = self._key_bits(key)
        val = self._check_value(value)
        with self.metrics.time_op("insert"):
            ws = _WriteSet()
            new_root = self._insert(ws, root, bits, val)
            self._commit(ws, new_root)
        log.debug(
            "insert",
            extra={"op": "insert", "root": short_hex(root), "new_root": short_hex(new_root)},
        )
        return new_root

    def insert_many(
        self, root: Optional[bytes], items: Iterable[Tuple[bytes, bytes]]
    ) -> Optional[bytes]:
        """
        Insert every `(key, value)` pair (later duplicates win) and commit once.
        Returns the new root (`root` itself if `items` is empty).
        """
        prepared = [(self._key_bits(k), self._check_value(v)) for k, v in items]
        with self.metrics.time_op("insert_many"):
            ws = _WriteSet()
            for bits, val in prepared:
                root = self._insert(ws, root, bits, val)
            self._commit(ws, root)
        log.debug("insert_many", extra={"op": "insert_many", "count": len(prepared), "new_root": short_hex(root)})
        return root

    def remove(self, root: Optional[bytes], key: bytes) -> Optional[bytes]:
        """Remove `key`; returns the new root (None if the tree became empty)."""
        bits = self._key_bits(key)
        with self.metrics.time_op("remove"):
            ws = _WriteSet()
            new_root = self._remove(ws, root, bits)
            self._commit(ws, new_root)
        log.debug(
            "remove",
            extra={"op": "remove", "root": short_hex(root), "new_root": short_hex(new_root)},
        )
        return new_root

    def remove_many(self, root: Optional[bytes], keys: Iterable[bytes]) -> Optional[bytes]:
        """Remove every key in `keys` (absent keys are skipped) and commit once."""
        all_bits = [self._key_bits(k) for k in keys]
        with self.metrics.time_op("remove_many"):
            ws = _WriteSet()
            for bits in all_bits:
                root = self._remove(ws, root, bits)
            self._commit(ws, root)
        log.debug("remove_many", extra={"op": "remove_many", "count": len(all_bits), "new_root": short_hex(root)})
        return root

    def prove(self, root: Optional[bytes], key: bytes) -> Proof:
        """Inclusion or exclusion proof for `key` under `root`."""
        bits = self._key_bits(key)
        with self.metrics.time_op("prove"):
            return build_proof(lambda d: self._load(None, d), root, bits)

    def verify(
        self, proof: Proof, root: Optional[bytes], key: bytes, value: Optional[bytes]
    ) -> bool:
        """Check `proof` for `key ↦ value` (None = absent) against `root`. Store-free."""
        ok = verify_proof(proof, root, key, value, self.hasher)
        self.metrics.note_verify(ok)
        return ok

    def verify_checked(
        self, proof: Proof, root: Optional[bytes], key: bytes, value: Optional[bytes]
    ) -> None:
        """Like `verify` but raises `ProofError` with the reason on failure."""
        try:
            verify_proof_checked(proof, root, key, value, self.hasher)
        except TrieError:
            self.metrics.note_verify(False)
            raise
        self.metrics.note_verify(True)

    def iter_items(self, root: Optional[bytes]) -> Iterator[Tuple[bytes, bytes]]:
        """Yield `(key, value)` pairs under `root` in ascending key order."""
        if root is None:
            return
        stack: List[Tuple[bytes, Bits]] = [(root, Bits())]
        while stack:
            digest, path = stack.pop()
            node = self._load(None, digest)
            if isinstance(node, Leaf):
                yield (path + node.suffix).to_bytes(), node.value
                continue
            base = path + node.prefix
            # right pushed first so left is visited first
            if node.right is not None:
                stack.append((node.right, base + Bits.from_bit(1)))
            if node.left is not None:
                stack.append((node.left, base + Bits.from_bit(0)))

    # ------------------------------------------------------------------ #
    # Validation
    # ------------------------------------------------------------------ #

    def _key_bits(self, key: bytes) -> Bits:
        if len(key) != self.digest_size:
            raise KeyLengthMismatch(self.digest_size, len(key))
        return Bits.from_bytes(bytes(key))

    def _check_value(self, value: bytes) -> bytes:
        if len(value) != self.digest_size:
            raise ValueLengthMismatch(self.digest_size, len(value))
        return bytes(value)

    # ------------------------------------------------------------------ #
    # Node I/O
    # ------------------------------------------------------------------ #

    def _kv_get(self, key: bytes) -> Optional[bytes]:
        try:
            return self.kv.get(key)
        except TrieError:
            raise
        except Exception as e:
            raise wrap(e, as_=StoreFailure, op="get") from e

    def _load(self, ws: Optional[_WriteSet], digest: bytes) -> Node:
        if ws is not None:
            node = ws.get(digest)
            if node is not None:
                self.metrics.note_read("pending")
                return node
        if self.cache is not None:
            node = self.cache.get(digest)
            if node is not None:
                self.metrics.note_read("cache")
                return node

        raw = self._kv_get(digest)
        self.metrics.note_read("store")
        if raw is None:
            log.warning("missing node", extra={"digest": short_hex(digest)})
            raise CorruptNode("referenced node missing from store", digest=digest)
        try:
            node = codec.decode(raw, self.digest_size)
        except CorruptNode as e:
            log.warning("corrupt node", extra={"digest": short_hex(digest), "reason": e.message})
            raise e.with_context(digest=digest) from e
        if self.cache is not None:
            self.cache.put(digest, node)
        return node

    def _stage(self, ws: _WriteSet, node: Node) -> bytes:
        enc = codec.encode(node)
        digest = self.hasher.digest(enc)
        ws.nodes[digest] = (node, enc)
        return digest

    def _commit(self, ws: _WriteSet, root: Optional[bytes]) -> None:
        """Write the staged nodes reachable from `root` in one batch."""
        if root is None or not ws.nodes:
            return
        out: List[Tuple[bytes, Node, bytes]] = []
        seen = set()
        stack = [root]
        while stack:
            d = stack.pop()
            if d in seen or d not in ws.nodes:
                continue
            seen.add(d)
            node, enc = ws.nodes[d]
            out.append((d, node, enc))
            if isinstance(node, Branch):
                stack.extend(c for c in (node.left, node.right) if c is not None)
        if not out:
            return

        try:
            with self.kv.batch() as b:
                for d, _, enc in out:
                    b.put(d, enc)
        except TrieError:
            raise
        except Exception as e:
            raise wrap(e, as_=StoreFailure, op="commit", nodes=len(out)) from e

        self.metrics.note_writes(len(out))
        if self.cache is not None:
            for d, node, _ in out:
                self.cache.put(d, node)
        log.debug("commit", extra={"writes": len(out), "root": short_hex(root)})

    # ------------------------------------------------------------------ #
    # Algorithms
    # ------------------------------------------------------------------ #

    def _get(self, ws: Optional[_WriteSet], root: Optional[bytes], key: Bits) -> Optional[bytes]:
        digest = root
        pos = 0
        while digest is not None:
            node = self._load(ws, digest)
            rest = key.drop(pos)
            if isinstance(node, Leaf):
                return node.value if node.suffix == rest else None
            if not rest.startswith(node.prefix):
                return None
            pos += len(node.prefix)
            bit = key.bit(pos)
            pos += 1
            digest = node.child(bit)
        return None

    def _fork(self, ws: _WriteSet, prefix: Bits, bit: int, new: Node, old: Node) -> bytes:
        """Branch over `prefix` with `new` on the `bit` side and `old` opposite."""
        return self._stage(
            ws, make_branch(prefix, bit, self._stage(ws, new), self._stage(ws, old))
        )

    def _rehash(self, ws: _WriteSet, frames: List[Frame], digest: Optional[bytes]) -> Optional[bytes]:
        for branch, bit in reversed(frames):
            digest = self._stage(ws, branch.with_child(bit, digest))
        return digest

    def _insert(self, ws: _WriteSet, root: Optional[bytes], key: Bits, value: bytes) -> bytes:
        if root is None:
            return self._stage(ws, Leaf(key, value))

        frames: List[Frame] = []
        digest = root
        pos = 0
        while True:
            node = self._load(ws, digest)
            rest = key.drop(pos)

            if isinstance(node, Leaf):
                if node.suffix == rest:
                    if node.value == value:
                        return root
                    new = self._stage(ws, Leaf(rest, value))
                else:
                    c = node.suffix.common_prefix_len(rest)
                    new = self._fork(
                        ws,
                        rest.take(c),
                        rest.bit(c),
                        Leaf(rest.drop(c + 1), value),
                        Leaf(node.suffix.drop(c + 1), node.value),
                    )
                break

            c = node.prefix.common_prefix_len(rest)
            if c < len(node.prefix):
                # key leaves the branch's compressed run: split the run at c
                new = self._fork(
                    ws,
                    rest.take(c),
                    rest.bit(c),
                    Leaf(rest.drop(c + 1), value),
                    node.with_path(node.prefix.drop(c + 1)),
                )
                break

            pos += len(node.prefix)
            bit = key.bit(pos)
            pos += 1
            frames.append((node, bit))
            child = node.child(bit)
            if child is None:
                new = self._stage(ws, Leaf(key.drop(pos), value))
                break
            digest = child

        result = self._rehash(ws, frames, new)
        if result is None:
            raise InternalError("insert produced an empty root")
        return result

    def _remove(self, ws: _WriteSet, root: Optional[bytes], key: Bits) -> Optional[bytes]:
        frames: List[Frame] = []
        digest = root
        pos = 0
        while True:
            if digest is None:
                return root
            node = self._load(ws, digest)
            rest = key.drop(pos)
            if isinstance(node, Leaf):
                if node.suffix != rest:
                    return root
                break
            if not rest.startswith(node.prefix):
                return root
            pos += len(node.prefix)
            bit = key.bit(pos)
            pos += 1
            frames.append((node, bit))
            digest = node.child(bit)

        # `cur` replaces the subtree below the current frame; None = nothing left.
        cur: Optional[Node] = None
        for branch, bit in reversed(frames):
            other = branch.child(1 - bit)
            if cur is None:
                if other is None:
                    continue
                sibling = self._load(ws, other)
                cur = sibling.with_path(branch.prefix + Bits.from_bit(1 - bit) + sibling.path)
            elif other is None:
                cur = cur.with_path(branch.prefix + Bits.from_bit(bit) + cur.path)
            else:
                cur = branch.with_child(bit, self._stage(ws, cur))
        return self._stage(ws, cur) if cur is not None else None


__all__ = ["SparseMerkleTrie", "HEAD_KEY"]
