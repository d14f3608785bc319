"""
monotrie • trie: Merkle proofs (model, builder, CBOR)

A proof for key K against root R is the list of branches on K's path, ordered
**root → leaf**, plus an optional witness node where the descent stopped:

    steps[i] = ProofStep(prefix, bit, sibling)
        prefix   the branch's compressed prefix (must match K at that point)
        bit      the routing bit K takes after the prefix
        sibling  digest of the other child, or None if absent

    witness
        None     inclusion proof (terminal leaf is rebuilt from K and the value),
                 or absence at an empty slot / empty tree
        Leaf     absence: K reached a leaf with a different suffix
        Branch   absence: K diverges inside this branch's prefix

Verification lives in `monotrie.trie.verify`; it never touches a store.

Serialization
-------------
`Proof.to_cbor()` emits canonical CBOR (cbor2):

    {"v": 1,
     "steps": [[prefix_len, packed_prefix, bit, sibling|null], ...],
     "witness": encoded_node|null}
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Tuple

import cbor2

from ..errors import CorruptNode, ProofError
from . import codec
from .bits import Bits
from .node import Branch, Leaf, Node

PROOF_FORMAT_VERSION = 1


@dataclass(frozen=True)
class ProofStep:
    prefix: Bits
    bit: int
    sibling: Optional[bytes]


@dataclass(frozen=True)
class Proof:
    steps: Tuple[ProofStep, ...] = ()
    witness: Optional[Node] = None

    @property
    def depth(self) -> int:
        return len(self.steps)

    # ------------------------------------------------------------------ #
    # CBOR
    # ------------------------------------------------------------------ #

    def to_obj(self) -> dict:
        return {
            "v": PROOF_FORMAT_VERSION,
            "steps": [
                [len(s.prefix), s.prefix.pack(), s.bit, s.sibling] for s in self.steps
            ],
            "witness": codec.encode(self.witness) if self.witness is not None else None,
        }

    def to_cbor(self) -> bytes:
        return cbor2.dumps(self.to_obj(), canonical=True)

    @classmethod
    def from_obj(cls, obj: Any, digest_size: int) -> "Proof":
        if not isinstance(obj, dict):
            raise ProofError("proof must be a map")
        if obj.get("v") != PROOF_FORMAT_VERSION:
            raise ProofError("unsupported proof version", version=obj.get("v"))
        raw_steps = obj.get("steps")
        if not isinstance(raw_steps, list):
            raise ProofError("proof steps must be a list")

        steps: List[ProofStep] = []
        for i, raw in enumerate(raw_steps):
            if not (isinstance(raw, list) and len(raw) == 4):
                raise ProofError("malformed proof step", index=i)
            n, packed, bit, sibling = raw
            if not (isinstance(n, int) and isinstance(packed, bytes)) or bit not in (0, 1):
                raise ProofError("malformed proof step", index=i)
            if sibling is not None and not (isinstance(sibling, bytes) and len(sibling) == digest_size):
                raise ProofError("bad sibling digest", index=i)
            try:
                prefix = Bits.unpack(packed, n)
            except ValueError as e:
                raise ProofError(f"bad step prefix: {e}", index=i) from e
            steps.append(ProofStep(prefix, bit, sibling))

        witness: Optional[Node] = None
        raw_w = obj.get("witness")
        if raw_w is not None:
            if not isinstance(raw_w, bytes):
                raise ProofError("witness must be bytes")
            try:
                witness = codec.decode(raw_w, digest_size)
            except CorruptNode as e:
                raise ProofError(f"bad witness: {e.message}").with_cause(e) from e
        return cls(tuple(steps), witness)

    @classmethod
    def from_cbor(cls, data: bytes, digest_size: int = 32) -> "Proof":
        try:
            obj = cbor2.loads(data)
        except (cbor2.CBORDecodeError, ValueError, TypeError) as e:
            raise ProofError(f"invalid CBOR: {e}").with_cause(e) from e
        return cls.from_obj(obj, digest_size)


# --------------------------------------------------------------------------- #
# Builder
# --------------------------------------------------------------------------- #


def build_proof(load: Callable[[bytes], Node], root: Optional[bytes], key: Bits) -> Proof:
    """
    Replay the lookup descent for `key` from `root`, recording every branch.

    `load(digest) -> Node` resolves child digests (the engine passes its
    cache-aware loader).
    """
    steps: List[ProofStep] = []
    digest = root
    pos = 0
    while digest is not None:
        node = load(digest)
        rest = key.drop(pos)
        if isinstance(node, Leaf):
            witness = None if node.suffix == rest else node
            return Proof(tuple(steps), witness)
        if not rest.startswith(node.prefix):
            return Proof(tuple(steps), node)
        pos += len(node.prefix)
        bit = key.bit(pos)
        pos += 1
        steps.append(ProofStep(node.prefix, bit, node.child(1 - bit)))
        digest = node.child(bit)
    return Proof(tuple(steps), None)


__all__ = ["PROOF_FORMAT_VERSION", "ProofStep", "Proof", "build_proof"]
