"""
monotrie.trie
=============

Path-compressed sparse Merkle trie:

- bits:   `Bits`, the MSB-first bit-path value type
- node:   `Leaf` / `Branch` and the empty-subtree commitment
- codec:  canonical node encoding (root digests depend on it)
- tree:   `SparseMerkleTrie`, the engine
- proofs: `Proof` model, builder and CBOR form
- verify: store-free proof verification
"""

from __future__ import annotations

from .bits import Bits
from .node import Branch, Leaf, Node, empty_digest
from .proofs import Proof, ProofStep
from .tree import HEAD_KEY, SparseMerkleTrie
from .verify import verify_proof, verify_proof_checked

__all__ = [
    "Bits",
    "Leaf",
    "Branch",
    "Node",
    "empty_digest",
    "Proof",
    "ProofStep",
    "SparseMerkleTrie",
    "HEAD_KEY",
    "verify_proof",
    "verify_proof_checked",
]
