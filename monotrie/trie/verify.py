"""
monotrie • trie: proof verification

Pure, store-free verification of `Proof`s against a claimed root:

  • verify_proof(proof, root, key, value, hasher)          -> bool
  • verify_proof_checked(proof, root, key, value, hasher)  -> None (raises ProofError)

`value=None` claims that `key` is absent.

Procedure
---------
1. Walk the steps root → leaf, checking that each step's prefix equals the key
   bits at that position and that the step's routing bit is the key's next bit.
   Steps whose prefixes would run past the end of the key are rejected.
2. Build the terminal subtree digest for the remaining key bits:
     presence  → Leaf(remaining, value); the proof must carry no witness
     absence   → the witness (a Leaf with a different suffix of the same
                 length, or a Branch whose prefix diverges from the remaining
                 bits), or nothing for an empty slot
3. Fold the steps bottom-up with the node codec and compare to `root` in
   constant time. An empty result matches a None root or the empty digest.

Return value & errors
---------------------
`verify_proof` returns True/False. A key of the wrong length is a caller bug
and raises `KeyLengthMismatch` in both variants.
"""

from __future__ import annotations

import hmac
from typing import Optional

from ..errors import KeyLengthMismatch, ProofError
from . import codec
from .bits import Bits
from .node import Branch, Leaf, empty_digest, make_branch
from .proofs import Proof


def _ct_eq(a: bytes, b: bytes) -> bool:
    return hmac.compare_digest(a, b)


def _reconstruct_root(proof: Proof, key: bytes, value: Optional[bytes], hasher) -> Optional[bytes]:
    """Digest the proof commits to, or None for the empty tree. Raises ProofError."""
    n = hasher.digest_size
    bits = Bits.from_bytes(key)
    pos = 0

    for i, step in enumerate(proof.steps):
        if pos + len(step.prefix) + 1 > len(bits):
            raise ProofError("step overruns key", index=i)
        if bits.drop(pos).take(len(step.prefix)) != step.prefix:
            raise ProofError("step prefix does not match key", index=i)
        pos += len(step.prefix)
        if bits.bit(pos) != step.bit:
            raise ProofError("step bit does not match key", index=i)
        pos += 1
        if step.sibling is not None and len(step.sibling) != n:
            raise ProofError("bad sibling digest size", index=i)

    rest = bits.drop(pos)
    witness = proof.witness
    current: Optional[bytes]

    if value is not None:
        if witness is not None:
            raise ProofError("inclusion proof carries a witness")
        if len(value) != n:
            raise ProofError("value is not a digest", expected=n, got=len(value))
        current = codec.node_digest(Leaf(rest, bytes(value)), hasher)
    elif witness is None:
        current = None
    elif isinstance(witness, Leaf):
        if len(witness.suffix) != len(rest):
            raise ProofError("witness leaf has wrong suffix length")
        if witness.suffix == rest:
            raise ProofError("witness leaf matches key")
        current = codec.node_digest(witness, hasher)
    elif isinstance(witness, Branch):
        if len(witness.prefix) >= len(rest):
            raise ProofError("witness branch prefix too long")
        if rest.startswith(witness.prefix):
            raise ProofError("witness branch covers key")
        current = codec.node_digest(witness, hasher)
    else:
        raise ProofError("unknown witness type")

    for step in reversed(proof.steps):
        if current is None and step.sibling is None:
            raise ProofError("step has no children")
        current = codec.node_digest(make_branch(step.prefix, step.bit, current, step.sibling), hasher)
    return current


def verify_proof_checked(
    proof: Proof,
    root: Optional[bytes],
    key: bytes,
    value: Optional[bytes],
    hasher,
) -> None:
    """Like `verify_proof` but raises `ProofError` describing the first failure."""
    if len(key) != hasher.digest_size:
        raise KeyLengthMismatch(hasher.digest_size, len(key))
    got = _reconstruct_root(proof, bytes(key), value, hasher)
    if got is None:
        if root is None or _ct_eq(root, empty_digest(hasher)):
            return
        raise ProofError("proof commits to the empty tree")
    if root is None or not _ct_eq(got, root):
        raise ProofError("root mismatch")


def verify_proof(
    proof: Proof,
    root: Optional[bytes],
    key: bytes,
    value: Optional[bytes],
    hasher,
) -> bool:
    """True iff `proof` shows `key ↦ value` (or absence for None) under `root`."""
    try:
        verify_proof_checked(proof, root, key, value, hasher)
    except ProofError:
        return False
    return True


__all__ = ["verify_proof", "verify_proof_checked"]
