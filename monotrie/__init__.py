"""
monotrie
========

Authenticated key-value index: a path-compressed sparse Merkle trie over a
fixed-width key space, generic over the hash function and the backing KV store.

    from monotrie import SparseMerkleTrie, open_kv, get_hasher

    trie = SparseMerkleTrie(open_kv("memory://"), get_hasher("blake3"))
    root = trie.insert(None, key, value)
    proof = trie.prove(root, key)
    assert trie.verify(proof, root, key, value)

Heavier submodules are imported on first attribute access so that
`import monotrie` stays cheap.
"""

from __future__ import annotations

from importlib import import_module
from typing import Any, Dict

from .version import __version__

_LAZY: Dict[str, str] = {
    "SparseMerkleTrie": "monotrie.trie.tree",
    "Proof": "monotrie.trie.proofs",
    "verify_proof": "monotrie.trie.verify",
    "open_kv": "monotrie.db",
    "get_hasher": "monotrie.utils.hash",
    "load_config": "monotrie.config",
    "open_trie": "monotrie.config",
}


def __getattr__(name: str) -> Any:
    mod_name = _LAZY.get(name)
    if mod_name is None:
        raise AttributeError(f"module 'monotrie' has no attribute '{name}'")
    value = getattr(import_module(mod_name), name)
    globals()[name] = value
    return value


def get_version() -> str:
    """Return the semantic version string for this package."""
    return __version__


__all__ = ["__version__", "get_version", *_LAZY]
