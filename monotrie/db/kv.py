from __future__ import annotations

"""
Node store interface
====================

The trie persists nodes as ``digest -> encode(node)`` through any object that
satisfies `KV`. It needs point reads and an atomic write batch; it never
deletes nodes (old roots stay readable, there is no garbage collection). The
only key the engine ever deletes is the reserved head-root key.

    with kv.batch() as b:        # applied together on clean exit,
        b.put(digest_a, node_a)  # discarded if the block raises
        b.put(digest_b, node_b)

Backends: `monotrie.db.memory`, `monotrie.db.sqlite`, `monotrie.db.rocksdb`.
These are Protocols (PEP 544); any duck-typed object with the same methods
works as a store.
"""

from typing import Iterable, Optional, Protocol, Tuple, runtime_checkable


@runtime_checkable
class ReadOnlyKV(Protocol):
    def get(self, key: bytes) -> Optional[bytes]:
        """Stored bytes for `key`, or None."""
        ...

    def has(self, key: bytes) -> bool: ...

    def close(self) -> None: ...


@runtime_checkable
class Batch(Protocol):
    """
    Write batch used as a context manager. Exiting without an exception
    commits every staged write atomically; an escaping exception rolls back.
    `put`/`delete` outside the ``with`` block raise RuntimeError.
    """

    def put(self, key: bytes, value: bytes) -> None: ...
    def delete(self, key: bytes) -> None: ...
    def commit(self) -> None: ...
    def rollback(self) -> None: ...

    def __enter__(self) -> "Batch": ...
    def __exit__(self, exc_type, exc, tb) -> Optional[bool]: ...


@runtime_checkable
class KV(ReadOnlyKV, Protocol):
    def put(self, key: bytes, value: bytes) -> None:
        """Unbatched write; overwrites."""
        ...

    def delete(self, key: bytes) -> None:
        """Unbatched delete; missing keys are ignored."""
        ...

    def batch(self) -> Batch: ...


def put_many(kv: KV, items: Iterable[Tuple[bytes, bytes]]) -> int:
    """Write `items` in one batch; returns how many were written."""
    n = 0
    with kv.batch() as b:
        for k, v in items:
            b.put(k, v)
            n += 1
    return n


def delete_many(kv: KV, keys: Iterable[bytes]) -> None:
    with kv.batch() as b:
        for k in keys:
            b.delete(k)


__all__ = ["ReadOnlyKV", "KV", "Batch", "put_many", "delete_many"]
