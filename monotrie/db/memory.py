from __future__ import annotations

"""
In-memory KV store
==================

Dict-backed implementation of the `KV` protocol, used by tests and by callers
that only need an ephemeral trie (``open_kv("memory://")``).

Batches stage their operations and apply them under a lock on commit, so a
batch that is rolled back (or whose block raises) leaves the store untouched.
"""

import threading
from typing import Dict, List, Optional, Tuple

from .kv import KV, Batch

_PUT = 0
_DEL = 1


class MemoryBatch(Batch):
    __slots__ = ("_kv", "_ops", "_open")

    def __init__(self, kv: "MemoryKV") -> None:
        self._kv = kv
        self._ops: List[Tuple[int, bytes, Optional[bytes]]] = []
        self._open = False

    def __enter__(self) -> "MemoryBatch":
        if self._open:
            raise RuntimeError("batch already open (nested batches not supported)")
        self._open = True
        return self

    def put(self, key: bytes, value: bytes) -> None:
        if not self._open:
            raise RuntimeError("batch not open")
        self._ops.append((_PUT, bytes(key), bytes(value)))

    def delete(self, key: bytes) -> None:
        if not self._open:
            raise RuntimeError("batch not open")
        self._ops.append((_DEL, bytes(key), None))

    def commit(self) -> None:
        if not self._open:
            return
        self._kv._apply(self._ops)
        self._ops = []
        self._open = False

    def rollback(self) -> None:
        self._ops = []
        self._open = False

    def __exit__(self, exc_type, exc, tb) -> Optional[bool]:
        try:
            if exc_type is None:
                self.commit()
            else:
                self.rollback()
        finally:
            self._open = False
        return None


class MemoryKV(KV):
    """Thread-safe dict store. Values are copied to immutable bytes on write."""

    def __init__(self) -> None:
        self._data: Dict[bytes, bytes] = {}
        self._lock = threading.Lock()

    # --- ReadOnlyKV ---

    def get(self, key: bytes) -> Optional[bytes]:
        with self._lock:
            return self._data.get(bytes(key))

    def has(self, key: bytes) -> bool:
        with self._lock:
            return bytes(key) in self._data

    def close(self) -> None:
        return None

    # --- KV ---

    def put(self, key: bytes, value: bytes) -> None:
        with self._lock:
            self._data[bytes(key)] = bytes(value)

    def delete(self, key: bytes) -> None:
        with self._lock:
            self._data.pop(bytes(key), None)

    def batch(self) -> Batch:
        return MemoryBatch(self)

    def _apply(self, ops: List[Tuple[int, bytes, Optional[bytes]]]) -> None:
        with self._lock:
            for op, k, v in ops:
                if op == _PUT:
                    self._data[k] = v  # type: ignore[assignment]
                else:
                    self._data.pop(k, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)


__all__ = ["MemoryKV", "MemoryBatch"]
