from __future__ import annotations

"""
RocksDB node store (optional)
=============================

`KV` backend on python-rocksdb, installed with ``pip install monotrie[rocksdb]``.
The binding is imported when a store is opened; without it `open_rocks_kv`
raises `DependencyMissing` instead of picking another backend.

Batches collect into a ``rocksdb.WriteBatch`` and are applied with a single
``db.write``, which RocksDB makes atomic. Options favour point lookups: a Bloom
filter per SST block and an LRU block cache sized for hot upper trie levels.
"""

import os
from contextlib import contextmanager
from importlib import import_module
from typing import Any, Iterator, Optional, Union

from ..errors import DependencyMissing, StoreFailure
from .kv import KV, Batch

_INSTALL_HINT = "pip install 'monotrie[rocksdb]' (needs librocksdb)"
DEFAULT_BLOCK_CACHE = 64 * 1024 * 1024


def _load_rocksdb() -> Any:
    try:
        return import_module("rocksdb")
    except ImportError as e:
        raise DependencyMissing("python-rocksdb", _INSTALL_HINT).with_cause(e) from e


@contextmanager
def _rocks_op(op: str, **ctx: Any) -> Iterator[None]:
    # python-rocksdb raises plain Exception subclasses (rocksdb.errors.*)
    try:
        yield
    except Exception as e:
        raise StoreFailure(f"rocksdb {op} failed: {e}", backend="rocksdb", op=op, **ctx).with_cause(e) from e


class RocksBatch(Batch):
    __slots__ = ("_kv", "_wb", "_open")

    def __init__(self, kv: "RocksKV") -> None:
        self._kv = kv
        self._wb = None
        self._open = False

    def __enter__(self) -> "RocksBatch":
        if self._open:
            raise RuntimeError("batch already open (nested batches not supported)")
        self._wb = self._kv._rocksdb.WriteBatch()
        self._open = True
        return self

    def put(self, key: bytes, value: bytes) -> None:
        if not self._open:
            raise RuntimeError("batch not open")
        self._wb.put(bytes(key), bytes(value))

    def delete(self, key: bytes) -> None:
        if not self._open:
            raise RuntimeError("batch not open")
        self._wb.delete(bytes(key))

    def commit(self) -> None:
        if not self._open:
            return
        wb, self._wb, self._open = self._wb, None, False
        with _rocks_op("write", ops=wb.count()):
            self._kv._db.write(wb)

    def rollback(self) -> None:
        self._wb = None
        self._open = False

    def __exit__(self, exc_type, exc, tb) -> Optional[bool]:
        if exc_type is None:
            self.commit()
        else:
            self.rollback()
        return None


class RocksKV(KV):
    """RocksDB-backed node store."""

    __slots__ = ("_rocksdb", "_db", "path")

    def __init__(self, rocksdb: Any, db: Any, path: str) -> None:
        self._rocksdb = rocksdb
        self._db = db
        self.path = path

    # --- ReadOnlyKV ---

    def get(self, key: bytes) -> Optional[bytes]:
        with _rocks_op("get"):
            v = self._db.get(bytes(key))
        return None if v is None else bytes(v)

    def has(self, key: bytes) -> bool:
        return self.get(key) is not None

    def close(self) -> None:
        # the binding releases the handle when the DB object is collected
        self._db = None

    # --- KV ---

    def put(self, key: bytes, value: bytes) -> None:
        with _rocks_op("put"):
            self._db.put(bytes(key), bytes(value))

    def delete(self, key: bytes) -> None:
        with _rocks_op("delete"):
            self._db.delete(bytes(key))

    def batch(self) -> Batch:
        return RocksBatch(self)


def node_store_options(rocksdb: Any, *, create: bool = True, block_cache: int = DEFAULT_BLOCK_CACHE) -> Any:
    """Options tuned for digest-keyed point reads."""
    opts = rocksdb.Options()
    opts.create_if_missing = create
    opts.max_open_files = 512
    opts.compression = rocksdb.CompressionType.lz4_compression
    opts.table_factory = rocksdb.BlockBasedTableFactory(
        block_cache=rocksdb.LRUCache(block_cache),
        filter_policy=rocksdb.BloomFilterPolicy(10),
        whole_key_filtering=True,
    )
    return opts


def open_rocks_kv(
    path: Union[str, "os.PathLike[str]"],
    *,
    create: bool = True,
    options: Optional[Any] = None,
) -> RocksKV:
    """
    Open a RocksDB node store in directory `path`.

    Raises DependencyMissing without python-rocksdb, StoreFailure (not
    retryable) when the database cannot be opened.
    """
    rocksdb = _load_rocksdb()
    db_path = os.path.abspath(os.fspath(path))
    if create:
        os.makedirs(db_path, exist_ok=True)
    opts = options or node_store_options(rocksdb, create=create)
    try:
        db = rocksdb.DB(db_path, opts)
    except Exception as e:
        raise StoreFailure(
            f"cannot open RocksDB at {db_path}: {e}", retryable=False, backend="rocksdb"
        ).with_cause(e) from e
    return RocksKV(rocksdb, db, db_path)


__all__ = ["RocksKV", "RocksBatch", "open_rocks_kv", "node_store_options"]
