from __future__ import annotations

"""
monotrie.db
===========

Thin facade for the key–value backends the trie persists nodes through.

Backends
--------
- Memory (dict, always available)
- SQLite (stdlib, always available)
- RocksDB (optional extra; python-rocksdb)

URIs
----
- "memory://"                      → in-process dict store
- "sqlite:///path/to/trie.db"      → SQLite file
- "sqlite:///:memory:", "sqlite:///" → in-memory SQLite (tests)
- "rocksdb:///path/to/dir"         → RocksDB directory (requires monotrie[rocksdb])
- Bare paths ending in ".db"       → SQLite file

Example
-------
>>> from monotrie.db import open_kv
>>> kv = open_kv("sqlite:///:memory:")
>>> with kv.batch() as b:
...     b.put(b"k", b"hello")
>>> kv.get(b"k")
b'hello'
"""

from typing import Tuple

from ..errors import ConfigError
from .cache import NodeCache
from .kv import KV, Batch, ReadOnlyKV, delete_many, put_many
from .memory import MemoryKV
from .sqlite import SQLiteKV, open_sqlite_kv


def _parse_uri(uri: str) -> Tuple[str, str]:
    """
    Parse a DB URI into (backend, path_or_spec).

    Returns:
        ("memory", "") or ("sqlite", path) or ("rocksdb", path)
    """
    u = (uri or "").strip()
    if u.startswith("memory://"):
        return ("memory", "")
    if u.startswith("sqlite:///"):
        return ("sqlite", u[len("sqlite:///"):])
    if u.startswith("rocksdb:///"):
        return ("rocksdb", u[len("rocksdb:///"):])
    if u.endswith(".db"):
        return ("sqlite", u)
    raise ConfigError(f"unsupported DB URI: {uri!r}", uri=uri)


def _abs_path(spec: str) -> str:
    # "sqlite:///tmp/x.db" carries "tmp/x.db" after the scheme; restore the root.
    if spec == ":memory:" or spec.startswith(("/", ".")):
        return spec
    return "/" + spec


def open_kv(uri: str, create: bool = True) -> KV:
    """
    Open a KV database by URI. See module docstring for supported forms.

    Raises:
        ConfigError for unsupported URIs.
        DependencyMissing when RocksDB is requested without python-rocksdb.
    """
    backend, spec = _parse_uri(uri)

    if backend == "memory":
        return MemoryKV()

    if backend == "sqlite":
        if not spec:
            return open_sqlite_kv(":memory:", create=create)
        if uri.strip().startswith("sqlite:///"):
            spec = _abs_path(spec)
        return open_sqlite_kv(spec, create=create)

    if backend == "rocksdb":
        from .rocksdb import open_rocks_kv

        if not spec:
            raise ConfigError("rocksdb URI requires a path", uri=uri)
        return open_rocks_kv(_abs_path(spec), create=create)

    raise ConfigError(f"unsupported DB backend in URI: {uri!r}", uri=uri)


__all__ = [
    "KV",
    "ReadOnlyKV",
    "Batch",
    "MemoryKV",
    "SQLiteKV",
    "NodeCache",
    "open_kv",
    "open_sqlite_kv",
    "put_many",
    "delete_many",
]
