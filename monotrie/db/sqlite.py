from __future__ import annotations

"""
SQLite node store
=================

Embedded `KV` backend on the stdlib ``sqlite3`` module. One table holds every
node, keyed by digest:

    nodes(digest BLOB PRIMARY KEY, data BLOB NOT NULL) WITHOUT ROWID

The reserved head-root key lives in the same table.

Write batches buffer their operations in memory and flush them inside a single
``BEGIN IMMEDIATE … COMMIT`` on exit, so the write lock is only held for the
flush. Any failure during the flush, a failed COMMIT included, issues
``ROLLBACK`` while the transaction is still open; readers (WAL mode) never see
a partial mutation and the connection is left usable.

Any `sqlite3.Error` surfaces as `StoreFailure` with the original exception
attached as the cause.
"""

import os
import sqlite3
from contextlib import contextmanager
from typing import Iterator, List, Mapping, Optional, Tuple, Union

from ..errors import StoreFailure
from .kv import KV, Batch

PathLike = Union[str, "os.PathLike[str]"]

# Applied in order on every new connection.
DEFAULT_PRAGMAS: Tuple[Tuple[str, Union[str, int]], ...] = (
    ("journal_mode", "WAL"),
    ("synchronous", "NORMAL"),
    ("temp_store", "MEMORY"),
    ("mmap_size", 128 * 1024 * 1024),
    ("cache_size", -32 * 1024),  # KiB
)

_SCHEMA = (
    "CREATE TABLE IF NOT EXISTS nodes ("
    " digest BLOB PRIMARY KEY,"
    " data BLOB NOT NULL"
    ") WITHOUT ROWID"
)
_SELECT = "SELECT data FROM nodes WHERE digest = ?"
_EXISTS = "SELECT 1 FROM nodes WHERE digest = ? LIMIT 1"
_UPSERT = "INSERT OR REPLACE INTO nodes(digest, data) VALUES (?, ?)"
_DELETE = "DELETE FROM nodes WHERE digest = ?"


@contextmanager
def _sqlite_op(op: str) -> Iterator[None]:
    try:
        yield
    except sqlite3.Error as e:
        raise StoreFailure(f"sqlite {op} failed: {e}", backend="sqlite", op=op).with_cause(e) from e


class SQLiteBatch(Batch):
    """Buffered write batch; see module docstring for the flush protocol."""

    __slots__ = ("_conn", "_ops", "_open")

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        self._ops: List[Tuple[str, tuple]] = []
        self._open = False

    def __enter__(self) -> "SQLiteBatch":
        if self._open:
            raise RuntimeError("batch already open (nested batches not supported)")
        self._open = True
        return self

    def put(self, key: bytes, value: bytes) -> None:
        if not self._open:
            raise RuntimeError("batch not open")
        self._ops.append((_UPSERT, (bytes(key), bytes(value))))

    def delete(self, key: bytes) -> None:
        if not self._open:
            raise RuntimeError("batch not open")
        self._ops.append((_DELETE, (bytes(key),)))

    def commit(self) -> None:
        if not self._open:
            return
        ops = self._ops
        self._reset()
        if not ops:
            return
        with _sqlite_op("commit"):
            self._conn.execute("BEGIN IMMEDIATE")
            try:
                for sql, params in ops:
                    self._conn.execute(sql, params)
                self._conn.execute("COMMIT")
            except BaseException:
                # a failed COMMIT may or may not have ended the transaction
                if self._conn.in_transaction:
                    self._conn.execute("ROLLBACK")
                raise

    def rollback(self) -> None:
        self._reset()

    def _reset(self) -> None:
        self._ops = []
        self._open = False

    def __exit__(self, exc_type, exc, tb) -> Optional[bool]:
        if exc_type is None:
            self.commit()
        else:
            self.rollback()
        return None


def _connect(path: PathLike, pragmas: Optional[Mapping[str, Union[str, int]]], create: bool) -> sqlite3.Connection:
    target = os.fspath(path)
    if target != ":memory:" and not create and not os.path.exists(target):
        raise FileNotFoundError(f"SQLite node store not found at {target}")

    settings = dict(DEFAULT_PRAGMAS)
    settings.update(pragmas or {})
    with _sqlite_op("open"):
        # autocommit: batches issue their own BEGIN/COMMIT
        conn = sqlite3.connect(target, isolation_level=None, check_same_thread=False)
        for name, value in settings.items():
            conn.execute(f"PRAGMA {name}={value}")
        conn.execute(_SCHEMA)
    return conn


class SQLiteKV(KV):
    """
    SQLite-backed node store. Reads may come from any thread; write batches
    must be serialized by the caller, like every other mutation of the trie.
    """

    __slots__ = ("_conn",)

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def _one(self, sql: str, key: bytes):
        with _sqlite_op("get"):
            return self._conn.execute(sql, (bytes(key),)).fetchone()

    # --- ReadOnlyKV ---

    def get(self, key: bytes) -> Optional[bytes]:
        row = self._one(_SELECT, key)
        return bytes(row[0]) if row is not None else None

    def has(self, key: bytes) -> bool:
        return self._one(_EXISTS, key) is not None

    def close(self) -> None:
        with _sqlite_op("close"):
            self._conn.close()

    # --- KV ---

    def put(self, key: bytes, value: bytes) -> None:
        with _sqlite_op("put"):
            self._conn.execute(_UPSERT, (bytes(key), bytes(value)))

    def delete(self, key: bytes) -> None:
        with _sqlite_op("delete"):
            self._conn.execute(_DELETE, (bytes(key),))

    def batch(self) -> Batch:
        return SQLiteBatch(self._conn)


def open_sqlite_kv(
    path: PathLike,
    *,
    pragmas: Optional[Mapping[str, Union[str, int]]] = None,
    create: bool = True,
) -> SQLiteKV:
    """
    Open (or create) a SQLite node store at `path`; ``":memory:"`` gives an
    ephemeral one. With `create=False` a missing file raises FileNotFoundError.
    """
    return SQLiteKV(_connect(path, pragmas, create))


__all__ = ["SQLiteKV", "SQLiteBatch", "open_sqlite_kv", "DEFAULT_PRAGMAS"]
