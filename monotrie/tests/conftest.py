"""
Shared fixtures for monotrie unit tests:
- sha3 hasher (32-byte digests) and an in-memory store
- a trie wired to an isolated Prometheus registry so counters start at zero
- small key helpers for building keys with chosen leading bits
- a SQLite connection wrapper whose COMMIT can be made to fail
"""
from __future__ import annotations

import sqlite3

import pytest
from prometheus_client import CollectorRegistry

from monotrie.db.cache import NodeCache
from monotrie.db.memory import MemoryKV
from monotrie.metrics import TrieMetrics
from monotrie.trie.tree import SparseMerkleTrie
from monotrie.utils.hash import Sha3Hasher


def key_from_bits(bits: str, size: int = 32) -> bytes:
    """Key whose leading bits are `bits` and the rest zero."""
    padded = bits.ljust(8 * size, "0")
    return int(padded, 2).to_bytes(size, "big")


def val(i: int, size: int = 32) -> bytes:
    return i.to_bytes(size, "big")


class CommitFails:
    """sqlite3 connection stand-in whose COMMIT fails while `fail` is set."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn
        self.fail = True

    def execute(self, sql, *params):
        if self.fail and sql == "COMMIT":
            raise sqlite3.OperationalError("database is locked")
        return self.conn.execute(sql, *params)

    def __getattr__(self, name):
        return getattr(self.conn, name)


@pytest.fixture
def hasher():
    return Sha3Hasher()


@pytest.fixture
def kv():
    return MemoryKV()


@pytest.fixture
def registry():
    return CollectorRegistry()


@pytest.fixture
def metrics(registry):
    return TrieMetrics(registry=registry)


@pytest.fixture
def trie(kv, hasher, metrics):
    return SparseMerkleTrie(kv, hasher, metrics=metrics)


@pytest.fixture
def cached_trie(kv, hasher, metrics):
    return SparseMerkleTrie(kv, hasher, cache=NodeCache(64), metrics=metrics)
