from __future__ import annotations

import threading

import pytest

from monotrie.db.cache import NodeCache


def test_lru_eviction_order():
    c = NodeCache(max_nodes=2)
    c.put(b"a", 1)
    c.put(b"b", 2)
    assert c.get(b"a") == 1  # a becomes most recent
    c.put(b"c", 3)
    assert b"b" not in c
    assert c.get(b"a") == 1
    assert c.get(b"c") == 3
    assert c.stats().evictions == 1


def test_stats_track_hits_and_misses():
    c = NodeCache(max_nodes=4)
    c.put(b"a", "node")
    c.get(b"a")
    c.get(b"zz")
    s = c.stats()
    assert (s.hits, s.misses, s.puts, s.items_current) == (1, 1, 1, 1)
    assert c.stats_dict()["hit_ratio"] == pytest.approx(0.5)


def test_reput_does_not_count_or_grow():
    c = NodeCache(max_nodes=4)
    c.put(b"a", 1)
    c.put(b"a", 1)
    assert len(c) == 1
    assert c.stats().puts == 1


def test_zero_capacity_disables():
    c = NodeCache(max_nodes=0)
    assert not c.enabled
    c.put(b"a", 1)
    assert c.get(b"a") is None
    assert len(c) == 0


def test_negative_capacity_rejected():
    with pytest.raises(ValueError):
        NodeCache(max_nodes=-1)


def test_concurrent_puts_respect_capacity():
    c = NodeCache(max_nodes=50)

    def worker(tag: int) -> None:
        for i in range(200):
            key = bytes([tag, i % 256])
            c.put(key, i)
            c.get(key)

    threads = [threading.Thread(target=worker, args=(t,)) for t in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert len(c) == 50
