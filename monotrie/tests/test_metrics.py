from __future__ import annotations

import pytest
from prometheus_client import CollectorRegistry

import monotrie
from monotrie.metrics import TrieMetrics


def test_time_op_labels_outcome(metrics, registry):
    with metrics.time_op("get"):
        pass
    with pytest.raises(KeyError):
        with metrics.time_op("get"):
            raise KeyError("x")
    assert registry.get_sample_value("monotrie_ops_total", {"op": "get", "outcome": "ok"}) == 1.0
    assert registry.get_sample_value("monotrie_ops_total", {"op": "get", "outcome": "KeyError"}) == 1.0
    assert registry.get_sample_value("monotrie_op_duration_seconds_count", {"op": "get"}) == 2.0


def test_node_notes(metrics, registry):
    metrics.note_read("cache")
    metrics.note_read("store")
    metrics.note_read("store")
    metrics.note_writes(0)
    metrics.note_writes(4)
    assert registry.get_sample_value("monotrie_node_reads_total", {"source": "store"}) == 2.0
    assert registry.get_sample_value("monotrie_node_writes_total") == 4.0


def test_render_latest(metrics):
    metrics.note_verify(True)
    text = metrics.render_latest().decode()
    assert 'monotrie_proof_verify_total{outcome="ok"} 1.0' in text


def test_separate_registries_do_not_clash(registry):
    # same metric names on two registries
    a = TrieMetrics(registry=registry)
    b = TrieMetrics(registry=CollectorRegistry())
    a.note_writes(1)
    assert b.registry.get_sample_value("monotrie_node_writes_total") == 0.0


def test_package_surface():
    assert monotrie.get_version() == monotrie.__version__
    assert monotrie.SparseMerkleTrie.__name__ == "SparseMerkleTrie"
    assert callable(monotrie.open_trie)
    with pytest.raises(AttributeError):
        monotrie.no_such_thing
