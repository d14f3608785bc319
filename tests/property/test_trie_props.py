# -*- coding: utf-8 -*-
"""
Property tests for SparseMerkleTrie.

Laws checked against a plain dict model:
- the root depends only on the key/value set, not on insertion order
- get() agrees with the model after any sequence of inserts and removes
- removing keys yields the root of the tree built without them
- proofs verify for the truth (present value or absence) and nothing else
"""
from __future__ import annotations

from typing import Dict, Optional

from hypothesis import assume
from prometheus_client import CollectorRegistry

from monotrie.db.memory import MemoryKV
from monotrie.metrics import TrieMetrics
from monotrie.trie.proofs import Proof
from monotrie.trie.tree import SparseMerkleTrie
from monotrie.utils.hash import Sha3Hasher

from . import given, st, trie_keys, trie_maps, trie_values

_METRICS = TrieMetrics(registry=CollectorRegistry())


def _fresh() -> SparseMerkleTrie:
    return SparseMerkleTrie(MemoryKV(), Sha3Hasher(), metrics=_METRICS)


def _build(t: SparseMerkleTrie, items) -> Optional[bytes]:
    root = None
    for k, v in items:
        root = t.insert(root, k, v)
    return root


@given(trie_maps(), st.randoms(use_true_random=False))
def test_root_is_order_independent(model: Dict[bytes, bytes], rnd):
    t = _fresh()
    items = list(model.items())
    shuffled = list(items)
    rnd.shuffle(shuffled)
    assert _build(t, items) == _build(t, shuffled)
    assert t.insert_many(None, shuffled) == _build(t, items)


@given(
    st.lists(
        st.tuples(st.booleans(), trie_keys(), trie_values()),
        max_size=40,
    )
)
def test_matches_dict_model(ops):
    t = _fresh()
    model: Dict[bytes, bytes] = {}
    root = None
    for is_insert, k, v in ops:
        if is_insert:
            root = t.insert(root, k, v)
            model[k] = v
        else:
            root = t.remove(root, k)
            model.pop(k, None)

    for k, v in model.items():
        assert t.get(root, k) == v
    for _, k, _ in ops:
        assert t.get(root, k) == model.get(k)
    assert list(t.iter_items(root)) == sorted(model.items())
    assert (root is None) == (not model)


@given(trie_maps(), st.data())
def test_remove_equals_rebuild_without(model: Dict[bytes, bytes], data):
    t = _fresh()
    full = t.insert_many(None, model.items())
    drop = data.draw(st.sets(st.sampled_from(sorted(model)) if model else st.nothing()))
    kept = {k: v for k, v in model.items() if k not in drop}

    after = t.remove_many(full, drop)
    assert after == t.insert_many(None, kept.items())

    one_by_one = full
    for k in sorted(drop):
        one_by_one = t.remove(one_by_one, k)
    assert one_by_one == after


@given(trie_maps(max_size=16), trie_keys(), trie_values())
def test_proofs_sound_and_complete(model: Dict[bytes, bytes], query: bytes, other: bytes):
    t = _fresh()
    root = t.insert_many(None, model.items())

    for k, v in list(model.items()) + [(query, model.get(query))]:
        p = t.prove(root, k)
        assert t.verify(p, root, k, v)
        assert Proof.from_cbor(p.to_cbor()) == p
        if v is not None:
            assert not t.verify(p, root, k, None)
        if v != other:
            assert not t.verify(p, root, k, other)


@given(trie_maps(max_size=8), trie_keys(), trie_values())
def test_proof_does_not_transfer_between_roots(model, key, value):
    assume(model.get(key) != value)
    t = _fresh()
    before = t.insert_many(None, model.items())
    after = t.insert(before, key, value)
    p = t.prove(after, key)
    assert t.verify(p, after, key, value)
    assert not t.verify(p, before, key, value)
