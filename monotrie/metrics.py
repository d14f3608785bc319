"""
Prometheus metrics for monotrie.

This module centralizes counters and histograms for:
- trie operations (insert/remove/get/prove and their batch variants): counts by
  outcome and durations
- node reads by source (pending / cache / store) and node writes
- proof verification outcomes

Typical usage (inside the engine):

    from monotrie.metrics import get_metrics

    METRICS = get_metrics()

    with METRICS.time_op("insert"):
        ...

Tests that want isolated counters construct `TrieMetrics(registry=CollectorRegistry())`
and pass it to `SparseMerkleTrie(..., metrics=...)`.

To scrape, serve `render_latest()` from whatever HTTP surface the host process has.
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, Optional

from prometheus_client import REGISTRY as _DEFAULT_REGISTRY
from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest


@dataclass(frozen=True)
class _Labels:
    """Canonical label keys used across metrics."""
    op: str = "op"
    outcome: str = "outcome"
    source: str = "source"


_OP_BUCKETS = (
    0.0001,
    0.00025,
    0.0005,
    0.001,
    0.0025,
    0.005,
    0.01,
    0.025,
    0.05,
    0.1,
    0.25,
    1.0,
)


class TrieMetrics:
    """Concrete metrics backed by prometheus_client."""

    def __init__(self, registry: Optional[CollectorRegistry] = None) -> None:
        self._labels = _Labels()
        self.registry = registry or _DEFAULT_REGISTRY

        self.ops_total = Counter(
            "monotrie_ops_total",
            "Trie operations grouped by operation and outcome",
            [self._labels.op, self._labels.outcome],
            registry=self.registry,
        )
        self.op_duration = Histogram(
            "monotrie_op_duration_seconds",
            "Trie operation duration in seconds",
            [self._labels.op],
            registry=self.registry,
            buckets=_OP_BUCKETS,
        )
        self.node_reads_total = Counter(
            "monotrie_node_reads_total",
            "Node loads grouped by where the node was found",
            [self._labels.source],
            registry=self.registry,
        )
        self.node_writes_total = Counter(
            "monotrie_node_writes_total",
            "Encoded nodes written to the store",
            registry=self.registry,
        )
        self.proof_verify_total = Counter(
            "monotrie_proof_verify_total",
            "Proof verification attempts grouped by outcome",
            [self._labels.outcome],
            registry=self.registry,
        )

    # ------------------------------ op timer ---------------------------------

    @contextmanager
    def time_op(self, op: str) -> Iterator[None]:
        """
        Count and time one engine operation. The outcome is "ok" unless an
        exception escapes, in which case it is the exception class name.
        """
        start = time.perf_counter()
        outcome = "ok"
        try:
            yield
        except BaseException as e:
            outcome = type(e).__name__
            raise
        finally:
            self.ops_total.labels(op, outcome).inc()
            self.op_duration.labels(op).observe(max(0.0, time.perf_counter() - start))

    # ------------------------------ node notes -------------------------------

    def note_read(self, source: str) -> None:
        self.node_reads_total.labels(source).inc()

    def note_writes(self, n: int) -> None:
        if n > 0:
            self.node_writes_total.inc(n)

    def note_verify(self, ok: bool) -> None:
        self.proof_verify_total.labels("ok" if ok else "invalid").inc()

    def render_latest(self) -> bytes:
        """Prometheus text exposition of this instance's registry."""
        return generate_latest(self.registry)


# ------------------------------- public API ----------------------------------

_METRICS_SINGLETON: Optional[TrieMetrics] = None


def get_metrics(registry: Optional[CollectorRegistry] = None) -> TrieMetrics:
    """
    Return a process-wide TrieMetrics singleton. The first call can inject a custom
    registry; subsequent calls ignore the registry parameter.
    """
    global _METRICS_SINGLETON
    if _METRICS_SINGLETON is None:
        _METRICS_SINGLETON = TrieMetrics(registry=registry)
    return _METRICS_SINGLETON


__all__ = [
    "TrieMetrics",
    "get_metrics",
]
