from __future__ import annotations

"""
Node cache
==========

Small, thread-safe LRU of *decoded* trie nodes keyed by digest.

Nodes are content-addressed and immutable, so an entry can never go stale:
there is no invalidation, only capacity-driven eviction. The engine populates
the cache lazily on reads and write-through after a batch commits.

    cache = NodeCache(max_nodes=4096)
    node = cache.get(digest)          # -> Node | None
    cache.put(digest, node)

A capacity of 0 disables caching (every `get` misses, `put` is ignored).
"""

import threading
from collections import OrderedDict
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

DEFAULT_MAX_NODES = 4096


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    puts: int = 0
    evictions: int = 0
    items_current: int = 0
    items_max: int = 0

    @property
    def hit_ratio(self) -> float:
        total = self.hits + self.misses
        return (self.hits / total) if total else 0.0


class NodeCache:
    """Thread-safe LRU keyed by node digest."""

    def __init__(self, max_nodes: int = DEFAULT_MAX_NODES) -> None:
        if max_nodes < 0:
            raise ValueError("max_nodes must be >= 0")
        self.max_nodes = int(max_nodes)
        self._lock = threading.Lock()
        self._map: "OrderedDict[bytes, Any]" = OrderedDict()
        self._stats = CacheStats(items_max=self.max_nodes)

    @property
    def enabled(self) -> bool:
        return self.max_nodes > 0

    def get(self, digest: bytes) -> Optional[Any]:
        with self._lock:
            node = self._map.get(digest)
            if node is None:
                self._stats.misses += 1
                return None
            self._map.move_to_end(digest, last=True)
            self._stats.hits += 1
            return node

    def put(self, digest: bytes, node: Any) -> None:
        if not self.enabled:
            return
        with self._lock:
            if digest in self._map:
                self._map.move_to_end(digest, last=True)
                return
            self._map[digest] = node
            self._stats.puts += 1
            while len(self._map) > self.max_nodes:
                self._map.popitem(last=False)
                self._stats.evictions += 1
            self._stats.items_current = len(self._map)

    def __contains__(self, digest: object) -> bool:
        with self._lock:
            return digest in self._map

    def __len__(self) -> int:
        with self._lock:
            return len(self._map)

    def clear(self) -> None:
        with self._lock:
            self._map.clear()
            self._stats.items_current = 0

    def stats(self) -> CacheStats:
        with self._lock:
            s = CacheStats(**asdict(self._stats))
            s.items_current = len(self._map)
            return s

    def stats_dict(self) -> Dict[str, Any]:
        s = self.stats()
        d = asdict(s)
        d["hit_ratio"] = s.hit_ratio
        return d


__all__ = ["NodeCache", "CacheStats", "DEFAULT_MAX_NODES"]
