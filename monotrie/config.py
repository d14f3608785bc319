"""
monotrie configuration loader.

Layered config with clear precedence:
    1) Explicit overrides passed to `load_config()` (highest)
    2) Environment variables (MONOTRIE_*)
    3) Config file (TOML or JSON)
    4) Built-in defaults (lowest)

Sections
--------
    hasher:  { name }                    blake3 | sha2-256 | sha3-256 | blake2b-256 (+ aliases)
    db:      { uri }                     memory:// | sqlite:///path | rocksdb:///path | *.db
    cache:   { max_nodes }               0 disables the node cache
    logging: { level, format, file }     format: text | json

Environment
-----------
    MONOTRIE_HASHER, MONOTRIE_DB_URI, MONOTRIE_CACHE_NODES,
    MONOTRIE_LOG_LEVEL, MONOTRIE_LOG_FORMAT, MONOTRIE_LOG_FILE

`open_trie(cfg)` turns a config into a ready `SparseMerkleTrie`.
"""

from __future__ import annotations

import json
import os
import sys
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

if sys.version_info >= (3, 11):
    import tomllib as _toml
else:  # pragma: no cover - exercised on 3.10 only
    import tomli as _toml

from .errors import ConfigError
from .utils.hash import DEFAULT_HASHER, get_hasher

DEFAULT_DB_URI = "memory://"
DEFAULT_CACHE_NODES = 4096
_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}
_LOG_FORMATS = {"text", "json"}


# ------------------------------
# Typed configuration model
# ------------------------------

@dataclass
class HasherConfig:
    name: str = DEFAULT_HASHER


@dataclass
class DBConfig:
    uri: str = DEFAULT_DB_URI


@dataclass
class CacheConfig:
    max_nodes: int = DEFAULT_CACHE_NODES


@dataclass
class LoggingConfig:
    level: str = "INFO"
    format: str = "text"
    file: Optional[str] = None


@dataclass
class TrieConfig:
    hasher: HasherConfig = field(default_factory=HasherConfig)
    db: DBConfig = field(default_factory=DBConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# ------------------------------
# File loader (TOML / JSON)
# ------------------------------

def _load_file(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}", path=str(path))
    suffix = path.suffix.lower()
    try:
        with path.open("rb") as f:
            if suffix in {".toml", ".tml"}:
                return _toml.load(f)
            if suffix == ".json":
                return json.load(f)
    except (_toml.TOMLDecodeError, json.JSONDecodeError) as e:
        raise ConfigError(f"cannot parse {path}: {e}", path=str(path)).with_cause(e) from e
    raise ConfigError(f"unsupported config format: {suffix}; use .toml or .json", path=str(path))


def _merge_dict(a: Mapping[str, Any], b: Mapping[str, Any]) -> Dict[str, Any]:
    """Nested dict merge: values in b override a."""
    out = dict(a)
    for k, v in b.items():
        if isinstance(v, Mapping) and isinstance(out.get(k), Mapping):
            out[k] = _merge_dict(out[k], v)
        else:
            out[k] = v
    return out


def _env_layer(env: Mapping[str, str]) -> Dict[str, Any]:
    layer: Dict[str, Dict[str, Any]] = {}

    def put(section: str, key: str, value: Any) -> None:
        layer.setdefault(section, {})[key] = value

    if "MONOTRIE_HASHER" in env:
        put("hasher", "name", env["MONOTRIE_HASHER"].strip())
    if "MONOTRIE_DB_URI" in env:
        put("db", "uri", env["MONOTRIE_DB_URI"].strip())
    if "MONOTRIE_CACHE_NODES" in env:
        raw = env["MONOTRIE_CACHE_NODES"].strip()
        try:
            put("cache", "max_nodes", int(raw, 0))
        except ValueError as e:
            raise ConfigError(f"MONOTRIE_CACHE_NODES must be int, got {raw!r}").with_cause(e) from e
    if "MONOTRIE_LOG_LEVEL" in env:
        put("logging", "level", env["MONOTRIE_LOG_LEVEL"].strip())
    if "MONOTRIE_LOG_FORMAT" in env:
        put("logging", "format", env["MONOTRIE_LOG_FORMAT"].strip())
    if "MONOTRIE_LOG_FILE" in env:
        put("logging", "file", env["MONOTRIE_LOG_FILE"].strip() or None)
    return layer


# ------------------------------
# Main loader
# ------------------------------

def load_config(
    config_file: Optional[str | Path] = None,
    *,
    env: Optional[Mapping[str, str]] = None,
    **overrides: Any,
) -> TrieConfig:
    """
    Load the trie configuration.

    Precedence: overrides > env > file > defaults.

    Parameters
    ----------
    config_file : str | Path | None
        Optional TOML or JSON file with the sections listed in the module docstring.
    env : Mapping | None
        Environment to read (defaults to os.environ).
    overrides : Any
        Section overrides, e.g. load_config(db={"uri": "sqlite:///:memory:"}).
    """
    base: Dict[str, Any] = TrieConfig().to_dict()

    if config_file:
        base = _merge_dict(base, _load_file(Path(config_file).expanduser()))

    base = _merge_dict(base, _env_layer(os.environ if env is None else env))

    if overrides:
        base = _merge_dict(base, overrides)

    unknown = set(base) - {"hasher", "db", "cache", "logging"}
    if unknown:
        raise ConfigError(f"unknown config sections: {sorted(unknown)}")

    try:
        cfg = TrieConfig(
            hasher=HasherConfig(**base["hasher"]),
            db=DBConfig(**base["db"]),
            cache=CacheConfig(**base["cache"]),
            logging=LoggingConfig(**base["logging"]),
        )
    except TypeError as e:
        raise ConfigError(f"invalid config keys: {e}").with_cause(e) from e

    _validate_config(cfg)
    return cfg


def _validate_db_uri(uri: str) -> None:
    if uri.startswith(("memory://", "sqlite:///", "rocksdb:///")) or uri.endswith(".db"):
        return
    raise ConfigError(
        f"unsupported DB URI {uri!r}; use memory://, sqlite:///path, rocksdb:///path or a *.db path",
        uri=uri,
    )


def _validate_config(cfg: TrieConfig) -> None:
    get_hasher(cfg.hasher.name)
    _validate_db_uri(cfg.db.uri)

    if not isinstance(cfg.cache.max_nodes, int) or cfg.cache.max_nodes < 0:
        raise ConfigError("cache.max_nodes must be a non-negative int", max_nodes=cfg.cache.max_nodes)

    cfg.logging.level = str(cfg.logging.level).upper()
    if cfg.logging.level not in _LOG_LEVELS:
        raise ConfigError(f"invalid log level {cfg.logging.level!r}", allowed=sorted(_LOG_LEVELS))
    cfg.logging.format = str(cfg.logging.format).lower()
    if cfg.logging.format not in _LOG_FORMATS:
        raise ConfigError(f"invalid log format {cfg.logging.format!r}", allowed=sorted(_LOG_FORMATS))


# ------------------------------
# Factory
# ------------------------------

def open_trie(cfg: Optional[TrieConfig] = None):
    """Build a `SparseMerkleTrie` (store, hasher, cache) from `cfg` (default: load_config())."""
    from .db import NodeCache, open_kv
    from .trie.tree import SparseMerkleTrie

    cfg = cfg or load_config()
    cache = NodeCache(cfg.cache.max_nodes) if cfg.cache.max_nodes > 0 else None
    return SparseMerkleTrie(open_kv(cfg.db.uri), get_hasher(cfg.hasher.name), cache=cache)


__all__ = [
    "HasherConfig",
    "DBConfig",
    "CacheConfig",
    "LoggingConfig",
    "TrieConfig",
    "load_config",
    "open_trie",
]
