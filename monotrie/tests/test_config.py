from __future__ import annotations

import json

import pytest

from monotrie.config import TrieConfig, load_config, open_trie
from monotrie.db.memory import MemoryKV
from monotrie.db.sqlite import SQLiteKV
from monotrie.errors import ConfigError

from .conftest import key_from_bits, val


def test_defaults():
    cfg = load_config(env={})
    assert cfg == TrieConfig()
    assert cfg.hasher.name == "blake3"
    assert cfg.db.uri == "memory://"
    assert cfg.cache.max_nodes == 4096
    assert cfg.logging.level == "INFO"
    assert cfg.logging.format == "text"


def test_toml_file(tmp_path):
    p = tmp_path / "trie.toml"
    p.write_text(
        '[hasher]\nname = "sha3-256"\n\n[db]\nuri = "sqlite:///:memory:"\n\n[cache]\nmax_nodes = 16\n'
    )
    cfg = load_config(p, env={})
    assert cfg.hasher.name == "sha3-256"
    assert cfg.db.uri == "sqlite:///:memory:"
    assert cfg.cache.max_nodes == 16


def test_json_file(tmp_path):
    p = tmp_path / "trie.json"
    p.write_text(json.dumps({"logging": {"level": "debug", "format": "JSON"}}))
    cfg = load_config(str(p), env={})
    assert cfg.logging.level == "DEBUG"
    assert cfg.logging.format == "json"


def test_precedence_overrides_env_file(tmp_path):
    p = tmp_path / "trie.toml"
    p.write_text('[hasher]\nname = "sha3-256"\n[cache]\nmax_nodes = 1\n')
    env = {"MONOTRIE_HASHER": "sha2-256", "MONOTRIE_CACHE_NODES": "0x20"}
    cfg = load_config(p, env=env)
    assert cfg.hasher.name == "sha2-256"
    assert cfg.cache.max_nodes == 32

    cfg = load_config(p, env=env, hasher={"name": "blake2b-256"})
    assert cfg.hasher.name == "blake2b-256"


def test_env_log_file_blank_is_none():
    cfg = load_config(env={"MONOTRIE_LOG_FILE": "  "})
    assert cfg.logging.file is None


@pytest.mark.parametrize(
    "kwargs",
    [
        {"env": {"MONOTRIE_HASHER": "md5"}},
        {"env": {"MONOTRIE_CACHE_NODES": "lots"}},
        {"env": {"MONOTRIE_DB_URI": "postgres://x"}},
        {"env": {"MONOTRIE_LOG_LEVEL": "chatty"}},
        {"env": {}, "logging": {"format": "xml"}},
        {"env": {}, "cache": {"max_nodes": -1}},
        {"env": {}, "cache": {"size": 1}},
        {"env": {}, "network": {"port": 1}},
    ],
)
def test_invalid_values(kwargs):
    with pytest.raises(ConfigError):
        load_config(**kwargs)


def test_missing_and_unsupported_files(tmp_path):
    with pytest.raises(ConfigError):
        load_config(tmp_path / "nope.toml", env={})
    yml = tmp_path / "trie.yaml"
    yml.write_text("hasher: {}\n")
    with pytest.raises(ConfigError):
        load_config(yml, env={})
    bad = tmp_path / "bad.toml"
    bad.write_text("[hasher\n")
    with pytest.raises(ConfigError):
        load_config(bad, env={})


def test_open_trie_memory():
    t = open_trie(load_config(env={}, hasher={"name": "sha3"}))
    assert isinstance(t.kv, MemoryKV)
    assert t.hasher.name == "sha3-256"
    assert t.cache is not None and t.cache.max_nodes == 4096
    root = t.insert(None, key_from_bits("1"), val(5))
    assert t.get(root, key_from_bits("1")) == val(5)


def test_open_trie_sqlite_without_cache(tmp_path):
    uri = f"sqlite:///{tmp_path / 'trie.db'}"
    t = open_trie(load_config(env={}, db={"uri": uri}, cache={"max_nodes": 0}))
    try:
        assert isinstance(t.kv, SQLiteKV)
        assert t.cache is None
    finally:
        t.kv.close()
