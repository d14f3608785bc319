from __future__ import annotations

import io
import json
import logging

import pytest

from monotrie import logging as mlog
from monotrie.config import load_config

TEST_LOGGER = "monotrie.test"


@pytest.fixture(autouse=True)
def _clean(monkeypatch):
    monkeypatch.delenv("MONOTRIE_LOG_FORMAT", raising=False)
    mlog.clear_context()
    yield
    mlog.clear_context()
    for name in (TEST_LOGGER, mlog.ROOT_LOGGER):
        lg = logging.getLogger(name)
        for h in list(lg.handlers):
            lg.removeHandler(h)
            h.close()


def _logger(buf: io.StringIO, fmt: str = "json", level: str = "DEBUG") -> logging.Logger:
    return mlog.configure(level=level, fmt=fmt, stream=buf, logger_name=TEST_LOGGER)


def _records(buf: io.StringIO):
    return [json.loads(line) for line in buf.getvalue().splitlines()]


def test_json_line_carries_context_and_extras():
    buf = io.StringIO()
    log = _logger(buf)
    with mlog.trace_scope("t-1") as tid:
        assert tid == "t-1"
        log.info("commit", extra={"writes": 3, "root": b"\xab\xcd"})
    (rec,) = _records(buf)
    assert rec["msg"] == "commit"
    assert rec["level"] == "INFO"
    assert rec["logger"] == TEST_LOGGER
    assert rec["trace_id"] == "t-1"
    assert rec["writes"] == 3
    assert rec["root"] == "abcd"
    assert "lineno" not in rec


def test_trace_scope_restores_context():
    mlog.bind(component="engine")
    with mlog.trace_scope() as tid:
        assert len(tid) == 12
        assert mlog.context() == {"component": "engine", "trace_id": tid}
    assert mlog.context() == {"component": "engine"}
    mlog.unbind("component")
    assert mlog.context() == {}


def test_text_line():
    buf = io.StringIO()
    log = _logger(buf, fmt="text", level="INFO")
    mlog.bind(op="insert")
    log.info("done", extra={"writes": 2})
    line = buf.getvalue().strip()
    assert f"INFO    {TEST_LOGGER} done" in line
    assert line.endswith("op=insert writes=2")
    assert "\x1b[" not in line


def test_level_filters_records():
    buf = io.StringIO()
    log = _logger(buf, level="warning")
    log.info("hidden")
    log.warning("shown")
    assert [r["msg"] for r in _records(buf)] == ["shown"]


def test_bad_level_and_format():
    with pytest.raises(ValueError):
        _logger(io.StringIO(), level="chatty")
    with pytest.raises(ValueError):
        _logger(io.StringIO(), fmt="xml")


def test_env_picks_format(monkeypatch):
    monkeypatch.setenv("MONOTRIE_LOG_FORMAT", "json")
    buf = io.StringIO()
    mlog.configure(stream=buf, logger_name=TEST_LOGGER).info("hello")
    assert _records(buf)[0]["msg"] == "hello"


def test_non_tty_defaults_to_json():
    buf = io.StringIO()
    mlog.configure(stream=buf, logger_name=TEST_LOGGER).info("hi")
    assert _records(buf)[0]["msg"] == "hi"


def test_reconfigure_replaces_handlers():
    first, second = io.StringIO(), io.StringIO()
    _logger(first)
    log = _logger(second)
    log.info("once")
    assert first.getvalue() == ""
    assert len(log.handlers) == 1


def test_with_fields_adapter():
    buf = io.StringIO()
    log = mlog.with_fields(_logger(buf), backend="sqlite", path="a.db")
    log.info("open", extra={"path": "b.db"})
    (rec,) = _records(buf)
    assert rec["backend"] == "sqlite"
    assert rec["path"] == "b.db"


def test_exception_is_rendered():
    buf = io.StringIO()
    log = _logger(buf)
    try:
        raise ValueError("boom")
    except ValueError:
        log.exception("failed")
    (rec,) = _records(buf)
    assert "ValueError: boom" in rec["err"]


def test_configure_from_config(tmp_path):
    log_file = tmp_path / "logs" / "trie.jsonl"
    cfg = load_config(env={}, logging={"level": "debug", "format": "text", "file": str(log_file)})
    log = mlog.configure_from_config(cfg)
    assert log.name == mlog.ROOT_LOGGER
    assert log.level == logging.DEBUG
    assert mlog.context()["hasher"] == "blake3"

    mlog.get_logger("monotrie.trie").debug("opened", extra={"op": "open"})
    for h in log.handlers:
        h.flush()
    rec = json.loads(log_file.read_text().strip().splitlines()[-1])
    assert rec["msg"] == "opened"
    assert rec["logger"] == "monotrie.trie"
    assert rec["hasher"] == "blake3"
