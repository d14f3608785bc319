"""
monotrie: logging
-----------------

Structured logging on top of the stdlib `logging` module.

- Two formats: one JSON object per line, or a compact (optionally coloured)
  text line ending in ``key=value`` fields.
- Context fields kept in a `ContextVar` (`bind`, `unbind`, `trace_scope`) are
  added to every record emitted in that context, across threads and tasks.
- `extra={...}` fields passed at the call site are rendered too; bytes become
  hex.

The engine only *emits* (``monotrie.trie`` at DEBUG for operations, WARNING for
missing or corrupt nodes). Applications install handlers once:

    from monotrie import logging as mlog

    mlog.configure(level="DEBUG", fmt="text")
    with mlog.trace_scope():
        root = trie.insert(root, key, value)

``MONOTRIE_LOG_FORMAT=json|text`` forces the format when `fmt` is not given.
"""

from __future__ import annotations

import datetime as _dt
import json as _json
import logging
import os
import sys
import traceback
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from pathlib import Path
from typing import IO, Any, Dict, Iterator, Mapping, MutableMapping, Optional, Tuple

ROOT_LOGGER = "monotrie"

_CTX: ContextVar[Mapping[str, Any]] = ContextVar("monotrie_log_ctx", default={})

# Attributes every LogRecord carries; anything else came from `extra=`.
_STD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {
    "message",
    "asctime",
    "taskName",
}


# ----------------------------
# Context
# ----------------------------


def context() -> Dict[str, Any]:
    return dict(_CTX.get())


def bind(**fields: Any) -> None:
    _CTX.set({**_CTX.get(), **{k: _plain(v) for k, v in fields.items()}})


def unbind(*keys: str) -> None:
    _CTX.set({k: v for k, v in _CTX.get().items() if k not in keys})


def clear_context() -> None:
    _CTX.set({})


@contextmanager
def trace_scope(trace_id: Optional[str] = None) -> Iterator[str]:
    """Bind a trace_id (random 12 hex chars unless given) for the scope; yields it."""
    token = _CTX.set({**_CTX.get(), "trace_id": trace_id or uuid.uuid4().hex[:12]})
    try:
        yield _CTX.get()["trace_id"]
    finally:
        _CTX.reset(token)


# ----------------------------
# Formatters
# ----------------------------


def _plain(v: Any) -> Any:
    if v is None or isinstance(v, (bool, int, float, str)):
        return v
    if isinstance(v, (bytes, bytearray, memoryview)):
        return bytes(v).hex()
    if isinstance(v, (list, tuple)):
        return [_plain(x) for x in v]
    if isinstance(v, dict):
        return {str(k): _plain(x) for k, x in v.items()}
    return str(v)


def _fields(record: logging.LogRecord) -> Dict[str, Any]:
    out = context()
    for k, v in record.__dict__.items():
        if k not in _STD_ATTRS and not k.startswith("_"):
            out.setdefault(k, _plain(v))
    return out


def _exc_text(record: logging.LogRecord) -> Optional[str]:
    if not record.exc_info:
        return None
    return "".join(traceback.format_exception(*record.exc_info)).rstrip()


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        doc: Dict[str, Any] = {
            "ts": _dt.datetime.fromtimestamp(record.created, _dt.timezone.utc).isoformat(
                timespec="milliseconds"
            ),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for k, v in _fields(record).items():
            doc.setdefault(k, v)
        err = _exc_text(record)
        if err:
            doc["err"] = err
        return _json.dumps(doc, separators=(",", ":"), default=str)


_COLORS = {
    logging.DEBUG: "\x1b[90m",
    logging.INFO: "\x1b[32m",
    logging.WARNING: "\x1b[33m",
    logging.ERROR: "\x1b[31m",
    logging.CRITICAL: "\x1b[1;31m",
}
_RESET = "\x1b[0m"


class TextFormatter(logging.Formatter):
    """
    ``12:34:56.789 DEBUG monotrie.trie insert op=insert root=ab12… new_root=cd34…``
    """

    def __init__(self, color: bool = False) -> None:
        super().__init__()
        self.color = color

    def format(self, record: logging.LogRecord) -> str:
        ts = _dt.datetime.fromtimestamp(record.created).strftime("%H:%M:%S.%f")[:-3]
        level = f"{record.levelname:<7}"
        if self.color:
            level = f"{_COLORS.get(record.levelno, '')}{level}{_RESET}"
        line = f"{ts} {level} {record.name} {record.getMessage()}"
        kv = " ".join(f"{k}={v}" for k, v in _fields(record).items())
        if kv:
            line = f"{line} {kv}"
        err = _exc_text(record)
        return f"{line}\n{err}" if err else line


# ----------------------------
# Setup
# ----------------------------


def _isatty(stream: Any) -> bool:
    isatty = getattr(stream, "isatty", None)
    return bool(isatty and isatty())


def _resolve_format(fmt: Optional[str], stream: Any) -> str:
    chosen = (fmt or os.environ.get("MONOTRIE_LOG_FORMAT", "")).strip().lower()
    if chosen in ("json", "text"):
        return chosen
    if chosen:
        raise ValueError(f"unknown log format {chosen!r}; use 'json' or 'text'")
    return "text" if _isatty(stream) else "json"


def configure(
    *,
    level: str | int = "INFO",
    fmt: Optional[str] = None,
    stream: Optional[IO[str]] = None,
    file: Optional[str | Path] = None,
    logger_name: str = ROOT_LOGGER,
) -> logging.Logger:
    """
    Install handlers on `logger_name` (replacing previous ones) and return it.

    Parameters
    ----------
    level : str | int
        Threshold for the logger and its handlers.
    fmt : "json" | "text" | None
        None: MONOTRIE_LOG_FORMAT if set, else text on a TTY and JSON otherwise.
    stream : text stream
        Console destination (stderr by default).
    file : path | None
        Additionally append JSON lines to this file.
    """
    stream = stream if stream is not None else sys.stderr
    lvl = logging.getLevelName(level.upper()) if isinstance(level, str) else level
    if not isinstance(lvl, int):
        raise ValueError(f"unknown log level {level!r}")

    logger = logging.getLogger(logger_name)
    for h in list(logger.handlers):
        logger.removeHandler(h)
        h.close()
    logger.setLevel(lvl)

    console = logging.StreamHandler(stream)
    if _resolve_format(fmt, stream) == "json":
        console.setFormatter(JSONFormatter())
    else:
        console.setFormatter(TextFormatter(color=_isatty(stream) and "NO_COLOR" not in os.environ))
    logger.addHandler(console)

    if file:
        path = Path(file).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(path, encoding="utf-8")
        fh.setFormatter(JSONFormatter())
        logger.addHandler(fh)
    return logger


def configure_from_config(cfg: Any) -> logging.Logger:
    """Apply the ``logging`` section of a `monotrie.config.TrieConfig`."""
    bind(hasher=cfg.hasher.name)
    return configure(level=cfg.logging.level, fmt=cfg.logging.format, file=cfg.logging.file)


def get_logger(name: Optional[str] = None) -> logging.Logger:
    return logging.getLogger(name or ROOT_LOGGER)


class _FieldsAdapter(logging.LoggerAdapter):
    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        kwargs["extra"] = {**self.extra, **(kwargs.get("extra") or {})}
        return msg, kwargs


def with_fields(logger: logging.Logger, **fields: Any) -> logging.LoggerAdapter:
    """Adapter adding constant `fields` to every record (call-site extras win)."""
    return _FieldsAdapter(logger, fields)


__all__ = [
    "ROOT_LOGGER",
    "context",
    "bind",
    "unbind",
    "clear_context",
    "trace_scope",
    "JSONFormatter",
    "TextFormatter",
    "configure",
    "configure_from_config",
    "get_logger",
    "with_fields",
]
