"""
monotrie.utils
==============

Small, dependency-light helpers shared across the package:

- bytes: bytes-like coercion, short hex for logs, u16 helpers
- hash:  the Hasher protocol and the concrete digest implementations

Submodules are loaded lazily on first attribute access.
"""

from __future__ import annotations

from importlib import import_module
from typing import Any

_SUBMODULES = ("bytes", "hash")


def __getattr__(name: str) -> Any:
    if name in _SUBMODULES:
        mod = import_module(f"{__name__}.{name}")
        globals()[name] = mod
        return mod
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = list(_SUBMODULES)
