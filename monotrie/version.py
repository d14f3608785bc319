"""
Version helpers for monotrie.

- Exposes __version__ (PEP 440).
- MONOTRIE_VERSION env var overrides the built-in default (useful for
  packaging pipelines that stamp versions at build time).

This module has **no external dependencies** and is safe to import very early.
"""

from __future__ import annotations

import os
import re

# Project default if no override is present
DEFAULT_VERSION = "0.3.0"

_SEMVER = re.compile(
    r"^v?(?P<major>0|[1-9]\d*)\.(?P<minor>0|[1-9]\d*)\.(?P<patch>0|[1-9]\d*)(?:[-+.].*)?$"
)


def resolve_version() -> str:
    """
    Determine the version string in priority:
      1) MONOTRIE_VERSION environment variable (verbatim, leading 'v' stripped)
      2) DEFAULT_VERSION
    """
    env = os.getenv("MONOTRIE_VERSION")
    if env and _SEMVER.match(env.strip()):
        return env.strip().lstrip("v")
    return DEFAULT_VERSION


__version__ = resolve_version()


if __name__ == "__main__":
    print(__version__)
