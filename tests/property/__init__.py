"""
Property tests for the monotrie engine (Hypothesis).

Importing this package registers named profiles and loads one of them:

- HYPOTHESIS_PROFILE=dev|ci|fast|stress selects explicitly
- otherwise "ci" when the CI env var is truthy, else "dev"

Usage:
    from tests.property import given, st, trie_keys

Shared strategies build 32-byte keys/values, including key sets that share
long prefixes so that path compression, splits and collapses get exercised.
"""
from __future__ import annotations

import os
from typing import Final, Tuple

from hypothesis import HealthCheck, Verbosity, given, settings
from hypothesis import strategies as st

# ---- profile registry --------------------------------------------------------


def _hc(*items: HealthCheck) -> Tuple[HealthCheck, ...]:
    return items


settings.register_profile(
    "dev",
    settings(
        max_examples=100,
        deadline=None,
        suppress_health_check=_hc(HealthCheck.too_slow, HealthCheck.filter_too_much),
        verbosity=Verbosity.normal,
        derandomize=False,
    ),
)

settings.register_profile(
    "ci",
    settings(
        max_examples=200,
        deadline=None,
        suppress_health_check=_hc(HealthCheck.too_slow, HealthCheck.filter_too_much),
        verbosity=Verbosity.verbose,
        derandomize=True,
    ),
)

settings.register_profile(
    "fast",
    settings(
        max_examples=25,
        deadline=None,
        suppress_health_check=_hc(HealthCheck.too_slow),
        verbosity=Verbosity.normal,
        derandomize=False,
    ),
)

settings.register_profile(
    "stress",
    settings(
        max_examples=1000,
        deadline=None,
        suppress_health_check=_hc(
            HealthCheck.too_slow,
            HealthCheck.filter_too_much,
            HealthCheck.data_too_large,
        ),
        verbosity=Verbosity.normal,
        derandomize=True,
    ),
)


def _env_truthy(name: str) -> bool:
    v = os.getenv(name)
    return (v or "").lower() not in ("", "0", "false", "no", "off")


_active: Final[str] = os.getenv("HYPOTHESIS_PROFILE") or (
    "ci" if _env_truthy("CI") else "dev"
)
settings.load_profile(_active)

# ---- strategies --------------------------------------------------------------

DIGEST = 32


def _shared_prefix_key(head: bytes, tail: bytes) -> bytes:
    return (head + tail)[:DIGEST].ljust(DIGEST, b"\x00")


def trie_keys():
    """32-byte keys; about half share one of a few fixed heads."""
    random_key = st.binary(min_size=DIGEST, max_size=DIGEST)
    clustered = st.builds(
        _shared_prefix_key,
        st.sampled_from([b"", b"\x00" * 31, b"\xaa" * 16, b"\xff" * 30]),
        st.binary(min_size=0, max_size=DIGEST),
    )
    return st.one_of(random_key, clustered)


def trie_values():
    return st.binary(min_size=DIGEST, max_size=DIGEST)


def trie_maps(max_size: int = 24):
    return st.dictionaries(keys=trie_keys(), values=trie_values(), max_size=max_size)


def active_profile() -> str:
    return _active


__all__ = [
    "st",
    "given",
    "settings",
    "DIGEST",
    "trie_keys",
    "trie_values",
    "trie_maps",
    "active_profile",
]
