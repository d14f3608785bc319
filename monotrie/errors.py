"""
monotrie: errors
----------------

Every failure raised by the engine, the stores and the proof code derives from
`TrieError`, which carries:

- ``code``       stable string id (`TrieErrorCode`), safe to match on
- ``message``    short human text
- ``data``       JSON-safe details (digests as hex, lengths, backend names)
- ``retryable``  True when the same call may succeed later (I/O hiccups)
- ``cause``      the wrapped lower-level exception, also set as ``__cause__``

Errors are values: `with_context` / `with_cause` return enriched copies, and
`to_dict` gives a log-friendly shape.

An invalid proof is an expected outcome, reported as ``False`` by `verify`;
`ProofError` is raised only by the checked verifier and by proof decoding.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, Mapping, Optional, Type, TypeVar


class TrieErrorCode(str, Enum):
    INTERNAL = "TRIE/INTERNAL"
    DEP_MISSING = "TRIE/DEPENDENCY_MISSING"
    CONFIG = "TRIE/CONFIG"

    KEY_LENGTH = "TRIE/KEY_LENGTH"
    VALUE_LENGTH = "TRIE/VALUE_LENGTH"
    CORRUPT_NODE = "TRIE/CORRUPT_NODE"
    STORE = "TRIE/STORE"
    PROOF = "TRIE/PROOF"


@dataclass(eq=False)
class TrieError(Exception):
    """Root of the monotrie error hierarchy (see module docstring)."""

    code: str
    message: str
    data: Dict[str, Any] = field(default_factory=dict)
    retryable: bool = False
    cause: Optional[BaseException] = field(default=None, compare=False, repr=False)

    def __post_init__(self) -> None:
        Exception.__init__(self, self.message)
        self.data = _jsonmap(self.data)
        if self.cause is not None:
            self.__cause__ = self.cause

    def with_context(self, **ctx: Any) -> "TrieError":
        return _from_fields(self, data={**self.data, **_jsonmap(ctx)})

    def with_cause(self, exc: BaseException) -> "TrieError":
        return _from_fields(self, cause=exc)

    def to_dict(self, include_cause: bool = False) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "code": _code_str(self.code),
            "message": self.message,
            "data": dict(self.data),
            "retryable": self.retryable,
        }
        if include_cause and self.cause is not None:
            out["cause"] = {"type": type(self.cause).__name__, "message": str(self.cause)}
        return out

    def __str__(self) -> str:
        text = f"{_code_str(self.code)}: {self.message}"
        if self.data:
            text += " [" + ", ".join(f"{k}={_preview(v)}" for k, v in self.data.items()) + "]"
        return text


class _CodedError(TrieError):
    CODE: ClassVar[TrieErrorCode] = TrieErrorCode.INTERNAL
    DEFAULT_MESSAGE: ClassVar[str] = "internal error"
    RETRYABLE: ClassVar[bool] = False

    def __init__(self, message: Optional[str] = None, **data: Any) -> None:
        TrieError.__init__(
            self,
            code=self.CODE,
            message=message or self.DEFAULT_MESSAGE,
            data=data,
            retryable=self.RETRYABLE,
        )


def _from_fields(err: TrieError, **changes: Any) -> TrieError:
    # subclasses take domain-specific constructor args; bypass them
    new = Exception.__new__(type(err))
    TrieError.__init__(
        new,
        code=changes.get("code", err.code),
        message=changes.get("message", err.message),
        data=changes.get("data", err.data),
        retryable=changes.get("retryable", err.retryable),
        cause=changes.get("cause", err.cause),
    )
    return new


class InternalError(_CodedError):
    pass


class ConfigError(_CodedError):
    CODE = TrieErrorCode.CONFIG
    DEFAULT_MESSAGE = "invalid configuration"


class CorruptNode(_CodedError):
    """Stored bytes failed to decode, or a referenced node is missing."""

    CODE = TrieErrorCode.CORRUPT_NODE
    DEFAULT_MESSAGE = "corrupt node"


class ProofError(_CodedError):
    CODE = TrieErrorCode.PROOF
    DEFAULT_MESSAGE = "invalid proof"


class StoreFailure(_CodedError):
    """The backing store failed; any open batch was rolled back."""

    CODE = TrieErrorCode.STORE
    DEFAULT_MESSAGE = "store failure"
    RETRYABLE = True

    def __init__(self, message: Optional[str] = None, retryable: bool = True, **data: Any) -> None:
        super().__init__(message, **data)
        self.retryable = retryable


class DependencyMissing(_CodedError):
    CODE = TrieErrorCode.DEP_MISSING

    def __init__(self, package: str, hint: str = "") -> None:
        text = f"missing dependency: {package}" + (f" ({hint})" if hint else "")
        super().__init__(text, package=package, hint=hint)


class _LengthMismatch(_CodedError):
    WHAT: ClassVar[str] = ""

    def __init__(self, expected: int, got: int) -> None:
        super().__init__(f"{self.WHAT} must be {expected} bytes, got {got}", expected=expected, got=got)


class KeyLengthMismatch(_LengthMismatch):
    """Key length differs from the hasher's digest size."""

    CODE = TrieErrorCode.KEY_LENGTH
    WHAT = "key"


class ValueLengthMismatch(_LengthMismatch):
    """Value (or root) is not a digest of the hasher's size."""

    CODE = TrieErrorCode.VALUE_LENGTH
    WHAT = "value"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

E = TypeVar("E", bound=TrieError)


def wrap(exc: BaseException, *, as_: Type[E] = InternalError, **ctx: Any) -> TrieError:  # type: ignore[assignment]
    """
    Turn `exc` into a `TrieError`: an existing TrieError just gains `ctx`,
    anything else becomes `as_` with `exc` as its cause.
    """
    if isinstance(exc, TrieError):
        return exc.with_context(**ctx)
    return as_(f"{type(exc).__name__}: {exc}", **ctx).with_cause(exc)  # type: ignore[call-arg]


def _code_str(code: Any) -> str:
    return str(getattr(code, "value", code))


def _jsonmap(data: Mapping[str, Any]) -> Dict[str, Any]:
    return {str(k): _jsonable(v) for k, v in data.items()}


def _jsonable(v: Any) -> Any:
    if v is None or isinstance(v, (bool, int, float, str)):
        return v
    if isinstance(v, (bytes, bytearray, memoryview)):
        return bytes(v).hex()
    if isinstance(v, Mapping):
        return _jsonmap(v)
    if isinstance(v, (list, tuple, set, frozenset)):
        return [_jsonable(x) for x in v]
    return str(v)


def _preview(v: Any, limit: int = 80) -> str:
    s = str(v)
    return s if len(s) <= limit else s[:limit] + "…"


__all__ = [
    "TrieErrorCode",
    "TrieError",
    "InternalError",
    "DependencyMissing",
    "ConfigError",
    "KeyLengthMismatch",
    "ValueLengthMismatch",
    "CorruptNode",
    "StoreFailure",
    "ProofError",
    "wrap",
]
