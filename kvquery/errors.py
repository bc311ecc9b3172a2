"""
kvquery.errors
--------------

Error types for the typed query layer.

Design goals
------------
- One root `KVQueryError` with machine-friendly `code` and optional `data`.
- Absence is never an error: lookups return ``None``.
- `DecodeError` is fatal for the operation in progress. It signals codec/schema
  mismatch or corruption and is never skipped mid-scan.
- Errors raised by the backing store library (sqlite3, rocksdb) are *not*
  wrapped; they propagate unchanged.

This module uses only stdlib.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional


class ErrorCode(str, Enum):
    INTERNAL = "KVQ/INTERNAL"
    DEP_MISSING = "KVQ/DEPENDENCY_MISSING"
    CONFIG = "KVQ/CONFIG"

    # Codec
    ENCODE = "KVQ/ENCODE"
    DECODE = "KVQ/DECODE"

    # Store surface
    CF_NOT_FOUND = "KVQ/CF_NOT_FOUND"
    CURSOR_CLOSED = "KVQ/CURSOR_CLOSED"
    READ_ONLY = "KVQ/READ_ONLY"
    STORE_CLOSED = "KVQ/STORE_CLOSED"


@dataclass(eq=False)
class KVQueryError(Exception):
    """
    Root error for kvquery.

    Attributes
    ----------
    code: str
        Machine-stable error code (see ErrorCode).
    message: str
        Human hint suitable for logs.
    data: dict
        Optional machine data (type names, key previews). JSON-serializable.
    retryable: bool
        Whether the operation may succeed on retry without changing inputs.
    cause: Optional[BaseException]
        Wrapped original exception.
    """

    code: str
    message: str
    data: Dict[str, Any] = field(default_factory=dict)
    retryable: bool = False
    cause: Optional[BaseException] = field(default=None, compare=False, repr=False)

    def __post_init__(self) -> None:
        if isinstance(self.code, ErrorCode):
            self.code = self.code.value
        super().__init__(f"{self.code}: {self.message}")

    def with_context(self, **ctx: Any) -> "KVQueryError":
        """Merge extra fields into `data` in place and return self."""
        for k, v in ctx.items():
            self.data[k] = _coerce_json(v)
        return self

    def to_dict(self, include_cause: bool = False) -> Dict[str, Any]:
        out = {
            "code": self.code,
            "message": self.message,
            "data": _coerce_json(self.data),
            "retryable": self.retryable,
        }
        if include_cause and self.cause is not None:
            out["cause"] = {
                "type": type(self.cause).__name__,
                "message": str(self.cause),
            }
        return out

    def __str__(self) -> str:  # pragma: no cover - human formatting
        parts = [f"{self.code}: {self.message}"]
        if self.data:
            preview = ", ".join(f"{k}={_preview(v)}" for k, v in self.data.items())
            parts.append(f"[{preview}]")
        return " ".join(parts)


class EncodeError(KVQueryError):
    def __init__(self, message="encoding failed", **data: Any) -> None:
        super().__init__(code=ErrorCode.ENCODE, message=message, data=_jsonmap(data))


class DecodeError(KVQueryError):
    """Bytes read back from the store do not parse as the expected type."""

    def __init__(
        self,
        message="decoding failed",
        *,
        cause: Optional[BaseException] = None,
        **data: Any,
    ) -> None:
        super().__init__(
            code=ErrorCode.DECODE,
            message=message,
            data=_jsonmap(data),
            cause=cause,
        )


class ColumnFamilyNotFound(KVQueryError):
    def __init__(self, name: str) -> None:
        super().__init__(
            code=ErrorCode.CF_NOT_FOUND,
            message=f"unknown column family: {name}",
            data={"cf": name},
        )


class CursorClosed(KVQueryError):
    def __init__(self) -> None:
        super().__init__(code=ErrorCode.CURSOR_CLOSED, message="cursor is closed")


class StoreClosed(KVQueryError):
    def __init__(self, op: str) -> None:
        super().__init__(
            code=ErrorCode.STORE_CLOSED,
            message="store is closed",
            data={"op": op},
        )


class ReadOnlyStore(KVQueryError):
    def __init__(self, op: str) -> None:
        super().__init__(
            code=ErrorCode.READ_ONLY,
            message="store is read-only",
            data={"op": op},
        )


class DependencyMissing(KVQueryError):
    def __init__(self, package: str, hint: str = "") -> None:
        msg = f"missing dependency: {package}"
        if hint:
            msg += f" ({hint})"
        super().__init__(
            code=ErrorCode.DEP_MISSING,
            message=msg,
            data={"package": package, "hint": hint},
        )


class ConfigError(KVQueryError):
    def __init__(self, message="invalid configuration", **data: Any) -> None:
        super().__init__(code=ErrorCode.CONFIG, message=message, data=_jsonmap(data))


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _jsonmap(data: Mapping[str, Any]) -> Dict[str, Any]:
    return {k: _coerce_json(v) for k, v in data.items()}


def _coerce_json(v: Any) -> Any:
    # Keep JSON primitives; stringify the rest; hex-encode bytes.
    if v is None or isinstance(v, (bool, int, float, str)):
        return v
    if isinstance(v, (list, tuple)):
        return [_coerce_json(x) for x in v]
    if isinstance(v, dict):
        return {str(k): _coerce_json(x) for k, x in v.items()}
    if isinstance(v, (bytes, bytearray, memoryview)):
        return bytes(v).hex()
    return str(v)


def _preview(v: Any, limit: int = 96) -> str:
    s = str(_coerce_json(v))
    return s if len(s) <= limit else s[:limit] + "…"


__all__ = [
    "ErrorCode",
    "KVQueryError",
    "EncodeError",
    "DecodeError",
    "ColumnFamilyNotFound",
    "CursorClosed",
    "ReadOnlyStore",
    "StoreClosed",
    "DependencyMissing",
    "ConfigError",
]
