"""
kvquery.encoding.codec
======================

Codec contract: two pure functions per type,

    encode(obj)  -> bytes             (total, deterministic)
    decode(data) -> obj | DecodeError

The query layer never invents encodings; it asks `codec_for(tp)` and fails
loudly when a type has none.

Resolution order for `codec_for(tp)`:
    1) codecs registered with `register_codec(tp, codec)`
    2) classes exposing `to_bytes()` and classmethod `from_bytes(data)`
    3) builtins: bytes (identity), str (UTF-8), int / dict / list (canonical CBOR)

CBOR goes through cbor2 with ``canonical=True`` so map ordering is
deterministic, which equal-bytes lookups depend on.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Generic, Optional, Protocol, Type, TypeVar, runtime_checkable

import cbor2

from ..errors import DecodeError, EncodeError

T = TypeVar("T")


@runtime_checkable
class Codec(Protocol[T]):
    def encode(self, obj: T) -> bytes: ...
    def decode(self, data: bytes) -> T: ...


@runtime_checkable
class Serializable(Protocol):
    """Types that carry their own codec."""

    def to_bytes(self) -> bytes: ...

    @classmethod
    def from_bytes(cls, data: bytes) -> Any: ...


# ---------------------------------------------------------------------------
# Builtin codecs
# ---------------------------------------------------------------------------


class BytesCodec:
    def encode(self, obj: bytes) -> bytes:
        if not isinstance(obj, (bytes, bytearray, memoryview)):
            raise EncodeError("expected bytes", got=type(obj).__name__)
        return bytes(obj)

    def decode(self, data: bytes) -> bytes:
        return bytes(data)


class StrCodec:
    def encode(self, obj: str) -> bytes:
        if not isinstance(obj, str):
            raise EncodeError("expected str", got=type(obj).__name__)
        return obj.encode("utf-8")

    def decode(self, data: bytes) -> str:
        return bytes(data).decode("utf-8", "strict")


class CBORCodec(Generic[T]):
    """Canonical CBOR; `expect` optionally pins the decoded Python type."""

    def __init__(self, expect: Optional[Type[T]] = None) -> None:
        self.expect = expect

    def encode(self, obj: T) -> bytes:
        try:
            return cbor2.dumps(obj, canonical=True)
        except (cbor2.CBOREncodeError, TypeError, ValueError) as e:
            raise EncodeError(f"not CBOR-encodable: {e}", type=type(obj).__name__) from e

    def decode(self, data: bytes) -> T:
        obj = cbor2.loads(bytes(data))
        if self.expect is not None and not _is_instance(obj, self.expect):
            raise DecodeError(
                "unexpected CBOR item type",
                expected=self.expect.__name__,
                got=type(obj).__name__,
            )
        return obj


class SerializableCodec(Generic[T]):
    def __init__(self, cls: Type[T]) -> None:
        self.cls = cls

    def encode(self, obj: T) -> bytes:
        if not isinstance(obj, self.cls):
            raise EncodeError(f"expected {self.cls.__name__}", got=type(obj).__name__)
        return obj.to_bytes()  # type: ignore[attr-defined]

    def decode(self, data: bytes) -> T:
        return self.cls.from_bytes(bytes(data))  # type: ignore[attr-defined]


def _is_instance(obj: Any, tp: type) -> bool:
    # CBOR ints never come back as bool and vice versa
    if tp is int:
        return isinstance(obj, int) and not isinstance(obj, bool)
    return isinstance(obj, tp)


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

_REGISTRY: Dict[type, Codec] = {
    bytes: BytesCodec(),
    str: StrCodec(),
    int: CBORCodec(int),
    bool: CBORCodec(bool),
    dict: CBORCodec(dict),
    list: CBORCodec(list),
}


def register_codec(tp: type, codec: Codec) -> None:
    """Register (or replace) the codec used for `tp`."""
    if not isinstance(codec, Codec):
        raise TypeError("codec must provide encode() and decode()")
    _REGISTRY[tp] = codec


def codec_for(tp: type) -> Codec:
    c = _REGISTRY.get(tp)
    if c is not None:
        return c
    if callable(getattr(tp, "to_bytes", None)) and callable(getattr(tp, "from_bytes", None)):
        return SerializableCodec(tp)
    raise TypeError(f"no codec for type {getattr(tp, '__name__', tp)!r}")


def decode_with(decode: Callable[[bytes], T], data: bytes, *, what: str) -> T:
    """
    Run a decoder and normalize any failure into DecodeError.

    `what` names the target type for the error payload.
    """
    try:
        return decode(data)
    except DecodeError as e:
        e.with_context(type=what, bytes=_hex_preview(data))
        raise
    except Exception as e:
        raise DecodeError(
            f"cannot decode {what}: {e}",
            cause=e,
            type=what,
            bytes=_hex_preview(data),
        ) from e


def _hex_preview(data: bytes, limit: int = 32) -> str:
    b = bytes(data)
    return b[:limit].hex() + ("…" if len(b) > limit else "")


__all__ = [
    "Codec",
    "Serializable",
    "BytesCodec",
    "StrCodec",
    "CBORCodec",
    "SerializableCodec",
    "register_codec",
    "codec_for",
    "decode_with",
]
