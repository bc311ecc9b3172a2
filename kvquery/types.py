"""
kvquery.types
=============

Capability markers and the two ready-made building blocks for typed records.

Markers
-------
- `Key`          : "is a valid key type". Anything that can go through
                   `to_bytes()` / `from_bytes()` deterministically.
- `KeyValue[V]`  : "is a valid (key, value) pair type". A key type that also
                   names the value type stored under it.

The markers carry no data. Typed operations check them at the call site so a
wrong pairing fails before the store is touched, and type checkers see the
value type flow from the key (``retrieve(db, UserKey(...)) -> User | None``).

Declaring a pair
----------------
>>> @dataclass(frozen=True)
... class User(Record):
...     name: str
...     age: int
>>> @dataclass(frozen=True)
... class UserKey(StructKey[User], prefix="u"):
...     team: str
...     uid: Optional[int] = None

`UserKey("red")` encodes to a byte prefix of `UserKey("red", 7)`: trailing
``None`` fields are left out. Use the short form as the base of a scan and
the decoder hands back full keys.
"""

from __future__ import annotations

import dataclasses
import types
import typing
from abc import ABC, abstractmethod
from typing import Any, ClassVar, Dict, Generic, List, Optional, Tuple, Type, TypeVar

from .encoding.codec import CBORCodec, decode_with
from .encoding.parts import from_be, namespace, pack, unpack
from .errors import DecodeError, EncodeError

V = TypeVar("V")


class Key(ABC):
    """Marker for key types."""

    __slots__ = ()

    @abstractmethod
    def to_bytes(self) -> bytes:
        """Deterministic, total encoding."""

    @classmethod
    @abstractmethod
    def from_bytes(cls, data: bytes) -> "Key":
        """Inverse of `to_bytes`; may raise on malformed input."""


class KeyValue(Key, Generic[V]):
    """Marker for key types paired with a value type."""

    __slots__ = ()

    value_type: ClassVar[Optional[type]] = None

    def __init_subclass__(cls, value: Optional[type] = None, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        if value is None:
            value = _value_type_from_bases(cls)
        if value is not None:
            cls.value_type = value


def _value_type_from_bases(cls: type) -> Optional[type]:
    for base in cls.__dict__.get("__orig_bases__", ()):
        origin = typing.get_origin(base)
        if isinstance(origin, type) and issubclass(origin, KeyValue):
            args = typing.get_args(base)
            if args and isinstance(args[0], type):
                return args[0]
    return None


def is_key(obj: Any) -> bool:
    return isinstance(obj, Key)


def value_type_of(key_type: type) -> type:
    """Return the value type paired with `key_type`, or raise TypeError."""
    if not (isinstance(key_type, type) and issubclass(key_type, KeyValue)):
        raise TypeError(f"{getattr(key_type, '__name__', key_type)!r} is not a KeyValue type")
    vt = key_type.value_type
    if vt is None:
        raise TypeError(f"{key_type.__name__} does not declare a value type")
    return vt


def require_key(key: Any) -> Key:
    if not isinstance(key, Key):
        raise TypeError(f"{type(key).__name__} is not a Key type")
    return key


def require_pair(key: Any, value: Any) -> type:
    """Check that (key, value) is a declared pair; returns the value type."""
    require_key(key)
    vt = value_type_of(type(key))
    if not isinstance(value, vt) or (vt is int and isinstance(value, bool)):
        raise TypeError(
            f"value of type {type(value).__name__} cannot be stored under "
            f"{type(key).__name__} (expects {vt.__name__})"
        )
    return vt


# ---------------------------------------------------------------------------
# StructKey: dataclass keys packed as namespaced parts
# ---------------------------------------------------------------------------


class StructKey(KeyValue[V]):
    """
    Base for frozen-dataclass keys.

    Subclasses pass ``prefix=`` (the namespace) as a class keyword. Supported
    field types: bytes, str, int (unsigned, 64-bit), bool, and Optional of
    these. Field order is key order.
    """

    __slots__ = ()

    __key_prefix__: ClassVar[bytes] = b""

    def __init_subclass__(cls, prefix: Optional[bytes | str] = None, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        if prefix is not None:
            cls.__key_prefix__ = namespace(prefix)

    def to_bytes(self) -> bytes:
        if not self.__key_prefix__:
            raise EncodeError(f"{type(self).__name__} declares no key prefix")
        _field_specs(type(self))
        parts: List[Any] = []
        gap = None
        for f in dataclasses.fields(self):
            v = getattr(self, f.name)
            if v is None:
                gap = gap or f.name
                continue
            if gap is not None:
                raise EncodeError(
                    "key field set after an unset one",
                    key=type(self).__name__,
                    unset=gap,
                    field=f.name,
                )
            parts.append(v)
        return pack(self.__key_prefix__, *parts)

    @classmethod
    def from_bytes(cls, data: bytes) -> "StructKey[V]":
        raw = unpack(cls.__key_prefix__, data)
        specs = _field_specs(cls)
        if len(raw) > len(specs):
            raise DecodeError(
                "too many key parts",
                key=cls.__name__,
                parts=len(raw),
                fields=len(specs),
            )
        values: Dict[str, Any] = {}
        for (name, tp), pb in zip(specs, raw):
            values[name] = _part_from_bytes(tp, pb, field=name)
        return cls(**values)


_PART_TYPES = (bytes, str, int, bool)
_SPEC_CACHE: Dict[type, Tuple[Tuple[str, type], ...]] = {}


def _field_specs(cls: type) -> Tuple[Tuple[str, type], ...]:
    """Resolved (name, part type) per field; TypeError on unsupported field types."""
    specs = _SPEC_CACHE.get(cls)
    if specs is None:
        hints = typing.get_type_hints(cls)
        specs = tuple((f.name, _strip_optional(hints[f.name])) for f in dataclasses.fields(cls))
        for name, tp in specs:
            if tp not in _PART_TYPES:
                raise TypeError(f"{cls.__name__}.{name}: unsupported key field type {tp!r}")
        _SPEC_CACHE[cls] = specs
    return specs


def _strip_optional(tp: Any) -> Any:
    # Optional[X], Union[X, None] and X | None all reduce to X.
    if typing.get_origin(tp) in (typing.Union, types.UnionType):
        args = [a for a in typing.get_args(tp) if a is not type(None)]
        if len(args) == 1:
            return args[0]
    return tp


def _part_from_bytes(tp: Any, pb: bytes, *, field: str) -> Any:
    if tp is bytes:
        return pb
    if tp is str:
        return pb.decode("utf-8", "strict")
    if tp is bool:
        if pb not in (b"\x00", b"\x01"):
            raise DecodeError("invalid bool key part", field=field)
        return pb == b"\x01"
    # int: _field_specs admits nothing else
    return from_be(pb, 8)


# ---------------------------------------------------------------------------
# Record: dataclass values as canonical CBOR maps
# ---------------------------------------------------------------------------

_MAP = CBORCodec(dict)


class Record:
    """
    Base for dataclass values. Encoded as a canonical CBOR map of
    field name → value; field values must themselves be CBOR-encodable.
    """

    __slots__ = ()

    def to_bytes(self) -> bytes:
        return _MAP.encode({f.name: getattr(self, f.name) for f in dataclasses.fields(self)})

    @classmethod
    def from_bytes(cls: Type[V], data: bytes) -> V:
        d = decode_with(_MAP.decode, data, what=cls.__name__)
        try:
            return cls(**d)
        except TypeError as e:
            raise DecodeError(f"record shape mismatch: {e}", type=cls.__name__) from e


__all__ = [
    "Key",
    "KeyValue",
    "StructKey",
    "Record",
    "is_key",
    "value_type_of",
    "require_key",
    "require_pair",
]
