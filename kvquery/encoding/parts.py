from __future__ import annotations

"""
Composite key parts
===================

Keys are built as:

    ns + b":" + Σ (uvarint(len(part)) | part)

The leading namespace keeps logical buckets apart; the length prefix on every
part avoids delimiter-escaping pitfalls. Because parts are simply concatenated,
a key built from the first *n* parts of another key is a byte prefix of it.
That is what the prefix scan relies on for "short keys".

Integers are packed fixed-width big-endian (u64), so for a given position the
byte order of keys matches the numeric order of the integer parts.

Example
-------
>>> k = pack(b"u", "alice", 7)
>>> k.startswith(pack(b"u", "alice"))
True
>>> unpack(b"u", k)
[b'alice', b'\\x00\\x00\\x00\\x00\\x00\\x00\\x00\\x07']
"""

from typing import List, Tuple, Union

from ..errors import DecodeError, EncodeError

NS_SEP = b":"

Part = Union[bytes, bytearray, memoryview, str, int, bool]


def namespace(ns: Union[bytes, str]) -> bytes:
    """
    Normalize a namespace to its raw prefix (with exactly one trailing ':').

    The separator may not appear inside the name: "u:a:" would extend "u:" and
    a scan over namespace "u" would walk into it.
    """
    ns_b = ns.encode("ascii") if isinstance(ns, str) else bytes(ns)
    ns_b = ns_b.rstrip(NS_SEP)
    if not ns_b:
        raise ValueError("namespace must be non-empty")
    if NS_SEP in ns_b:
        raise ValueError(f"namespace may not contain {NS_SEP!r}: {ns!r}")
    return ns_b + NS_SEP


def part_to_bytes(p: Part) -> bytes:
    if isinstance(p, (bytes, bytearray, memoryview)):
        return bytes(p)
    if isinstance(p, str):
        return p.encode("utf-8")
    # bool before int: bool is an int subclass
    if isinstance(p, bool):
        return b"\x01" if p else b"\x00"
    if isinstance(p, int):
        if p < 0:
            raise EncodeError("negative ints not supported in key parts", value=p)
        return be_u64(p)
    raise EncodeError(f"unsupported key part type: {type(p).__name__}")


def pack(ns: Union[bytes, str], *parts: Part) -> bytes:
    out = bytearray(namespace(ns))
    for p in parts:
        pb = part_to_bytes(p)
        out.extend(uvarint(len(pb)))
        out.extend(pb)
    return bytes(out)


def unpack(ns: Union[bytes, str], data: bytes) -> List[bytes]:
    """Split `data` back into raw parts. Raises DecodeError on malformed input."""
    raw = namespace(ns)
    if not data.startswith(raw):
        raise DecodeError("namespace mismatch", expected=raw, got=data[: len(raw)])
    pos = len(raw)
    parts: List[bytes] = []
    while pos < len(data):
        n, pos = read_uvarint(data, pos)
        end = pos + n
        if end > len(data):
            raise DecodeError("truncated key part", offset=pos, length=n, size=len(data))
        parts.append(bytes(data[pos:end]))
        pos = end
    return parts


# ---------------------------------------------------------------------------
# Varints & fixed-width ints
# ---------------------------------------------------------------------------


def uvarint(n: int) -> bytes:
    """LEB128 unsigned length prefix."""
    if n < 0:
        raise ValueError("length must be non-negative")
    out = bytearray()
    while True:
        b = n & 0x7F
        n >>= 7
        if n:
            out.append(0x80 | b)
        else:
            out.append(b)
            return bytes(out)


def read_uvarint(data: bytes, pos: int) -> Tuple[int, int]:
    shift = 0
    n = 0
    while True:
        if pos >= len(data):
            raise DecodeError("truncated varint", offset=pos)
        b = data[pos]
        pos += 1
        n |= (b & 0x7F) << shift
        if not b & 0x80:
            return n, pos
        shift += 7
        if shift > 63:
            raise DecodeError("varint too long", offset=pos)


def be_u32(n: int) -> bytes:
    if not (0 <= n < (1 << 32)):
        raise EncodeError("be_u32 out of range", value=n)
    return n.to_bytes(4, "big")


def be_u64(n: int) -> bytes:
    if not (0 <= n < (1 << 64)):
        raise EncodeError("be_u64 out of range", value=n)
    return n.to_bytes(8, "big")


def be_u256(n: int) -> bytes:
    if not (0 <= n < (1 << 256)):
        raise EncodeError("be_u256 out of range", value=n)
    return n.to_bytes(32, "big")


def from_be(b: bytes, width: int) -> int:
    if len(b) != width:
        raise DecodeError(f"expected {width} bytes for big-endian int", got=len(b))
    return int.from_bytes(b, "big")


__all__ = [
    "NS_SEP",
    "namespace",
    "part_to_bytes",
    "pack",
    "unpack",
    "uvarint",
    "read_uvarint",
    "be_u32",
    "be_u64",
    "be_u256",
    "from_be",
]
