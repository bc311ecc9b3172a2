"""
kvquery.query
=============

Typed operations over an ordered byte store (`kvquery.db.kv.KV`).

Point operations
----------------
    retrieve(db, key)        -> value | None
    insert(db, key, value)   -> None     (overwrites)
    remove(db, key)          -> None     (absent key is fine)

Prefix scans
------------
A scan seeks to the encoded base key (or to an explicit start key) and walks
forward while the stored key, truncated to the base's length, equals the base.
The first mismatch ends the walk: keys are ordered, so nothing after it can
match. Rows are decoded lazily, one per step.

    with scan(db, UserKey("red")) as rows:
        for key, user in rows:
            ...

`scan` owns its cursor and closes it on every exit path. `matching` walks a
cursor the caller already holds. Decode failures raise `DecodeError` from the
step that hit them; they never end a scan quietly.

Batches
-------
`insert_op` / `delete_op` encode immediately into inert `Put` / `Delete`
descriptors; `write_batch` hands them to the store's atomic write in order.

Every operation takes an optional column family (`cf`) and read/write options;
both are passed to the store untouched. ``None`` means the store default.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterable, Iterator, List, Optional, Tuple, Type, TypeVar

from .db.kv import KV, Cursor, Delete, Put, ReadOptions, WriteOptions, is_prefix
from .encoding.codec import codec_for, decode_with
from .errors import DecodeError
from .logging import get_logger
from .types import Key, require_key, require_pair, value_type_of

log = get_logger(__name__)

DEFAULT_CF = "default"

K = TypeVar("K", bound=Key)
V = TypeVar("V")

Row = Tuple[K, V]


# ---------------------------------------------------------------------------
# Encode / decode helpers
# ---------------------------------------------------------------------------


def _key_bytes(key: Key) -> bytes:
    return require_key(key).to_bytes()


def _value_bytes(key: Key, value: V) -> bytes:
    vt = require_pair(key, value)
    return codec_for(vt).encode(value)


def _log_fields(cf: Optional[str], **fields):
    # `cf` is None when the caller owns the cursor and the family is unknown here.
    if cf is not None:
        fields["cf"] = cf
    return fields


def _fatal(e: DecodeError, *, cf: Optional[str], raw_key: bytes) -> DecodeError:
    log.error(
        "decode failed",
        extra=_log_fields(cf, raw_key=raw_key, code=e.code, detail=e.data),
    )
    return e


class _Decoder:
    """Key + value decoders resolved once per operation."""

    __slots__ = ("key_type", "value_type", "_codec")

    def __init__(self, key_type: Type[Key]) -> None:
        self.key_type = key_type
        self.value_type = value_type_of(key_type)
        self._codec = codec_for(self.value_type)

    def value(self, data: bytes):
        return decode_with(self._codec.decode, data, what=self.value_type.__name__)

    def row(self, k: bytes, v: bytes, *, cf: Optional[str]):
        try:
            key = decode_with(self.key_type.from_bytes, k, what=self.key_type.__name__)
            return key, self.value(v)
        except DecodeError as e:
            raise _fatal(e, cf=cf, raw_key=k)


# ---------------------------------------------------------------------------
# Point operations
# ---------------------------------------------------------------------------


def retrieve(
    db: KV,
    key: Key,
    *,
    cf: Optional[str] = None,
    options: Optional[ReadOptions] = None,
):
    """Fetch and decode the value stored under `key`; None when absent."""
    dec = _Decoder(type(require_key(key)))
    k = key.to_bytes()
    raw = db.get(k, cf=cf, options=options)
    if raw is None:
        return None
    try:
        return dec.value(raw)
    except DecodeError as e:
        raise _fatal(e, cf=cf or DEFAULT_CF, raw_key=k)


def insert(
    db: KV,
    key: Key,
    value,
    *,
    cf: Optional[str] = None,
    options: Optional[WriteOptions] = None,
) -> None:
    vb = _value_bytes(key, value)
    db.put(key.to_bytes(), vb, cf=cf, options=options)


def remove(
    db: KV,
    key: Key,
    *,
    cf: Optional[str] = None,
    options: Optional[WriteOptions] = None,
) -> None:
    db.delete(_key_bytes(key), cf=cf, options=options)


# ---------------------------------------------------------------------------
# Prefix scan engine
# ---------------------------------------------------------------------------


def _walk(
    cursor: Cursor,
    prefix: bytes,
    seek_to: bytes,
    dec: _Decoder,
    *,
    cf: Optional[str] = None,
) -> Iterator[Row]:
    cursor.seek(seek_to)
    rows = 0
    try:
        while True:
            e = cursor.entry()
            if e is None:
                return
            k, v = e
            if not is_prefix(prefix, k):
                return
            yield dec.row(k, v, cf=cf)
            rows += 1
            cursor.next()
    finally:
        log.debug("scan done", extra=_log_fields(cf, prefix=prefix, rows=rows))


def _prepare(base: Key, start: Optional[Key]) -> Tuple[bytes, bytes, _Decoder]:
    prefix = _key_bytes(base)
    seek_to = prefix if start is None else _key_bytes(start)
    return prefix, seek_to, _Decoder(type(base))


def matching(cursor: Cursor, base: Key, start: Optional[Key] = None) -> Iterator[Row]:
    """
    Lazily yield (key, value) for every entry whose encoded key starts with
    `base`'s encoding, in key order.

    The cursor belongs to the caller, who must keep it open while iterating
    and close it afterwards. Type checks run here, before the cursor moves;
    the seek itself happens on the first step.
    """
    prefix, seek_to, dec = _prepare(base, start)
    return _walk(cursor, prefix, seek_to, dec)


def matching_skip(cursor: Cursor, base: Key, start: Key) -> Iterator[Row]:
    """`matching` seeded at `start` instead of `base`; only rows matching `base` come back."""
    return matching(cursor, base, start)


@contextmanager
def scan(
    db: KV,
    base: Key,
    *,
    start: Optional[Key] = None,
    cf: Optional[str] = None,
    options: Optional[ReadOptions] = None,
):
    """
    Open a cursor, yield the lazy row iterator, close the cursor on exit.

    Leaving the block early (``break``, exception, decode failure) still closes
    the cursor. The iterator must not be used after the block ends.
    """
    prefix, seek_to, dec = _prepare(base, start)
    with db.cursor(cf=cf, options=options) as cursor:
        rows = _walk(cursor, prefix, seek_to, dec, cf=cf or DEFAULT_CF)
        try:
            yield rows
        finally:
            rows.close()


# ---------------------------------------------------------------------------
# Convenience projections
# ---------------------------------------------------------------------------


def first_matching(
    db: KV,
    base: Key,
    *,
    start: Optional[Key] = None,
    cf: Optional[str] = None,
    options: Optional[ReadOptions] = None,
) -> Optional[Row]:
    """The lowest-keyed matching row, or None."""
    with scan(db, base, start=start, cf=cf, options=options) as rows:
        return next(rows, None)


def first_matching_skip(
    db: KV,
    base: Key,
    start: Key,
    *,
    cf: Optional[str] = None,
    options: Optional[ReadOptions] = None,
) -> Optional[Row]:
    return first_matching(db, base, start=start, cf=cf, options=options)


def matching_as_list(
    db: KV,
    base: Key,
    *,
    start: Optional[Key] = None,
    cf: Optional[str] = None,
    options: Optional[ReadOptions] = None,
) -> List[Row]:
    """Drain the scan into a list, in key order."""
    with scan(db, base, start=start, cf=cf, options=options) as rows:
        return list(rows)


def matching_skip_as_list(
    db: KV,
    base: Key,
    start: Key,
    *,
    cf: Optional[str] = None,
    options: Optional[ReadOptions] = None,
) -> List[Row]:
    return matching_as_list(db, base, start=start, cf=cf, options=options)


# ---------------------------------------------------------------------------
# Batch builder
# ---------------------------------------------------------------------------


def insert_op(key: Key, value, *, cf: Optional[str] = None) -> Put:
    vb = _value_bytes(key, value)
    return Put(key.to_bytes(), vb, cf)


def delete_op(key: Key, *, cf: Optional[str] = None) -> Delete:
    return Delete(_key_bytes(key), cf)


def write_batch(
    db: KV,
    ops: Iterable[Put | Delete],
    *,
    options: Optional[WriteOptions] = None,
) -> None:
    """Submit descriptors, unchanged and in order, to the store's atomic write."""
    batch = list(ops)
    log.debug("write batch", extra={"ops": len(batch)})
    db.write(batch, options=options)


__all__ = [
    "retrieve",
    "insert",
    "remove",
    "matching",
    "matching_skip",
    "scan",
    "first_matching",
    "first_matching_skip",
    "matching_as_list",
    "matching_skip_as_list",
    "insert_op",
    "delete_op",
    "write_batch",
]
