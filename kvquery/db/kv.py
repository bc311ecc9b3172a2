from __future__ import annotations

"""
Byte-level store contract
=========================

The typed layer in `kvquery.query` sits on top of any ordered, byte-keyed store
that provides:

- point get / put / delete, optionally scoped to a named column family
- a cursor that can `seek(key)`, read the `entry()` under it and step `next()`
- an atomic `write(ops)` taking an ordered sequence of `Put` / `Delete`

Backends (memory, sqlite, rocksdb) implement these Protocols. This file is
*pure interface + helpers* and contains no I/O.

Options
-------
`ReadOptions` and `WriteOptions` are opaque to the query layer: they are handed
to the backend as-is. Backends use what they understand (RocksDB maps them to
its keyword arguments) and ignore the rest.

Cursors
-------
A cursor is bound to one column family and does not own the store. Always
scope it:

>>> with kv.cursor(cf="users") as it:
...     it.seek(b"u:")
...     while (e := it.entry()) is not None:
...         it.next()
"""

from dataclasses import dataclass
from typing import List, Optional, Protocol, Sequence, Tuple, Union, runtime_checkable

Entry = Tuple[bytes, bytes]


@dataclass(frozen=True)
class ReadOptions:
    fill_cache: bool = True
    verify_checksums: bool = False
    # Full-keyspace ordering for seeks, regardless of any prefix extractor.
    total_order_seek: bool = True


@dataclass(frozen=True)
class WriteOptions:
    sync: bool = False
    disable_wal: bool = False


DEFAULT_READ = ReadOptions()
DEFAULT_WRITE = WriteOptions()


# ---------------------------------------------------------------------------
# Batch descriptors
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Put:
    """Pending insert of an already-encoded record."""

    key: bytes
    value: bytes
    cf: Optional[str] = None


@dataclass(frozen=True)
class Delete:
    """Pending removal of an already-encoded key."""

    key: bytes
    cf: Optional[str] = None


BatchOp = Union[Put, Delete]


# ---------------------------------------------------------------------------
# Protocols
# ---------------------------------------------------------------------------


@runtime_checkable
class Cursor(Protocol):
    """Positioned read handle over one column family's ordered keys."""

    def seek(self, key: bytes) -> None:
        """Position at the first key >= `key`."""
        ...

    def seek_to_first(self) -> None: ...

    def entry(self) -> Optional[Entry]:
        """Entry under the cursor, or None once exhausted."""
        ...

    def next(self) -> None:
        """Step forward one entry."""
        ...

    def close(self) -> None: ...

    def __enter__(self) -> "Cursor": ...
    def __exit__(self, exc_type, exc, tb) -> Optional[bool]: ...


@runtime_checkable
class KV(Protocol):
    """Ordered byte-keyed store with column families."""

    def get(
        self, key: bytes, *, cf: Optional[str] = None, options: Optional[ReadOptions] = None
    ) -> Optional[bytes]:
        """Fetch value or None if missing."""
        ...

    def put(
        self,
        key: bytes,
        value: bytes,
        *,
        cf: Optional[str] = None,
        options: Optional[WriteOptions] = None,
    ) -> None:
        """Persist (key, value). Overwrites if exists."""
        ...

    def delete(
        self, key: bytes, *, cf: Optional[str] = None, options: Optional[WriteOptions] = None
    ) -> None:
        """Remove key if present (idempotent)."""
        ...

    def cursor(
        self, *, cf: Optional[str] = None, options: Optional[ReadOptions] = None
    ) -> Cursor:
        """Open a cursor; the caller must close it (or use `with`)."""
        ...

    def write(self, ops: Sequence[BatchOp], *, options: Optional[WriteOptions] = None) -> None:
        """Apply `ops` in order, all or nothing."""
        ...

    def column_families(self) -> List[str]: ...

    def create_column_family(self, name: str) -> None: ...

    def close(self) -> None: ...


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def is_prefix(prefix: bytes, key: bytes) -> bool:
    """Anchored prefix test: `key` truncated to len(prefix) equals `prefix`."""
    return key[: len(prefix)] == prefix


def check_bytes(key: bytes, value: Optional[bytes] = None) -> None:
    if not isinstance(key, (bytes, bytearray)):
        raise TypeError("key must be bytes")
    if value is not None and not isinstance(value, (bytes, bytearray)):
        raise TypeError("value must be bytes")


__all__ = [
    "Entry",
    "ReadOptions",
    "WriteOptions",
    "DEFAULT_READ",
    "DEFAULT_WRITE",
    "Put",
    "Delete",
    "BatchOp",
    "Cursor",
    "KV",
    "is_prefix",
    "check_bytes",
]
