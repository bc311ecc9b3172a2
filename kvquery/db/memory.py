"""In-memory ordered KV store."""

from __future__ import annotations

import bisect
import threading
from typing import Dict, Iterable, List, Optional, Sequence

from ..errors import ColumnFamilyNotFound, CursorClosed, StoreClosed
from .kv import (
    DEFAULT_READ,
    DEFAULT_WRITE,
    BatchOp,
    Delete,
    Entry,
    Put,
    ReadOptions,
    WriteOptions,
    check_bytes,
)

DEFAULT_CF = "default"


class _Family:
    __slots__ = ("keys", "data")

    def __init__(self) -> None:
        self.keys: List[bytes] = []
        self.data: Dict[bytes, bytes] = {}

    def put(self, key: bytes, value: bytes) -> None:
        if key not in self.data:
            bisect.insort(self.keys, key)
        self.data[key] = value

    def delete(self, key: bytes) -> None:
        if self.data.pop(key, None) is not None:
            del self.keys[bisect.bisect_left(self.keys, key)]


class MemoryCursor:
    """
    Cursor over a live family. Position is tracked by key, so writes made while
    the cursor is open are seen on the next step rather than breaking it.
    """

    __slots__ = ("_owner", "_fam", "_lock", "_key", "_closed")

    def __init__(self, owner: "MemoryKV", fam: _Family) -> None:
        self._owner = owner
        self._fam = fam
        self._lock = owner._lock
        self._key: Optional[bytes] = None
        self._closed = False

    def __enter__(self) -> "MemoryCursor":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _check(self) -> None:
        if self._closed:
            raise CursorClosed()
        self._owner._check_open("cursor")

    def _land(self, idx: int) -> None:
        keys = self._fam.keys
        self._key = keys[idx] if idx < len(keys) else None

    def seek(self, key: bytes) -> None:
        self._check()
        with self._lock:
            self._land(bisect.bisect_left(self._fam.keys, bytes(key)))

    def seek_to_first(self) -> None:
        self.seek(b"")

    def entry(self) -> Optional[Entry]:
        self._check()
        with self._lock:
            if self._key is None:
                return None
            v = self._fam.data.get(self._key)
            if v is None:
                # removed under us: slide to the next live key
                self._land(bisect.bisect_left(self._fam.keys, self._key))
                if self._key is None:
                    return None
                v = self._fam.data[self._key]
            return self._key, v

    def next(self) -> None:
        self._check()
        with self._lock:
            if self._key is not None:
                self._land(bisect.bisect_right(self._fam.keys, self._key))

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        self._closed = True
        self._key = None


class MemoryKV:
    """
    Ordered in-memory KV with column families.

    Read/write options are kept as store defaults but change nothing for an
    in-memory map. After `close()` every call raises StoreClosed, and so does
    every step on a cursor opened before it.
    """

    def __init__(
        self,
        column_families: Iterable[str] = (),
        *,
        read_options: Optional[ReadOptions] = None,
        write_options: Optional[WriteOptions] = None,
    ) -> None:
        self._lock = threading.RLock()
        self._closed = False
        self._families: Dict[str, _Family] = {DEFAULT_CF: _Family()}
        self.read_defaults = read_options or DEFAULT_READ
        self.write_defaults = write_options or DEFAULT_WRITE
        for name in column_families:
            self.create_column_family(name)

    def _check_open(self, op: str) -> None:
        if self._closed:
            raise StoreClosed(op)

    def _family(self, cf: Optional[str]) -> _Family:
        fam = self._families.get(cf or DEFAULT_CF)
        if fam is None:
            raise ColumnFamilyNotFound(cf or DEFAULT_CF)
        return fam

    # --- reads ---

    def get(
        self, key: bytes, *, cf: Optional[str] = None, options: Optional[ReadOptions] = None
    ) -> Optional[bytes]:
        self._check_open("get")
        check_bytes(key)
        with self._lock:
            return self._family(cf).data.get(bytes(key))

    def cursor(
        self, *, cf: Optional[str] = None, options: Optional[ReadOptions] = None
    ) -> MemoryCursor:
        self._check_open("cursor")
        return MemoryCursor(self, self._family(cf))

    # --- writes ---

    def put(
        self,
        key: bytes,
        value: bytes,
        *,
        cf: Optional[str] = None,
        options: Optional[WriteOptions] = None,
    ) -> None:
        self._check_open("put")
        check_bytes(key, value)
        with self._lock:
            self._family(cf).put(bytes(key), bytes(value))

    def delete(
        self, key: bytes, *, cf: Optional[str] = None, options: Optional[WriteOptions] = None
    ) -> None:
        self._check_open("delete")
        check_bytes(key)
        with self._lock:
            self._family(cf).delete(bytes(key))

    def write(self, ops: Sequence[BatchOp], *, options: Optional[WriteOptions] = None) -> None:
        self._check_open("write")
        with self._lock:
            # Resolve everything first so a bad op leaves the store untouched.
            staged = []
            for op in ops:
                if isinstance(op, Put):
                    check_bytes(op.key, op.value)
                elif isinstance(op, Delete):
                    check_bytes(op.key)
                else:
                    raise TypeError(f"unsupported batch op: {type(op).__name__}")
                staged.append((self._family(op.cf), op))
            for fam, op in staged:
                if isinstance(op, Put):
                    fam.put(bytes(op.key), bytes(op.value))
                else:
                    fam.delete(bytes(op.key))

    # --- column families ---

    def column_families(self) -> List[str]:
        self._check_open("column_families")
        with self._lock:
            return sorted(self._families)

    def create_column_family(self, name: str) -> None:
        self._check_open("create_column_family")
        with self._lock:
            self._families.setdefault(name, _Family())

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        with self._lock:
            self._closed = True
            self._families = {}


__all__ = ["MemoryKV", "MemoryCursor", "DEFAULT_CF"]
