from __future__ import annotations

"""
RocksDB-backed KV (optional)
============================

An ordered KV using python-rocksdb when available. If the module or native
library is missing, `open_rocksdb_kv` falls back to SQLite (if requested) or
raises `DependencyMissing`.

Features
- Binary keys & values (bytes in, bytes out)
- Column families (opened up-front, created on demand)
- ReadOptions / WriteOptions mapped onto python-rocksdb keyword arguments
- Atomic batches via WriteBatch
- Tuned defaults: block cache, Bloom filter, LZ4 compression

Install
-------
    sudo apt-get install -y librocksdb-dev
    pip install python-rocksdb
"""

import os
from typing import Any, Dict, Iterator, List, Optional, Sequence, Union

try:
    import rocksdb  # type: ignore
    _ROCKS_OK = True
except ImportError:
    rocksdb = None  # type: ignore
    _ROCKS_OK = False

from ..errors import ColumnFamilyNotFound, CursorClosed, DependencyMissing, ReadOnlyStore
from ..logging import get_logger
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
from .sqlite import open_sqlite_kv

log = get_logger(__name__)

DEFAULT_CF = "default"


def _read_kwargs(o: ReadOptions) -> Dict[str, Any]:
    return {"fill_cache": o.fill_cache, "verify_checksums": o.verify_checksums}


def _write_kwargs(o: WriteOptions) -> Dict[str, Any]:
    return {"sync": o.sync, "disable_wal": o.disable_wal}


def _raw_key(k: Any) -> bytes:
    # Column-family iterators yield (handle, key) pairs.
    if isinstance(k, tuple):
        k = k[1]
    return bytes(k)


class RocksCursor:
    """Wraps a python-rocksdb items iterator with one entry of lookahead."""

    __slots__ = ("_db", "_handle", "_kwargs", "_it", "_cur", "_closed")

    def __init__(self, db: "rocksdb.DB", handle: Any, kwargs: Dict[str, Any]) -> None:  # type: ignore[name-defined]
        self._db = db
        self._handle = handle
        self._kwargs = kwargs
        self._it: Optional[Iterator] = None
        self._cur: Optional[Entry] = None
        self._closed = False

    def __enter__(self) -> "RocksCursor":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _check(self) -> None:
        if self._closed:
            raise CursorClosed()

    def _iterator(self):
        if self._it is None:
            if self._handle is None:
                self._it = self._db.iteritems(**self._kwargs)
            else:
                self._it = self._db.iteritems(self._handle, **self._kwargs)
        return self._it

    def _advance(self) -> None:
        item = next(self._it, None)  # type: ignore[arg-type]
        self._cur = None if item is None else (_raw_key(item[0]), bytes(item[1]))

    def seek(self, key: bytes) -> None:
        self._check()
        self._iterator().seek(bytes(key))
        self._advance()

    def seek_to_first(self) -> None:
        self._check()
        self._iterator().seek_to_first()
        self._advance()

    def entry(self) -> Optional[Entry]:
        self._check()
        return self._cur

    def next(self) -> None:
        self._check()
        if self._cur is not None:
            self._advance()

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        # No explicit close in python-rocksdb; dropping the iterator runs its finalizer.
        self._it = None
        self._cur = None
        self._closed = True


class RocksKV:
    """
    RocksDB-backed KV satisfying the `KV` protocol.

    `read_options` / `write_options` are the store defaults, used whenever a
    call passes no options of its own.
    """

    def __init__(
        self,
        db: "rocksdb.DB",  # type: ignore[name-defined]
        *,
        read_only: bool = False,
        read_options: Optional[ReadOptions] = None,
        write_options: Optional[WriteOptions] = None,
    ) -> None:
        self._db = db
        self._ro = read_only
        self.read_defaults = read_options or DEFAULT_READ
        self.write_defaults = write_options or DEFAULT_WRITE

    def _handle(self, cf: Optional[str]) -> Any:
        if cf is None or cf == DEFAULT_CF:
            return None
        handle = self._db.get_column_family(cf.encode("utf-8"))
        if handle is None:
            raise ColumnFamilyNotFound(cf)
        return handle

    def _k(self, cf: Optional[str], key: bytes) -> Any:
        h = self._handle(cf)
        return bytes(key) if h is None else (h, bytes(key))

    def _writable(self, op: str) -> None:
        if self._ro:
            raise ReadOnlyStore(op)

    # --- reads ---

    def get(
        self, key: bytes, *, cf: Optional[str] = None, options: Optional[ReadOptions] = None
    ) -> Optional[bytes]:
        check_bytes(key)
        v = self._db.get(self._k(cf, key), **_read_kwargs(options or self.read_defaults))
        return None if v is None else bytes(v)

    def cursor(
        self, *, cf: Optional[str] = None, options: Optional[ReadOptions] = None
    ) -> RocksCursor:
        return RocksCursor(self._db, self._handle(cf), _read_kwargs(options or self.read_defaults))

    # --- writes ---

    def put(
        self,
        key: bytes,
        value: bytes,
        *,
        cf: Optional[str] = None,
        options: Optional[WriteOptions] = None,
    ) -> None:
        self._writable("put")
        check_bytes(key, value)
        kwargs = _write_kwargs(options or self.write_defaults)
        self._db.put(self._k(cf, key), bytes(value), **kwargs)

    def delete(
        self, key: bytes, *, cf: Optional[str] = None, options: Optional[WriteOptions] = None
    ) -> None:
        self._writable("delete")
        check_bytes(key)
        self._db.delete(self._k(cf, key), **_write_kwargs(options or self.write_defaults))

    def write(self, ops: Sequence[BatchOp], *, options: Optional[WriteOptions] = None) -> None:
        self._writable("write")
        wb = rocksdb.WriteBatch()
        for op in ops:
            if isinstance(op, Put):
                check_bytes(op.key, op.value)
                wb.put(self._k(op.cf, op.key), bytes(op.value))
            elif isinstance(op, Delete):
                check_bytes(op.key)
                wb.delete(self._k(op.cf, op.key))
            else:
                raise TypeError(f"unsupported batch op: {type(op).__name__}")
        self._db.write(wb, **_write_kwargs(options or self.write_defaults))

    # --- column families ---

    def column_families(self) -> List[str]:
        names = {h.name.decode("utf-8") for h in self._db.column_families}
        names.add(DEFAULT_CF)
        return sorted(names)

    def create_column_family(self, name: str) -> None:
        if self._db.get_column_family(name.encode("utf-8")) is not None:
            return
        self._writable("create_column_family")
        self._db.create_column_family(name.encode("utf-8"), rocksdb.ColumnFamilyOptions())

    def close(self) -> None:
        db = self._db
        self._db = None  # type: ignore[assignment]
        if db is not None and hasattr(db, "close"):
            db.close()


def _default_options() -> "rocksdb.Options":  # type: ignore[name-defined]
    """Point lookups + prefix scans + write bursts."""
    opts = rocksdb.Options()
    opts.create_if_missing = True
    opts.create_missing_column_families = True
    opts.max_open_files = 512
    opts.compression = rocksdb.CompressionType.lz4_compression
    opts.table_factory = rocksdb.BlockBasedTableFactory(
        block_cache=rocksdb.LRUCache(256 * 1024 * 1024),
        block_size=16 * 1024,
        filter_policy=rocksdb.BloomFilterPolicy(10),
    )
    # No fixed prefix extractor: base keys vary in length and scans guard with
    # an explicit prefix comparison.
    return opts


def _existing_column_families(path: str) -> List[str]:
    # RocksDB refuses to open unless every on-disk family is listed.
    if not os.path.exists(os.path.join(path, "CURRENT")):
        return []
    names = rocksdb.list_column_families(path, rocksdb.Options())
    return [n.decode("utf-8") for n in names if n != b"default"]


def open_rocksdb_kv(
    path: Union[str, bytes, "os.PathLike[str]", "os.PathLike[bytes]"],
    *,
    create: bool = True,
    readonly: bool = False,
    column_families: Sequence[str] = (),
    fallback_to_sqlite: bool = True,
    options: Optional["rocksdb.Options"] = None,  # type: ignore[name-defined]
    read_options: Optional[ReadOptions] = None,
    write_options: Optional[WriteOptions] = None,
):
    """
    Open a RocksDB KV at `path`.

    Args:
        create: create if missing (ignored when readonly)
        readonly: open in read-only mode
        column_families: families to open (existing on-disk families are always opened)
        fallback_to_sqlite: if RocksDB is unavailable, return a SQLiteKV at path + ".sqlite"
        options: custom rocksdb.Options (advanced use)
        read_options, write_options: store defaults for calls that pass none

    Raises:
        DependencyMissing if RocksDB is unavailable and fallback_to_sqlite=False
    """
    db_path = os.fsdecode(path)

    if not _ROCKS_OK:
        if fallback_to_sqlite:
            log.warning("python-rocksdb unavailable; falling back to sqlite", extra={"path": db_path})
            kv = open_sqlite_kv(
                db_path + ".sqlite",
                create=True,
                readonly=readonly,
                read_options=read_options,
                write_options=write_options,
            )
            for name in column_families:
                kv.create_column_family(name)
            return kv
        raise DependencyMissing("python-rocksdb", "apt-get install librocksdb-dev; pip install python-rocksdb")

    if not readonly and create:
        os.makedirs(os.path.abspath(db_path), exist_ok=True)

    wanted = list(dict.fromkeys([*_existing_column_families(db_path), *column_families]))
    opts = options or _default_options()
    cfs = {name.encode("utf-8"): rocksdb.ColumnFamilyOptions() for name in wanted}
    db = rocksdb.DB(db_path, opts, column_families=cfs or None, read_only=readonly)
    log.debug("opened rocksdb", extra={"path": db_path, "cfs": wanted})
    return RocksKV(
        db, read_only=readonly, read_options=read_options, write_options=write_options
    )


__all__ = ["open_rocksdb_kv", "RocksKV", "RocksCursor", "_ROCKS_OK"]
