from __future__ import annotations

"""
kvquery.db
==========

Ordered byte-keyed stores implementing the `KV` protocol, plus a tiny factory
that picks a backend from a URI:

    memory://                -> MemoryKV
    sqlite:///path/to/db     -> SQLiteKV   (sqlite:// or sqlite:///:memory: is in-memory)
    rocksdb:///path/to/dir   -> RocksKV    (falls back to SQLite if allowed)

>>> kv = open_kv("sqlite:///tmp/app.db", column_families=["users"])
"""

from typing import Any, Optional, Sequence

from ..errors import ConfigError
from ..logging import get_logger
from .kv import (
    DEFAULT_READ,
    DEFAULT_WRITE,
    KV,
    BatchOp,
    Cursor,
    Delete,
    Entry,
    Put,
    ReadOptions,
    WriteOptions,
    is_prefix,
)
from .memory import MemoryKV
from .rocksdb import _ROCKS_OK, open_rocksdb_kv
from .sqlite import open_sqlite_kv

log = get_logger(__name__)


def prefer_rocks() -> bool:
    """True if python-rocksdb imported cleanly."""
    return _ROCKS_OK


def _path_of(uri: str) -> str:
    # Everything after "scheme://" is the filesystem path, so
    # sqlite:///tmp/a.db is absolute and sqlite://data/a.db is relative.
    return uri.split("://", 1)[1]


def open_kv(
    uri: str,
    *,
    create: bool = True,
    readonly: bool = False,
    column_families: Sequence[str] = (),
    fallback_to_sqlite: bool = True,
    read_options: Optional[ReadOptions] = None,
    write_options: Optional[WriteOptions] = None,
) -> KV:
    """
    Open a store by URI and make sure `column_families` exist.

    `read_options` / `write_options` become the store's defaults for calls
    that pass none of their own.

    Raises ConfigError for an unknown scheme.
    """
    scheme = uri.split("://", 1)[0].lower() if "://" in uri else ""

    if scheme == "memory":
        kv: Any = MemoryKV(
            column_families, read_options=read_options, write_options=write_options
        )
    elif scheme == "sqlite":
        path = _path_of(uri)
        if path in ("", "/:memory:"):
            path = ":memory:"
        kv = open_sqlite_kv(
            path,
            create=create,
            readonly=readonly,
            read_options=read_options,
            write_options=write_options,
        )
    elif scheme == "rocksdb":
        path = _path_of(uri)
        if not path:
            raise ConfigError("rocksdb URI needs a path", uri=uri)
        kv = open_rocksdb_kv(
            path,
            create=create,
            readonly=readonly,
            column_families=column_families,
            fallback_to_sqlite=fallback_to_sqlite,
            read_options=read_options,
            write_options=write_options,
        )
    else:
        raise ConfigError(
            "unsupported DB URI; use memory://, sqlite:///path or rocksdb:///path",
            uri=uri,
        )

    if not readonly:
        for name in column_families:
            kv.create_column_family(name)

    log.debug("opened store", extra={"uri": uri, "cfs": kv.column_families()})
    return kv


def open_from_config(cfg: Any) -> KV:
    """Open the store described by a `kvquery.config.Config`, with its read/write defaults."""
    db = cfg.db
    return open_kv(
        db.uri,
        create=db.create,
        readonly=db.readonly,
        column_families=db.column_families,
        fallback_to_sqlite=db.fallback_to_sqlite,
        read_options=cfg.read.to_options(),
        write_options=cfg.write.to_options(),
    )


__all__ = [
    "KV",
    "Cursor",
    "Entry",
    "Put",
    "Delete",
    "BatchOp",
    "ReadOptions",
    "WriteOptions",
    "DEFAULT_READ",
    "DEFAULT_WRITE",
    "is_prefix",
    "MemoryKV",
    "open_kv",
    "open_from_config",
    "open_sqlite_kv",
    "open_rocksdb_kv",
    "prefer_rocks",
]
