"""
kvquery
=======

Typed keys and values over an ordered byte store, with prefix scans.

>>> from dataclasses import dataclass
>>> from typing import Optional
>>> from kvquery import Record, StructKey, insert, matching_as_list, open_kv
>>>
>>> @dataclass(frozen=True)
... class User(Record):
...     name: str
>>>
>>> @dataclass(frozen=True)
... class UserKey(StructKey[User], prefix="u"):
...     team: str
...     uid: Optional[int] = None
>>>
>>> db = open_kv("memory://")
>>> insert(db, UserKey("red", 1), User("ann"))
>>> matching_as_list(db, UserKey("red"))
[(UserKey(team='red', uid=1), User(name='ann'))]
"""

from __future__ import annotations

from .db import KV, Cursor, Delete, MemoryKV, Put, ReadOptions, WriteOptions, open_from_config, open_kv
from .encoding import codec_for, register_codec
from .errors import (
    ColumnFamilyNotFound,
    ConfigError,
    CursorClosed,
    DecodeError,
    DependencyMissing,
    EncodeError,
    KVQueryError,
    ReadOnlyStore,
    StoreClosed,
)
from .query import (
    delete_op,
    first_matching,
    first_matching_skip,
    insert,
    insert_op,
    matching,
    matching_as_list,
    matching_skip,
    matching_skip_as_list,
    remove,
    retrieve,
    scan,
    write_batch,
)
from .types import Key, KeyValue, Record, StructKey
from .version import __version__

__all__ = [
    "__version__",
    # types
    "Key",
    "KeyValue",
    "StructKey",
    "Record",
    "codec_for",
    "register_codec",
    # stores
    "KV",
    "Cursor",
    "Put",
    "Delete",
    "ReadOptions",
    "WriteOptions",
    "MemoryKV",
    "open_kv",
    "open_from_config",
    # operations
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
    # errors
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
