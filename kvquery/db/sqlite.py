from __future__ import annotations

"""
SQLite-backed KV store
======================

A small embedded ordered KV using SQLite (BLOB keys & values), implementing the
`KV` / `Cursor` protocols from `kvquery.db.kv`.

- Default family table: kv(k BLOB PRIMARY KEY, v BLOB NOT NULL)
- Each named column family gets its own table, recorded in `column_families`.
  Table names are derived from the hex of the family name, never from raw input.
- Keys/values are raw bytes; BLOB ordering is memcmp, i.e. lexicographic.
- Cursors page through `k >= ?` / `k > ?` ranges in key order, so no statement
  stays open between steps.

Pragmas tuned for embedded workloads: WAL journal, NORMAL sync, temp store in
memory. Store-level write defaults map onto pragmas when the store opens:
`sync=True` selects synchronous=FULL and `disable_wal=True` keeps the rollback
journal in memory. Per-call options cannot change a live connection and are
ignored.

Threading:
- `check_same_thread=False` for multi-threaded access (caller provides external
  synchronization as needed). Batches execute inside a single transaction.
"""

import os
import sqlite3
from typing import Dict, List, Optional, Sequence, Tuple, Union

from ..errors import ColumnFamilyNotFound, CursorClosed, ReadOnlyStore
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
DEFAULT_TABLE = "kv"
CURSOR_PAGE = 256

DEFAULT_PRAGMAS = {
    "journal_mode": "WAL",
    "synchronous": "NORMAL",
    "temp_store": "MEMORY",
    "foreign_keys": "OFF",
}


def _apply_pragmas(conn: sqlite3.Connection, pragmas: Optional[dict] = None) -> None:
    p = dict(DEFAULT_PRAGMAS)
    if pragmas:
        p.update(pragmas)
    cur = conn.cursor()
    for name, value in p.items():
        cur.execute(f"PRAGMA {name}={value}")
    cur.close()


def _pragmas_for(write: WriteOptions) -> dict:
    p = {}
    if write.sync:
        p["synchronous"] = "FULL"
    if write.disable_wal:
        p["journal_mode"] = "MEMORY"
    return p


def _table_for(name: str) -> str:
    return f"cf_{name.encode('utf-8').hex()}"


def _create_table(conn: sqlite3.Connection, table: str) -> None:
    conn.execute(
        f"""
        CREATE TABLE IF NOT EXISTS {table} (
            k BLOB PRIMARY KEY,
            v BLOB NOT NULL
        )
        """
    )


def _migrate(conn: sqlite3.Connection) -> None:
    _create_table(conn, DEFAULT_TABLE)
    conn.execute("CREATE TABLE IF NOT EXISTS column_families (name TEXT PRIMARY KEY)")


class SQLiteCursor:
    __slots__ = ("_conn", "_table", "_page", "_idx", "_closed")

    def __init__(self, conn: sqlite3.Connection, table: str) -> None:
        self._conn = conn
        self._table = table
        self._page: List[Tuple[bytes, bytes]] = []
        self._idx = 0
        self._closed = False

    def __enter__(self) -> "SQLiteCursor":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _check(self) -> None:
        if self._closed:
            raise CursorClosed()

    def _load(self, op: str, key: bytes) -> None:
        cur = self._conn.execute(
            f"SELECT k, v FROM {self._table} WHERE k {op} ? ORDER BY k LIMIT ?",
            (memoryview(key), CURSOR_PAGE),
        )
        try:
            self._page = [(bytes(k), bytes(v)) for k, v in cur.fetchall()]
        finally:
            cur.close()
        self._idx = 0

    def seek(self, key: bytes) -> None:
        self._check()
        self._load(">=", bytes(key))

    def seek_to_first(self) -> None:
        self.seek(b"")

    def entry(self) -> Optional[Entry]:
        self._check()
        if self._idx < len(self._page):
            return self._page[self._idx]
        return None

    def next(self) -> None:
        self._check()
        if self._idx >= len(self._page):
            return
        self._idx += 1
        if self._idx == len(self._page) and len(self._page) == CURSOR_PAGE:
            self._load(">", self._page[-1][0])

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        self._closed = True
        self._page = []


def _open_connection(
    path: Union[str, bytes, "os.PathLike[str]", "os.PathLike[bytes]"],
    *,
    pragmas: Optional[dict] = None,
    create: bool = True,
    readonly: bool = False,
) -> sqlite3.Connection:
    uri_mode = False
    path_str = os.fsdecode(path)
    if readonly:
        path_str = f"file:{path_str}?mode=ro"
        uri_mode = True
    elif not create and path_str != ":memory:" and not os.path.exists(path_str):
        raise FileNotFoundError(f"SQLite KV not found at {path_str}")

    conn = sqlite3.connect(
        path_str,
        detect_types=0,
        isolation_level=None,  # autocommit; we explicitly BEGIN for batches
        check_same_thread=False,
        uri=uri_mode,
    )
    if readonly:
        conn.execute("PRAGMA query_only=ON")
    else:
        _apply_pragmas(conn, pragmas)
        _migrate(conn)
    return conn


class SQLiteKV:
    """
    SQLite-backed ordered KV. Durability follows the connection pragmas, which
    `open_sqlite_kv` derives from the store's write defaults.

    Use `open_sqlite_kv(path)` to construct.
    """

    def __init__(
        self,
        conn: sqlite3.Connection,
        *,
        readonly: bool = False,
        read_options: Optional[ReadOptions] = None,
        write_options: Optional[WriteOptions] = None,
    ) -> None:
        self._conn = conn
        self._ro = readonly
        self.read_defaults = read_options or DEFAULT_READ
        self.write_defaults = write_options or DEFAULT_WRITE
        self._tables: Dict[str, str] = {DEFAULT_CF: DEFAULT_TABLE}
        for (name,) in conn.execute("SELECT name FROM column_families").fetchall():
            self._tables[name] = _table_for(name)

    def _table(self, cf: Optional[str]) -> str:
        t = self._tables.get(cf or DEFAULT_CF)
        if t is None:
            raise ColumnFamilyNotFound(cf or DEFAULT_CF)
        return t

    def _writable(self, op: str) -> None:
        if self._ro:
            raise ReadOnlyStore(op)

    # --- reads ---

    def get(
        self, key: bytes, *, cf: Optional[str] = None, options: Optional[ReadOptions] = None
    ) -> Optional[bytes]:
        check_bytes(key)
        cur = self._conn.execute(
            f"SELECT v FROM {self._table(cf)} WHERE k = ?", (memoryview(key),)
        )
        row = cur.fetchone()
        cur.close()
        return bytes(row[0]) if row is not None else None

    def cursor(
        self, *, cf: Optional[str] = None, options: Optional[ReadOptions] = None
    ) -> SQLiteCursor:
        return SQLiteCursor(self._conn, self._table(cf))

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
        self._upsert(self._table(cf), key, value)

    def delete(
        self, key: bytes, *, cf: Optional[str] = None, options: Optional[WriteOptions] = None
    ) -> None:
        self._writable("delete")
        check_bytes(key)
        self._conn.execute(f"DELETE FROM {self._table(cf)} WHERE k = ?", (memoryview(key),))

    def write(self, ops: Sequence[BatchOp], *, options: Optional[WriteOptions] = None) -> None:
        self._writable("write")
        staged = []
        for op in ops:
            if isinstance(op, Put):
                check_bytes(op.key, op.value)
            elif isinstance(op, Delete):
                check_bytes(op.key)
            else:
                raise TypeError(f"unsupported batch op: {type(op).__name__}")
            staged.append((self._table(op.cf), op))

        # BEGIN IMMEDIATE prevents writer starvation, still allows concurrent readers
        self._conn.execute("BEGIN IMMEDIATE")
        try:
            for table, op in staged:
                if isinstance(op, Put):
                    self._upsert(table, op.key, op.value)
                else:
                    self._conn.execute(f"DELETE FROM {table} WHERE k = ?", (memoryview(op.key),))
        except BaseException:
            self._conn.execute("ROLLBACK")
            raise
        self._conn.execute("COMMIT")

    def _upsert(self, table: str, key: bytes, value: bytes) -> None:
        self._conn.execute(
            f"INSERT INTO {table}(k, v) VALUES(?, ?) ON CONFLICT(k) DO UPDATE SET v=excluded.v",
            (memoryview(key), memoryview(value)),
        )

    # --- column families ---

    def column_families(self) -> List[str]:
        return sorted(self._tables)

    def create_column_family(self, name: str) -> None:
        if name in self._tables:
            return
        self._writable("create_column_family")
        table = _table_for(name)
        _create_table(self._conn, table)
        self._conn.execute("INSERT OR IGNORE INTO column_families(name) VALUES(?)", (name,))
        self._tables[name] = table

    def close(self) -> None:
        self._conn.close()


def open_sqlite_kv(
    path: Union[str, bytes, "os.PathLike[str]", "os.PathLike[bytes]"],
    *,
    pragmas: Optional[dict] = None,
    create: bool = True,
    readonly: bool = False,
    read_options: Optional[ReadOptions] = None,
    write_options: Optional[WriteOptions] = None,
) -> SQLiteKV:
    """
    Open (or create) a SQLite KV at `path`.

    - `readonly=True` opens the file with mode=ro; writes raise ReadOnlyStore.
    - `create=False` will raise if the DB file does not exist.
    - `write_options` become the store's write defaults and pick the sync and
      journal pragmas; explicit `pragmas` still win.
    """
    write = write_options or DEFAULT_WRITE
    p = _pragmas_for(write)
    p.update(pragmas or {})
    conn = _open_connection(path, pragmas=p, create=create, readonly=readonly)
    return SQLiteKV(conn, readonly=readonly, read_options=read_options, write_options=write)


__all__ = ["SQLiteKV", "SQLiteCursor", "open_sqlite_kv"]
