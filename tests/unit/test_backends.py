"""
Store-level behaviour shared by every backend, plus backend-specific bits:
SQLite cursor paging and read-only mode, URI parsing, RocksDB fallback.
"""
from __future__ import annotations

import pytest

from kvquery import (
    CursorClosed,
    ReadOnlyStore,
    StoreClosed,
    insert,
    matching_as_list,
    retrieve,
    scan,
)
from kvquery.db import MemoryKV, open_kv
from kvquery.db import rocksdb as rocks_mod
from kvquery.db import sqlite as sqlite_mod
from kvquery.db.kv import KV, Delete, Put, WriteOptions
from kvquery.errors import ConfigError, DependencyMissing
from tests.models import Name


def test_satisfies_protocol(kv) -> None:
    assert isinstance(kv, KV)


def test_cursor_walks_in_byte_order(kv) -> None:
    for k in (b"b", b"a\xff", b"a", b"\x00", b"ab"):
        kv.put(k, k)

    with kv.cursor() as cur:
        cur.seek_to_first()
        keys = []
        while (e := cur.entry()) is not None:
            keys.append(e[0])
            cur.next()
        # stepping past the end stays at the end
        cur.next()
        assert cur.entry() is None

    assert keys == [b"\x00", b"a", b"ab", b"a\xff", b"b"]


def test_closed_cursor_raises(kv) -> None:
    cur = kv.cursor()
    cur.close()
    with pytest.raises(CursorClosed):
        cur.seek(b"")


def test_raw_batch_write(kv) -> None:
    kv.write([Put(b"p:1", b"1"), Put(b"p:2", b"2"), Put(b"q:1", b"3"), Delete(b"p:2")])
    assert kv.get(b"p:1") == b"1"
    assert kv.get(b"p:2") is None
    assert kv.get(b"q:1") == b"3"


def test_create_column_family_is_idempotent(kv) -> None:
    kv.create_column_family("events")
    kv.create_column_family("events")
    assert kv.column_families() == ["default", "events", "users"]


def test_rejects_non_bytes(kv) -> None:
    with pytest.raises(TypeError):
        kv.put("k", b"v")  # type: ignore[arg-type]
    with pytest.raises(TypeError):
        kv.write([Put(b"k", "v")])  # type: ignore[arg-type]
    assert kv.get(b"k") is None


def test_memory_cursor_survives_concurrent_delete() -> None:
    kv = MemoryKV()
    for k in (b"a", b"b", b"c"):
        kv.put(k, k)
    with kv.cursor() as cur:
        cur.seek(b"a")
        kv.delete(b"a")
        assert cur.entry() == (b"b", b"b")
        cur.next()
        assert cur.entry() == (b"c", b"c")


def test_memory_store_refuses_use_after_close() -> None:
    kv = MemoryKV(column_families=["users"])
    insert(kv, Name("a"), "1")
    cur = kv.cursor()
    cur.seek(b"")
    kv.close()
    assert kv.closed

    for call in (
        lambda: kv.get(b"a"),
        lambda: kv.put(b"b", b"2"),
        lambda: kv.delete(b"a"),
        lambda: kv.write([Put(b"b", b"2")]),
        lambda: kv.cursor(),
        lambda: kv.column_families(),
        lambda: kv.create_column_family("events"),
        lambda: retrieve(kv, Name("a")),
        lambda: matching_as_list(kv, Name("")),
    ):
        with pytest.raises(StoreClosed):
            call()

    # a cursor opened before close stops working too
    with pytest.raises(StoreClosed) as ei:
        cur.entry()
    assert ei.value.data == {"op": "cursor"}
    with pytest.raises(StoreClosed):
        with scan(kv, Name("")) as rows:
            list(rows)

    kv.close()


# ---------- sqlite ----------


def test_sqlite_cursor_pages(tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(sqlite_mod, "CURSOR_PAGE", 3)
    kv = open_kv(f"sqlite://{tmp_path}/paged.db")
    try:
        for i in range(10):
            insert(kv, Name(f"k{i:02d}"), str(i))
        insert(kv, Name("z"), "end")

        rows = matching_as_list(kv, Name("k"))
        assert [v for _, v in rows] == [str(i) for i in range(10)]
    finally:
        kv.close()


def test_sqlite_persists_and_reopens_read_only(tmp_path) -> None:
    uri = f"sqlite://{tmp_path}/ro.db"
    kv = open_kv(uri, column_families=["users"])
    insert(kv, Name("a"), "1", cf="users")
    kv.close()

    ro = open_kv(uri, readonly=True)
    try:
        assert ro.column_families() == ["default", "users"]
        assert retrieve(ro, Name("a"), cf="users") == "1"
        with pytest.raises(ReadOnlyStore):
            insert(ro, Name("b"), "2")
        with pytest.raises(ReadOnlyStore):
            ro.write([Delete(b"a")])
    finally:
        ro.close()


def test_sqlite_create_false_requires_file(tmp_path) -> None:
    with pytest.raises(FileNotFoundError):
        open_kv(f"sqlite://{tmp_path}/missing.db", create=False)


@pytest.mark.parametrize("uri", ["sqlite://", "sqlite:///:memory:"])
def test_sqlite_in_memory_uris(uri) -> None:
    kv = open_kv(uri)
    try:
        insert(kv, Name("x"), "y")
        assert retrieve(kv, Name("x")) == "y"
    finally:
        kv.close()


def test_unknown_scheme() -> None:
    with pytest.raises(ConfigError):
        open_kv("postgres://db")
    with pytest.raises(ConfigError):
        open_kv("rocksdb://")


# ---------- rocksdb fallback ----------


def test_rocks_falls_back_to_sqlite(tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(rocks_mod, "_ROCKS_OK", False)
    kv = rocks_mod.open_rocksdb_kv(
        tmp_path / "r", column_families=["users"], write_options=WriteOptions(sync=True)
    )
    try:
        assert isinstance(kv, sqlite_mod.SQLiteKV)
        assert kv.write_defaults == WriteOptions(sync=True)
        assert kv.column_families() == ["default", "users"]
        assert (tmp_path / "r.sqlite").exists()
    finally:
        kv.close()


def test_rocks_without_fallback_raises(tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(rocks_mod, "_ROCKS_OK", False)
    with pytest.raises(DependencyMissing) as ei:
        rocks_mod.open_rocksdb_kv(tmp_path / "r", fallback_to_sqlite=False)
    assert ei.value.data["package"] == "python-rocksdb"
