"""RocksDB backend; skipped when python-rocksdb is not installed."""
from __future__ import annotations

import pytest

pytest.importorskip("rocksdb")

from kvquery import (
    ReadOptions,
    WriteOptions,
    delete_op,
    insert,
    insert_op,
    matching_as_list,
    retrieve,
    scan,
    write_batch,
)
from kvquery.db import open_kv
from kvquery.db.rocksdb import RocksKV
from tests.models import Counter, Name, User, UserKey


@pytest.fixture
def rkv(tmp_path):
    kv = open_kv(f"rocksdb://{tmp_path}/rocks", column_families=["users"], fallback_to_sqlite=False)
    yield kv
    kv.close()


def test_opens_rocks(rkv) -> None:
    assert isinstance(rkv, RocksKV)
    assert rkv.column_families() == ["default", "users"]


def test_point_scan_batch(rkv) -> None:
    for t in ("a", "hello1", "hello2", "z"):
        insert(rkv, Name(t), t, options=WriteOptions(sync=True))

    assert retrieve(rkv, Name("hello1"), options=ReadOptions(verify_checksums=True)) == "hello1"
    assert [k.text for k, _ in matching_as_list(rkv, Name("hello"))] == ["hello1", "hello2"]

    write_batch(rkv, [insert_op(Counter("n"), 5), delete_op(Name("a"))])
    assert retrieve(rkv, Counter("n")) == 5
    assert retrieve(rkv, Name("a")) is None


def test_column_family_scan(rkv) -> None:
    insert(rkv, UserKey("red", 2), User("bo", 31), cf="users")
    insert(rkv, UserKey("red", 1), User("ann", 30), cf="users")

    assert matching_as_list(rkv, UserKey("red")) == []
    with scan(rkv, UserKey("red"), cf="users") as rows:
        assert [k.uid for k, _ in rows] == [1, 2]


def test_reopen_keeps_families(tmp_path) -> None:
    uri = f"rocksdb://{tmp_path}/rocks"
    kv = open_kv(uri, column_families=["users"], fallback_to_sqlite=False)
    insert(kv, Name("x"), "1", cf="users")
    kv.close()

    kv = open_kv(uri, fallback_to_sqlite=False)
    try:
        assert retrieve(kv, Name("x"), cf="users") == "1"
    finally:
        kv.close()
