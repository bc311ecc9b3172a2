from __future__ import annotations

import pytest

from kvquery import (
    ColumnFamilyNotFound,
    DecodeError,
    ReadOptions,
    WriteOptions,
    insert,
    matching_as_list,
    remove,
    retrieve,
)
from tests.models import Counter, Name, User, UserKey


def test_put_get_delete(kv) -> None:
    k = UserKey("red", 7)
    assert retrieve(kv, k) is None

    insert(kv, k, User("ann", 30))
    assert retrieve(kv, k) == User("ann", 30)

    insert(kv, k, User("ann", 31))
    assert retrieve(kv, k) == User("ann", 31)

    remove(kv, k)
    assert retrieve(kv, k) is None
    # removing again is fine
    remove(kv, k)


def test_builtin_value_types(kv) -> None:
    insert(kv, Name("greeting"), "héllo")
    insert(kv, Counter("hits"), 2**40)

    assert retrieve(kv, Name("greeting")) == "héllo"
    assert retrieve(kv, Counter("hits")) == 2**40


def test_options_are_accepted(kv) -> None:
    k = Counter("n")
    insert(kv, k, 1, options=WriteOptions(sync=True))
    assert retrieve(kv, k, options=ReadOptions(fill_cache=False)) == 1
    remove(kv, k, options=WriteOptions(disable_wal=True))
    assert retrieve(kv, k) is None


def test_column_families_are_separate(kv) -> None:
    k = UserKey("red", 1)
    insert(kv, k, User("ann", 30), cf="users")

    assert retrieve(kv, k) is None
    assert retrieve(kv, k, cf="users") == User("ann", 30)
    assert matching_as_list(kv, UserKey("red")) == []
    assert matching_as_list(kv, UserKey("red"), cf="users") == [(k, User("ann", 30))]

    remove(kv, k, cf="users")
    assert retrieve(kv, k, cf="users") is None


def test_unknown_column_family(kv) -> None:
    with pytest.raises(ColumnFamilyNotFound) as ei:
        retrieve(kv, Counter("x"), cf="nope")
    assert ei.value.data == {"cf": "nope"}


def test_corrupt_value_raises(kv, caplog) -> None:
    kv.put(Counter("bad").to_bytes(), b"\x61x")  # CBOR text "x", not an int

    with pytest.raises(DecodeError) as ei:
        retrieve(kv, Counter("bad"))
    assert ei.value.data["type"] == "int"
    assert any(r.levelname == "ERROR" for r in caplog.records)


def test_value_must_match_key_pairing(kv) -> None:
    with pytest.raises(TypeError):
        insert(kv, UserKey("red", 1), "not a user")
    with pytest.raises(TypeError):
        insert(kv, Counter("flag"), True)
    with pytest.raises(TypeError):
        retrieve(kv, "plain string")  # type: ignore[arg-type]
    assert kv.get(UserKey("red", 1).to_bytes()) is None
