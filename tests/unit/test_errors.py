from __future__ import annotations

from kvquery.errors import (
    ColumnFamilyNotFound,
    DecodeError,
    DependencyMissing,
    ErrorCode,
    KVQueryError,
    ReadOnlyStore,
    StoreClosed,
)


def test_codes_and_payload() -> None:
    e = DecodeError("bad bytes", cause=ValueError("x"), raw=b"\x00\x01")
    assert isinstance(e, KVQueryError)
    assert e.code == ErrorCode.DECODE
    assert e.data == {"raw": "0001"}

    d = e.to_dict(include_cause=True)
    assert d["code"] == "KVQ/DECODE"
    assert d["retryable"] is False
    assert d["cause"] == {"type": "ValueError", "message": "x"}


def test_with_context_merges() -> None:
    e = ColumnFamilyNotFound("users").with_context(op="get")
    assert e.data == {"cf": "users", "op": "get"}
    assert "KVQ/CF_NOT_FOUND" in str(e)


def test_messages() -> None:
    assert ReadOnlyStore("put").data == {"op": "put"}
    closed = StoreClosed("get")
    assert closed.code == "KVQ/STORE_CLOSED"
    assert closed.to_dict()["data"] == {"op": "get"}
    dm = DependencyMissing("python-rocksdb", "pip install python-rocksdb")
    assert "python-rocksdb" in dm.message
